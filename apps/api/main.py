"""
Easyland API - FastAPI Backend
Main application entry point: credits, sites, leads and tenant dispatch.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, validate_security_settings
from database import engine
import models  # noqa: F401
from routers import credits, env, health, images, leads, sites, tenant
from routers.tenant import TenantHostRewriteMiddleware
from services.errors import InsufficientCredits, SiteNotFound, StorageUnavailable, Unauthorized
from services.schema import bootstrap_schema
from services.store import check_store_health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Easyland API...")
    validate_security_settings()
    try:
        await check_store_health(engine)
        print("🗄️ Database reachable.")
        if settings.AUTO_CREATE_DB_SCHEMA:
            await bootstrap_schema(engine)
            print("🗄️ Database schema verified.")
    except StorageUnavailable as exc:
        print(f"⚠️ Database bootstrap skipped: {exc.cause or exc}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Easyland API",
    description="Site builder backend: credit ledger, tenant sites and leads",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TenantHostRewriteMiddleware)


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.exception_handler(InsufficientCredits)
async def insufficient_credits_handler(request: Request, exc: InsufficientCredits) -> JSONResponse:
    return JSONResponse(
        status_code=402,
        content={
            "error": "Insufficient credits",
            "required": exc.required,
            "available": exc.available,
        },
    )


@app.exception_handler(SiteNotFound)
async def site_not_found_handler(request: Request, exc: SiteNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Site not found"})


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error(
        "Storage unavailable method=%s path=%s operation=%s cause=%r",
        request.method,
        request.url.path,
        exc.operation,
        exc.cause,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(env.router, tags=["Environment"])
app.include_router(credits.router, prefix="/credits", tags=["Credits"])
app.include_router(sites.router, prefix="/sites", tags=["Sites"])
app.include_router(leads.router, tags=["Leads"])
app.include_router(images.router, prefix="/images", tags=["Images"])
app.include_router(tenant.router, prefix=settings.SUBDOMAIN_DISPATCH_PATH.rstrip("/"), tags=["Tenant"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Easyland API",
        "version": "0.1.0",
        "status": "running"
    }
