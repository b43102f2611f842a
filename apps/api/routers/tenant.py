"""Host-based tenant routing: subdomain rewrite middleware and dispatch endpoint."""

from __future__ import annotations

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.types import ASGIApp, Receive, Scope, Send

from config import settings
from database import get_db
from routers.schema_guard import schema_guard
from services.schema import ensure_sites_table
from services.tenants import get_site_by_custom_domain, get_site_by_subdomain, tenant_host

router = APIRouter()
logger = logging.getLogger(__name__)

RESERVED_SUBDOMAINS = {"www"}

NOT_FOUND_HTML = """<!DOCTYPE html>
<html>
  <head>
    <title>Site Not Found</title>
    <style>
      body {{ font-family: Arial, sans-serif; text-align: center; padding: 50px; }}
      h1 {{ color: #666; }}
    </style>
  </head>
  <body>
    <h1>Site Not Found</h1>
    <p>The site <strong>{host}</strong> doesn't exist yet.</p>
    <p>Create your landing page at <a href="https://{root}">{root}</a></p>
  </body>
</html>
"""


def _host_from_headers(headers) -> str:
    for key, value in headers:
        if key == b"host":
            return value.decode("latin-1")
    return ""


def extract_tenant_subdomain(host: str, root_domain: Optional[str] = None) -> Optional[str]:
    """Return the tenant label for ``<label>.<root>`` hosts, else None.

    The apex, ``www`` and hosts outside the root domain are not tenants.
    """
    root = (root_domain or settings.TENANT_ROOT_DOMAIN).strip().lower()
    hostname = (host or "").strip().lower().split(":", 1)[0].rstrip(".")
    suffix = f".{root}"
    if not root or not hostname.endswith(suffix):
        return None
    label = hostname[: -len(suffix)]
    if not label or label in RESERVED_SUBDOMAINS:
        return None
    return label


class TenantHostRewriteMiddleware:
    """Rewrite tenant subdomain requests to the dispatch path.

    ``/about?x=1`` on ``acme.<root>`` becomes ``<dispatch>/about?x=1``; the
    query string is left untouched.
    """

    def __init__(self, app: ASGIApp, dispatch_path: Optional[str] = None, root_domain: Optional[str] = None):
        self.app = app
        self.dispatch_path = (dispatch_path or settings.SUBDOMAIN_DISPATCH_PATH).rstrip("/")
        self.root_domain = root_domain

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            host = _host_from_headers(scope.get("headers") or [])
            label = extract_tenant_subdomain(host, self.root_domain)
            path = scope.get("path", "/")
            if label and not path.startswith(f"{self.dispatch_path}/") and path != self.dispatch_path:
                rewritten = f"{self.dispatch_path}{path if path.startswith('/') else '/' + path}"
                scope = dict(scope)
                scope["path"] = rewritten
                scope["raw_path"] = rewritten.encode("utf-8")
                logger.debug("tenant_rewrite host=%s path=%s -> %s", host, path, rewritten)
        await self.app(scope, receive, send)


@router.get("/{path:path}", include_in_schema=False)
async def dispatch_tenant(
    path: str,
    request: Request,
    _schema: None = Depends(schema_guard(ensure_sites_table)),
    db: AsyncSession = Depends(get_db),
):
    host = request.headers.get("host", "")
    label = extract_tenant_subdomain(host)
    if not label:
        return RedirectResponse(url=settings.APP_URL)

    full_host = tenant_host(label)
    site = await get_site_by_custom_domain(full_host, db)
    if site is None:
        site = await get_site_by_subdomain(full_host, db)

    if site is None or not site.html:
        logger.info("tenant_dispatch miss host=%s path=/%s", full_host, path)
        return HTMLResponse(
            NOT_FOUND_HTML.format(host=html.escape(full_host), root=html.escape(settings.TENANT_ROOT_DOMAIN)),
            status_code=404,
        )
    return HTMLResponse(site.html)
