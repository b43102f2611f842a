"""Lead listing and public contact-form submission router."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.schema_guard import schema_guard
from services.schema import ensure_contact_submissions_table
from services.tenants import get_all_contact_submissions_for_user, insert_contact_submission

router = APIRouter()
logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("name", "email", "message")

lead_schema = schema_guard(ensure_contact_submissions_table)


async def _read_contact_body(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.get("/leads")
async def leads_index(
    auth: AuthContext = Depends(get_auth_context),
    _schema: None = Depends(lead_schema),
    db: AsyncSession = Depends(get_db),
):
    return {"leads": await get_all_contact_submissions_for_user(auth.user_id, db)}


@router.post("/contact/{site_id}")
async def submit_contact(
    site_id: str,
    request: Request,
    _schema: None = Depends(lead_schema),
    db: AsyncSession = Depends(get_db),
):
    body = await _read_contact_body(request)
    extra = {key: value for key, value in body.items() if key not in CONTACT_FIELDS}
    try:
        submission = await insert_contact_submission(
            site_id,
            db,
            name=body.get("name"),
            email=body.get("email"),
            message=body.get("message"),
            payload=extra,
        )
    except ValueError as exc:
        logger.info("contact_rejected site=%s reason=%s", site_id, exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})
    return {"success": True, "id": submission.id}
