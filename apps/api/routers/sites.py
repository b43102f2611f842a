"""Tenant site listing router."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, get_optional_auth_context
from routers.schema_guard import schema_guard
from services.errors import SiteNotFound
from services.schema import ensure_contact_submissions_table, ensure_sites_table
from services.tenants import get_contact_submissions, get_site, list_sites, serialize_site

router = APIRouter()


@router.get("")
async def sites_index(
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    _schema: None = Depends(schema_guard(ensure_sites_table)),
    db: AsyncSession = Depends(get_db),
):
    sites = await list_sites(auth.user_id if auth else None, db)
    return {"sites": [serialize_site(site) for site in sites]}


@router.get("/{site_id}")
async def site_detail(
    site_id: str,
    auth: AuthContext = Depends(get_auth_context),
    _schema: None = Depends(schema_guard(ensure_sites_table)),
    db: AsyncSession = Depends(get_db),
):
    site = await get_site(site_id, auth.user_id, db)
    if site is None:
        raise SiteNotFound(site_id)
    return {"site": serialize_site(site, include_content=True)}


@router.get("/{site_id}/leads")
async def site_leads(
    site_id: str,
    auth: AuthContext = Depends(get_auth_context),
    _schema: None = Depends(schema_guard(ensure_contact_submissions_table)),
    db: AsyncSession = Depends(get_db),
):
    return {"leads": await get_contact_submissions(site_id, auth.user_id, db)}
