"""Site and lead directory scoped by owning user."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.contact_submission import ContactSubmission
from models.site import Site
from services.errors import SiteNotFound, Unauthorized
from services.store import store_operation


logger = logging.getLogger(__name__)

LIST_LIMIT = 100
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def tenant_host(subdomain: str) -> str:
    """Return the fully qualified tenant host for a bare or qualified subdomain."""
    value = (subdomain or "").strip().lower().rstrip(".")
    suffix = f".{settings.TENANT_ROOT_DOMAIN.lower()}"
    if value.endswith(suffix):
        return value
    return f"{value}{suffix}"


@store_operation("sites_list")
async def list_sites(user_id: Optional[str], db: AsyncSession) -> List[Site]:
    """Sites owned by user_id, newest first.

    Without a principal the result follows SITES_UNAUTHENTICATED_LISTING:
    ``empty`` returns nothing, ``all`` returns an unscoped listing.
    """
    query = select(Site).order_by(Site.created_at.desc()).limit(LIST_LIMIT)
    if user_id:
        query = query.where(Site.user_id == user_id)
    elif settings.SITES_UNAUTHENTICATED_LISTING != "all":
        return []
    result = await db.execute(query)
    return list(result.scalars().all())


@store_operation("site_get")
async def get_site(site_id: str, user_id: str, db: AsyncSession) -> Optional[Site]:
    result = await db.execute(select(Site).where(Site.id == site_id, Site.user_id == user_id).limit(1))
    return result.scalar_one_or_none()


@store_operation("site_by_subdomain")
async def get_site_by_subdomain(host: str, db: AsyncSession) -> Optional[Site]:
    result = await db.execute(select(Site).where(Site.subdomain == tenant_host(host)).limit(1))
    return result.scalar_one_or_none()


@store_operation("site_by_custom_domain")
async def get_site_by_custom_domain(host: str, db: AsyncSession) -> Optional[Site]:
    domain = (host or "").strip().lower().rstrip(".")
    if not domain:
        return None
    result = await db.execute(select(Site).where(Site.custom_domain == domain).limit(1))
    return result.scalar_one_or_none()


@store_operation("site_insert")
async def insert_site(
    user_id: str,
    db: AsyncSession,
    *,
    subdomain: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    plan: Optional[Dict[str, Any]] = None,
    html: Optional[str] = None,
    vercel_url: Optional[str] = None,
    custom_domain: Optional[str] = None,
) -> Site:
    site = Site(
        user_id=user_id,
        subdomain=tenant_host(subdomain),
        custom_domain=(custom_domain or "").strip().lower() or None,
        title=title,
        description=description,
        plan=plan,
        html=html,
        vercel_url=vercel_url,
    )
    db.add(site)
    await db.commit()
    logger.info("site_insert user=%s site=%s subdomain=%s", user_id, site.id, site.subdomain)
    return site


def validate_contact_fields(name: Any, email: Any, message: Any) -> Dict[str, str]:
    """Trim and validate contact-form fields, raising ValueError on bad input."""
    cleaned = {
        "name": str(name or "").strip(),
        "email": str(email or "").strip(),
        "message": str(message or "").strip(),
    }
    if not cleaned["name"] or not cleaned["email"] or not cleaned["message"]:
        raise ValueError("Name, email, and message are required")
    if not EMAIL_PATTERN.match(cleaned["email"]):
        raise ValueError("Invalid email format")
    return cleaned


@store_operation("lead_insert")
async def insert_contact_submission(
    site_id: str,
    db: AsyncSession,
    *,
    name: str,
    email: str,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
) -> ContactSubmission:
    """Store a lead against an existing site, copying the site's owner."""
    fields = validate_contact_fields(name, email, message)
    result = await db.execute(select(Site.user_id).where(Site.id == site_id).limit(1))
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise SiteNotFound(site_id)

    submission = ContactSubmission(site_id=site_id, user_id=owner_id, payload=payload or None, **fields)
    db.add(submission)
    await db.commit()
    logger.info("lead_insert site=%s lead=%s", site_id, submission.id)
    return submission


@store_operation("leads_for_site")
async def get_contact_submissions(site_id: str, user_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    owned = await db.execute(select(Site.id).where(Site.id == site_id, Site.user_id == user_id).limit(1))
    if owned.scalar_one_or_none() is None:
        raise SiteNotFound(site_id)

    result = await db.execute(
        select(ContactSubmission, Site.title)
        .join(Site, ContactSubmission.site_id == Site.id)
        .where(ContactSubmission.site_id == site_id)
        .order_by(ContactSubmission.created_at.desc())
    )
    return [serialize_lead(submission, site_title) for submission, site_title in result.all()]


@store_operation("leads_for_user")
async def get_all_contact_submissions_for_user(user_id: Optional[str], db: AsyncSession) -> List[Dict[str, Any]]:
    """Leads across every site owned by user_id, newest first."""
    if not user_id:
        raise Unauthorized()

    result = await db.execute(
        select(ContactSubmission, Site.title)
        .join(Site, ContactSubmission.site_id == Site.id)
        .where(Site.user_id == user_id)
        .order_by(ContactSubmission.created_at.desc())
        .limit(LIST_LIMIT)
    )
    return [serialize_lead(submission, site_title) for submission, site_title in result.all()]


def serialize_site(site: Site, include_content: bool = False) -> Dict[str, Any]:
    data = {
        "id": site.id,
        "user_id": site.user_id,
        "subdomain": site.subdomain,
        "custom_domain": site.custom_domain,
        "title": site.title,
        "description": site.description,
        "vercel_url": site.vercel_url,
        "created_at": site.created_at.isoformat() if site.created_at else None,
    }
    if include_content:
        data["plan"] = site.plan
        data["html"] = site.html
    return data


def serialize_lead(submission: ContactSubmission, site_title: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": submission.id,
        "site_id": submission.site_id,
        "site_title": site_title,
        "user_id": submission.user_id,
        "name": submission.name,
        "email": submission.email,
        "message": submission.message,
        "payload": submission.payload or {},
        "created_at": submission.created_at.isoformat() if submission.created_at else None,
    }
