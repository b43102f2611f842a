"""Credit balance and pending conversion router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context, get_auth_context_or_default
from routers.schema_guard import schema_guard
from services.conversions import (
    clear_pending_conversion,
    get_pending_conversion,
    resolve_pending_conversion,
    serialize_pending_conversion,
)
from services.credits import get_user_credits, list_transactions_for_user, serialize_transaction
from services.schema import (
    ensure_credit_transactions_table,
    ensure_credits_table,
    ensure_pending_conversions_table,
)

router = APIRouter()

credit_schema = schema_guard(ensure_credits_table, ensure_credit_transactions_table)
conversion_schema = schema_guard(
    ensure_credits_table,
    ensure_credit_transactions_table,
    ensure_pending_conversions_table,
)


@router.get("/balance")
async def credit_balance(
    auth: AuthContext = Depends(get_auth_context),
    _schema: None = Depends(credit_schema),
    db: AsyncSession = Depends(get_db),
):
    return {"balance": await get_user_credits(auth.user_id, db)}


@router.get("/transactions")
async def credit_transactions(
    auth: AuthContext = Depends(get_auth_context),
    _schema: None = Depends(credit_schema),
    db: AsyncSession = Depends(get_db),
):
    transactions = [serialize_transaction(entry) async for entry in list_transactions_for_user(auth.user_id, db)]
    return {"transactions": transactions}


@router.get("/pending-conversion")
async def pending_conversion_status(
    auth: AuthContext = Depends(get_auth_context),
    _schema: None = Depends(conversion_schema),
    db: AsyncSession = Depends(get_db),
):
    return serialize_pending_conversion(await get_pending_conversion(auth.user_id, db))


@router.post("/clear-conversion")
async def clear_conversion(
    auth: AuthContext = Depends(get_auth_context_or_default),
    _schema: None = Depends(conversion_schema),
    db: AsyncSession = Depends(get_db),
):
    await clear_pending_conversion(auth.user_id, db)
    return {"success": True}


@router.post("/resolve-conversion")
async def resolve_conversion(
    auth: AuthContext = Depends(get_auth_context_or_default),
    _schema: None = Depends(conversion_schema),
    db: AsyncSession = Depends(get_db),
):
    entry = await resolve_pending_conversion(auth.user_id, db)
    return {
        "success": True,
        "converted": entry.amount if entry is not None else 0,
        "balance": await get_user_credits(auth.user_id, db),
    }
