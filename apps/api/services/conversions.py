"""Pending conversion tracking for credits accrued before sign-up.

A user has at most one ``pending`` row. Recording supersedes it, resolving
folds it into the ledger as a ``conversion`` entry, clearing discards it. All
three run under the user's credit account lock so they cannot interleave.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_transaction import CreditTransaction
from models.pending_conversion import PendingConversion
from services.credits import apply_transaction, lock_credit_account
from services.store import store_operation


logger = logging.getLogger(__name__)


async def _current_pending(user_id: str, db: AsyncSession) -> Optional[PendingConversion]:
    result = await db.execute(
        select(PendingConversion)
        .where(PendingConversion.user_id == user_id, PendingConversion.status == "pending")
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _mark_cleared(conversion: PendingConversion, resolution: str) -> None:
    conversion.status = "cleared"
    conversion.resolution = resolution
    conversion.cleared_at = datetime.now(timezone.utc)


@store_operation("conversion_get")
async def get_pending_conversion(user_id: str, db: AsyncSession) -> Optional[PendingConversion]:
    return await _current_pending(user_id, db)


@store_operation("conversion_record")
async def record_pending_conversion(
    user_id: str,
    db: AsyncSession,
    *,
    anonymous_session_id: str,
    amount: int,
) -> PendingConversion:
    """Record credits accrued by an anonymous session, superseding any pending one."""
    value = int(amount)
    if value <= 0:
        raise ValueError("amount must be greater than 0")
    session_id = (anonymous_session_id or "").strip()
    if not session_id:
        raise ValueError("anonymous_session_id is required")

    await lock_credit_account(user_id, db)
    existing = await _current_pending(user_id, db)
    if existing is not None:
        _mark_cleared(existing, "superseded")
        # The partial unique index only admits the new row once this one is cleared.
        await db.flush()
        logger.info(
            "conversion_superseded user=%s previous=%s previous_amount=%s",
            user_id,
            existing.id,
            existing.amount,
        )

    conversion = PendingConversion(
        user_id=user_id,
        anonymous_session_id=session_id,
        amount=value,
        status="pending",
    )
    db.add(conversion)
    await db.commit()
    logger.info("conversion_recorded user=%s conversion=%s amount=%s", user_id, conversion.id, value)
    return conversion


@store_operation("conversion_resolve")
async def resolve_pending_conversion(user_id: str, db: AsyncSession) -> Optional[CreditTransaction]:
    """Fold the pending conversion into the ledger.

    Returns the ``conversion`` transaction, or None when nothing was pending.
    """
    account = await lock_credit_account(user_id, db)
    conversion = await _current_pending(user_id, db)
    if conversion is None:
        await db.commit()
        return None

    entry = await apply_transaction(
        account,
        db,
        amount=conversion.amount,
        reason="conversion",
        description=f"Converted anonymous session {conversion.anonymous_session_id}",
        related_conversion_id=conversion.id,
    )
    _mark_cleared(conversion, "converted")
    await db.commit()
    logger.info(
        "conversion_resolved user=%s conversion=%s amount=%s balance_after=%s",
        user_id,
        conversion.id,
        entry.amount,
        entry.balance_after,
    )
    return entry


@store_operation("conversion_clear")
async def clear_pending_conversion(user_id: str, db: AsyncSession) -> bool:
    """Discard the pending conversion without crediting it.

    Returns True when a record was discarded; clearing nothing is not an error.
    """
    await lock_credit_account(user_id, db)
    conversion = await _current_pending(user_id, db)
    if conversion is None:
        await db.commit()
        return False

    _mark_cleared(conversion, "discarded")
    await db.commit()
    logger.info("conversion_discarded user=%s conversion=%s amount=%s", user_id, conversion.id, conversion.amount)
    return True


def serialize_pending_conversion(conversion: Optional[PendingConversion]) -> Dict[str, Any]:
    if conversion is None:
        return {"hasPendingConversion": False, "pendingConversionValue": None}
    return {
        "hasPendingConversion": True,
        "pendingConversionValue": conversion.amount,
        "conversionId": conversion.id,
        "createdAt": conversion.created_at.isoformat() if conversion.created_at else None,
    }
