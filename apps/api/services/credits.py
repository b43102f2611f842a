"""Credit ledger and balance accounting helpers.

The ledger (``credit_transactions``) is append-only. ``user_credits.balance`` is
a maintained aggregate updated in the same database transaction as every
append, so a committed balance always equals the fold of the committed ledger.

Every mutation for a user starts by taking that user's account row lock
(``lock_credit_account``). On Postgres this is ``SELECT ... FOR UPDATE``. On
SQLite every transaction opens with ``BEGIN IMMEDIATE``
(``database.configure_sqlite_locking``), which takes the database write lock
before the first read. Balance checks made after the lock are therefore
linearizable with respect to other appends for the same user.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_account import CreditAccount
from models.credit_transaction import TRANSACTION_REASONS, CreditTransaction
from services.errors import InsufficientCredits, StorageUnavailable
from services.store import store_operation, store_timeout


logger = logging.getLogger(__name__)


def _dialect_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert

        return insert
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        return insert
    return None


def _validate_amount(amount: int, reason: str) -> int:
    if reason not in TRANSACTION_REASONS:
        raise ValueError(f"Unknown transaction reason: {reason}")
    value = int(amount)
    if value == 0:
        raise ValueError("amount must be non-zero")
    if reason == "spend" and value > 0:
        raise ValueError("spend amounts must be negative")
    if reason in ("grant", "conversion") and value < 0:
        raise ValueError(f"{reason} amounts must be positive")
    return value


async def lock_credit_account(user_id: str, db: AsyncSession) -> CreditAccount:
    """Create the account row if absent and lock it for the current transaction."""
    insert = _dialect_insert(db)
    if insert is not None:
        await db.execute(
            insert(CreditAccount)
            .values(user_id=user_id, balance=0)
            .on_conflict_do_nothing(index_elements=[CreditAccount.user_id])
        )
    else:
        existing = await db.execute(select(CreditAccount.user_id).where(CreditAccount.user_id == user_id))
        if existing.scalar_one_or_none() is None:
            db.add(CreditAccount(user_id=user_id, balance=0))
            await db.flush()

    result = await db.execute(
        select(CreditAccount)
        .where(CreditAccount.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def apply_transaction(
    account: CreditAccount,
    db: AsyncSession,
    *,
    amount: int,
    reason: str,
    description: Optional[str] = None,
    related_conversion_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> CreditTransaction:
    """Append one ledger entry against a locked account without committing."""
    value = _validate_amount(amount, reason)

    if idempotency_key:
        replay = await db.execute(
            select(CreditTransaction).where(
                CreditTransaction.user_id == account.user_id,
                CreditTransaction.idempotency_key == idempotency_key,
            )
        )
        existing = replay.scalar_one_or_none()
        if existing is not None:
            if existing.amount != value or existing.reason != reason:
                raise ValueError(
                    f"idempotency_key {idempotency_key!r} was already used for "
                    f"{existing.reason} {existing.amount}"
                )
            logger.info(
                "credit_append replay user=%s key=%s transaction=%s",
                account.user_id,
                idempotency_key,
                existing.id,
            )
            return existing

    current_balance = int(account.balance or 0)
    next_balance = current_balance + value
    if next_balance < 0:
        raise InsufficientCredits(required=-value, available=current_balance)

    last_sequence = await db.execute(
        select(func.coalesce(func.max(CreditTransaction.sequence), 0)).where(
            CreditTransaction.user_id == account.user_id
        )
    )
    entry = CreditTransaction(
        user_id=account.user_id,
        sequence=int(last_sequence.scalar() or 0) + 1,
        amount=value,
        reason=reason,
        description=description,
        related_conversion_id=related_conversion_id,
        idempotency_key=idempotency_key,
        balance_after=next_balance,
    )
    account.balance = next_balance
    db.add(entry)
    await db.flush()
    return entry


@store_operation("credit_append")
async def append_transaction(
    user_id: str,
    db: AsyncSession,
    *,
    amount: int,
    reason: str,
    description: Optional[str] = None,
    related_conversion_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> CreditTransaction:
    """Append a signed credit movement and commit it with the balance update.

    Raises InsufficientCredits, leaving the ledger untouched, when the entry
    would make the balance negative. With an idempotency key, repeating the
    call returns the entry recorded the first time.
    """
    _validate_amount(amount, reason)
    try:
        account = await lock_credit_account(user_id, db)
        entry = await apply_transaction(
            account,
            db,
            amount=amount,
            reason=reason,
            description=description,
            related_conversion_id=related_conversion_id,
            idempotency_key=idempotency_key,
        )
    except (InsufficientCredits, ValueError):
        await db.rollback()
        raise
    await db.commit()
    logger.info(
        "credit_append user=%s reason=%s amount=%s balance_after=%s",
        user_id,
        entry.reason,
        entry.amount,
        entry.balance_after,
    )
    return entry


async def grant_credits(
    user_id: str,
    db: AsyncSession,
    *,
    credits: int,
    description: str = "Credit grant",
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    grant = int(credits)
    if grant <= 0:
        raise ValueError("credits must be greater than 0")
    entry = await append_transaction(
        user_id,
        db,
        amount=grant,
        reason="grant",
        description=description,
        idempotency_key=idempotency_key,
    )
    return {"granted": grant, "balance_after": entry.balance_after, "transaction_id": entry.id}


async def consume_credits(
    user_id: str,
    db: AsyncSession,
    *,
    cost: int,
    description: str = "Website generation",
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    debit_cost = max(int(cost), 0)
    if debit_cost == 0:
        return {"charged": 0, "balance_after": await get_user_credits(user_id, db)}

    entry = await append_transaction(
        user_id,
        db,
        amount=-debit_cost,
        reason="spend",
        description=description,
        idempotency_key=idempotency_key,
    )
    return {"charged": debit_cost, "balance_after": entry.balance_after, "transaction_id": entry.id}


@store_operation("credit_balance")
async def get_user_credits(user_id: str, db: AsyncSession) -> int:
    """Current balance; zero for users with no account yet."""
    result = await db.execute(select(CreditAccount.balance).where(CreditAccount.user_id == user_id))
    balance = result.scalar_one_or_none()
    return int(balance or 0)


@store_operation("credit_reconcile")
async def reconcile_user_credits(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Compare the maintained balance with the fold of the ledger."""
    balance_result = await db.execute(select(CreditAccount.balance).where(CreditAccount.user_id == user_id))
    ledger_result = await db.execute(
        select(func.coalesce(func.sum(CreditTransaction.amount), 0)).where(CreditTransaction.user_id == user_id)
    )
    balance = int(balance_result.scalar_one_or_none() or 0)
    ledger_total = int(ledger_result.scalar() or 0)
    if balance != ledger_total:
        logger.error(
            "credit_reconcile mismatch user=%s balance=%s ledger_total=%s",
            user_id,
            balance,
            ledger_total,
        )
    return {"balance": balance, "ledger_total": ledger_total, "consistent": balance == ledger_total}


async def list_transactions_for_user(user_id: str, db: AsyncSession) -> AsyncIterator[CreditTransaction]:
    """Stream a user's ledger oldest first.

    Opening the stream and every fetch are each bounded by the store timeout.
    """
    timeout = store_timeout()
    try:
        stream = await asyncio.wait_for(
            db.stream_scalars(
                select(CreditTransaction)
                .where(CreditTransaction.user_id == user_id)
                .order_by(CreditTransaction.sequence.asc())
                .execution_options(yield_per=100)
            ),
            timeout=timeout,
        )
        while True:
            try:
                entry = await asyncio.wait_for(stream.__anext__(), timeout=timeout)
            except StopAsyncIteration:
                break
            yield entry
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.exception("Store operation credit_list failed: %s", exc)
        try:
            await db.rollback()
        except (SQLAlchemyError, OSError) as rollback_exc:
            logger.warning("Rollback after credit_list failed: %s", rollback_exc)
        raise StorageUnavailable("credit_list", exc) from exc


def serialize_transaction(entry: CreditTransaction) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "sequence": entry.sequence,
        "amount": entry.amount,
        "reason": entry.reason,
        "description": entry.description,
        "related_conversion_id": entry.related_conversion_id,
        "balance_after": entry.balance_after,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
