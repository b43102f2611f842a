"""CreditTransaction model for the append-only credit ledger."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


TRANSACTION_REASONS = ("grant", "spend", "conversion", "adjustment")


class CreditTransaction(Base):
    """Immutable credit ledger entry."""

    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint(
            "reason IN ('grant', 'spend', 'conversion', 'adjustment')",
            name="ck_credit_transactions_reason",
        ),
        CheckConstraint("amount <> 0", name="ck_credit_transactions_amount_non_zero"),
        Index("uq_credit_transactions_user_sequence", "user_id", "sequence", unique=True),
        Index(
            "uq_credit_transactions_user_idempotency_key",
            "user_id",
            "idempotency_key",
            unique=True,
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String,
        ForeignKey("user_credits.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    description = Column(String, nullable=True)
    related_conversion_id = Column(String, nullable=True, index=True)
    idempotency_key = Column(String, nullable=True)
    balance_after = Column(Integer, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True,
    )

    account = relationship("CreditAccount", back_populates="transactions")
