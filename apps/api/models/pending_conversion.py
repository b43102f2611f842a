"""PendingConversion model for credits accrued before sign-up."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, text
from sqlalchemy.sql import func

from database import Base


class PendingConversion(Base):
    """Provisional credit grant awaiting reconciliation into a user's ledger."""

    __tablename__ = "pending_conversions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_pending_conversions_amount_positive"),
        CheckConstraint("status IN ('pending', 'cleared')", name="ck_pending_conversions_status"),
        # At most one pending row per user.
        Index(
            "uq_pending_conversions_user_pending",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    anonymous_session_id = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="pending", server_default="pending")
    resolution = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    cleared_at = Column(DateTime(timezone=True), nullable=True)
