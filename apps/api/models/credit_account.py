"""CreditAccount model holding the maintained balance aggregate."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CreditAccount(Base):
    """Per-user running total; always equal to the sum of the user's ledger."""

    __tablename__ = "user_credits"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_user_credits_balance_non_negative"),)

    user_id = Column(String, primary_key=True)
    balance = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transactions = relationship("CreditTransaction", back_populates="account", passive_deletes=True)
