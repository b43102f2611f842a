"""Site model for user-owned tenant landing pages."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import JSON, Column, DateTime, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class Site(Base):
    """Tenant site addressed by a unique subdomain."""

    __tablename__ = "sites"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    subdomain = Column(String, nullable=False, unique=True)
    custom_domain = Column(String, nullable=True, unique=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    plan = Column(JSON, nullable=True)
    html = Column(Text, nullable=True)
    vercel_url = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True,
    )

    contact_submissions = relationship(
        "ContactSubmission",
        back_populates="site",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
