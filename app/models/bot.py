"""Bot model: a deployable template backed by a GitHub repository"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.database import Base


class BotReviewStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Bot(Base):
    """A bot submitted by an owner and moderated by an admin.

    ``env_schema`` is the ``env`` block of the repository's kerm.json:
    ``{"VAR": {"description": ..., "value": default, "required": bool}}``.
    """

    __tablename__ = "bots"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    github_repo = Column(String(200), unique=True, nullable=False, index=True)
    github_branch = Column(String(100), default="main", nullable=False)
    env_schema = Column(JSON, default=dict, nullable=False)
    logo_url = Column(String(500), nullable=True)
    documentation_url = Column(String(500), nullable=True)
    cost = Column(Integer, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    review_status = Column(String(20), default=BotReviewStatus.PENDING.value, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="bots")
    deployments = relationship("Deployment", back_populates="bot")

    def reset_review(self) -> None:
        """Any owner edit sends the bot back to moderation."""
        self.is_approved = False
        self.review_status = BotReviewStatus.PENDING.value
        self.rejection_reason = None
        self.reviewed_at = None

    def __repr__(self):
        return f"<Bot(id={self.id}, repo='{self.github_repo}', approved={self.is_approved})>"
