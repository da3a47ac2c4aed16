"""Deployment model: one running instance of a bot for a user"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.utils.constants import MAX_DEPLOYMENT_LOG_CHARS


class DeploymentStatus(str, PyEnum):
    PENDING = "pending"
    CONFIGURING = "configuring"
    ACTIVE = "active"
    FAILED = "failed"
    STOPPED = "stopped"


# Statuses the provisioning task is still working on
IN_PROGRESS_STATUSES = (DeploymentStatus.PENDING.value, DeploymentStatus.CONFIGURING.value)
TERMINAL_STATUSES = (DeploymentStatus.FAILED.value, DeploymentStatus.STOPPED.value)


def extend_journal(journal: str | None, line: str) -> str:
    """Journal with a timestamped line appended, trimmed to its tail."""
    stamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
    journal = f"{journal or ''}[{stamp}] {line}\n"
    if len(journal) > MAX_DEPLOYMENT_LOG_CHARS:
        journal = journal[-MAX_DEPLOYMENT_LOG_CHARS:]
    return journal


class Deployment(Base):
    """Deployment of a bot on a Heroku app.

    State machine: pending -> configuring -> active, any in-progress state -> failed,
    active -> stopped (admin emergency stop).
    """

    __tablename__ = "deployments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    bot_id = Column(UUID(as_uuid=True), ForeignKey("bots.id", ondelete="SET NULL"), nullable=True, index=True)
    account_id = Column(Integer, ForeignKey("heroku_accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(20), default=DeploymentStatus.PENDING.value, nullable=False, index=True)
    cost = Column(Integer, nullable=False)
    env_variables = Column(JSON, default=dict, nullable=False)
    logs = Column(Text, default="", nullable=False)
    app_name = Column(String(30), unique=True, nullable=False)
    heroku_app_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    # Set once the account slot has been given back (fail, delete or stop)
    account_released = Column(Boolean, default=False, nullable=False)
    activated_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    stopped_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="deployments")
    bot = relationship("Bot", back_populates="deployments")
    account = relationship("HerokuAccount", back_populates="deployments")

    def append_log(self, line: str) -> None:
        self.logs = extend_journal(self.logs, line)

    @property
    def env_count(self) -> int:
        return len(self.env_variables or {})

    def __repr__(self):
        return f"<Deployment(id={self.id}, app='{self.app_name}', status='{self.status}')>"
