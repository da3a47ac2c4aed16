"""Heroku account pool used to host deployments"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from app.db.database import Base


class HerokuAccount(Base):
    """A Heroku credential with a fixed number of app slots.

    ``used_count`` counts live deployments assigned to the account. It is only
    changed through conditional UPDATEs in ``account_allocator``.
    """

    __tablename__ = "heroku_accounts"
    __table_args__ = (
        CheckConstraint("used_count >= 0", name="ck_heroku_accounts_used_count"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    api_key = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    used_count = Column(Integer, default=0, nullable=False)
    max_deployments = Column(Integer, default=5, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    deployments = relationship("Deployment", back_populates="account")

    @property
    def spare_capacity(self) -> int:
        return self.max_deployments - self.used_count

    @property
    def masked_api_key(self) -> str:
        if not self.api_key or len(self.api_key) <= 8:
            return "****"
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"

    def __repr__(self):
        return f"<HerokuAccount(id={self.id}, email='{self.email}', used={self.used_count}/{self.max_deployments})>"
