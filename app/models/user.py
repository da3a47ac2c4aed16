"""User model for Firebase authenticated users"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.database import Base


class User(Base):
    """Platform user with a cached coin balance.

    ``coins`` is a projection of the coin ledger; it is only ever changed in
    the same transaction as the ledger entry that explains it.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    coins = Column(Integer, default=0, nullable=False)
    referral_code = Column(String(20), unique=True, nullable=False, index=True)
    referred_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    bots = relationship("Bot", back_populates="owner", cascade="all, delete-orphan")
    deployments = relationship("Deployment", back_populates="user", cascade="all, delete-orphan")
    referrer = relationship("User", remote_side=[id], foreign_keys=[referred_by])

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', coins={self.coins})>"
