"""Coin ledger entries"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.database import Base


class TransactionType(str, PyEnum):
    DEPLOYMENT = "deployment"
    TRANSFER = "transfer"
    REFERRAL = "referral"
    REFERRAL_BONUS = "referral_bonus"
    DAILY = "daily"
    ADMIN = "admin"
    REFUND = "refund"
    WELCOME = "welcome"


class CoinTransaction(Base):
    """Immutable ledger entry moving ``amount`` coins from sender to receiver.

    A null sender is a system credit, a null receiver a system debit. A user's
    balance is sum(amount as receiver) - sum(amount as sender).
    """

    __tablename__ = "coin_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_coin_transactions_amount_positive"),
        Index("ix_coin_transactions_receiver_type_created", "receiver_id", "type", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False, index=True)
    description = Column(String(255), nullable=True)
    deployment_id = Column(UUID(as_uuid=True), ForeignKey("deployments.id", ondelete="SET NULL"), nullable=True)
    # Unique when set: replaying a keyed write returns the original entry
    idempotency_key = Column(String(120), unique=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    def direction_for(self, user_id: int) -> str:
        return "in" if self.receiver_id == user_id else "out"

    def __repr__(self):
        return f"<CoinTransaction(id={self.id}, type='{self.type}', amount={self.amount})>"
