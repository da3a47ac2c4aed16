"""Platform maintenance switch (single row) and its change history"""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.db.database import Base

MAINTENANCE_ROW_ID = 1


class MaintenanceSource(str, PyEnum):
    ADMIN = "admin"
    FORCE = "force"
    # Scheduled window ran out
    AUTO = "auto"


class MaintenanceMode(Base):
    __tablename__ = "maintenance_mode"

    id = Column(Integer, primary_key=True, default=MAINTENANCE_ROW_ID)
    is_active = Column(Boolean, default=False, nullable=False)
    message = Column(String(500), nullable=True)
    # Naive UTC; the supervisor switches maintenance off once it has passed
    end_time = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<MaintenanceMode(active={self.is_active}, end_time={self.end_time})>"


class MaintenanceEvent(Base):
    """One change of the maintenance switch."""

    __tablename__ = "maintenance_events"

    id = Column(Integer, primary_key=True)
    is_active = Column(Boolean, nullable=False)
    message = Column(String(500), nullable=True)
    end_time = Column(DateTime, nullable=True)
    source = Column(String(20), default=MaintenanceSource.ADMIN.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<MaintenanceEvent(active={self.is_active}, source='{self.source}')>"
