from sqlalchemy import Column, String, DateTime, Boolean, Index, UniqueConstraint
from Database.base import Base  # Import shared Base
import uuid
from datetime import datetime


class Application(Base):
    """Tracked application owned by a user (soft-deletable)"""
    __tablename__ = "applications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)  # identity subject of the owner
    name = Column(String(255), nullable=False)
    vendor = Column(String(255), nullable=False)
    version = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    added_date = Column(DateTime, default=datetime.utcnow)

    # Soft-delete fields
    deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # Restoring reuses the soft-deleted row, so one row per tuple is enough
        UniqueConstraint('user_id', 'name', 'vendor', 'version', name='uq_application_identity'),
        Index('idx_application_user_added', 'user_id', 'added_date'),
    )
