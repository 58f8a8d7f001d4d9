from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON, Index
from Database.base import Base  # Import shared Base
from datetime import datetime


class Alert(Base):
    """Alert raised for a vulnerability affecting tracked applications"""
    __tablename__ = "alerts"

    id = Column(String(128), primary_key=True)  # alert-<vulnerability id>-<ms>-<seq>
    user_id = Column(String(255), nullable=False, index=True)
    message = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, index=True)  # CRITICAL, HIGH, MEDIUM, LOW
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    vulnerability_id = Column(String(50), nullable=False, index=True)
    app_ids = Column(JSON, default=list)
    read = Column(Boolean, default=False, nullable=False, index=True)

    __table_args__ = (
        Index('idx_alert_user_vuln', 'user_id', 'vulnerability_id'),
        Index('idx_alert_user_timestamp', 'user_id', 'timestamp'),
    )
