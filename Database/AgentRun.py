import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Text, JSON

from Database.base import Base


class AgentRun(Base):
    """Track alert cycle execution history"""
    __tablename__ = "agent_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_name = Column(String(100), index=True)
    status = Column(String(20), index=True)  # "running", "success", "failed"
    items_collected = Column(Integer, default=0)  # vulnerabilities fetched
    items_processed = Column(Integer, default=0)  # alerts stored
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    agent_run_metadata = Column(JSON, default=dict)
