"""SQLAlchemy database models for the workflow store."""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON
from .database import Base


class WorkflowModel(Base):
    """Database model for workflow definitions."""
    __tablename__ = "workflows"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    trigger = Column(String, unique=True, index=True)  # "<class>.<method>[.<entity>]"
    definition = Column(JSON, nullable=False)  # Stores the complete workflow document
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
