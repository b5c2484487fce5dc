"""Uploaded file metadata."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from backend.app.db.base_class import Base


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    path = Column(String(255), nullable=False)
    type = Column(String(100), nullable=True)
    size = Column(Integer, nullable=True)
    related_type = Column(String(20), nullable=True)
    related_id = Column(Integer, nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
