from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False, default=2)
    profile_image = Column(String(255), default="default.png", server_default="default.png")
    phone = Column(String(20), nullable=True)
    position = Column(String(100), nullable=True)
    theme = Column(String(10), nullable=False, default="light", server_default="light")
    status = Column(String(10), nullable=False, default="active", server_default="active")
    api_token = Column(String(100), nullable=True, index=True)
    api_token_expiry = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    role = relationship("Role")
    events = relationship("Event", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    reminders = relationship("Reminder", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
