"""Role model for Flopy CRM users."""

from sqlalchemy import Column, DateTime, Integer, String, func

from backend.app.db.base_class import Base


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
