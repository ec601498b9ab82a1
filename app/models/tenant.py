from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class Tenant(Base):
    """Company/account boundary. Every CRM row is scoped by tenant_id."""
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    plan = Column(String(50), nullable=False, default="starter")  # starter, pro, enterprise
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    users = relationship("User", back_populates="tenant")
    credentials = relationship("PlatformCredential", back_populates="tenant")
