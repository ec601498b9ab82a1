import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class DealStage(str, enum.Enum):
    LEAD = "lead"
    QUALIFICATION = "qualification"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class DealSource(str, enum.Enum):
    MANUAL = "manual"
    HOTMART = "hotmart"
    KIWIFY = "kiwify"


class Deal(Base):
    """Sales-pipeline opportunity. Webhook deals are born closed_won and can only move to closed_lost."""
    __tablename__ = "deals"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(500), nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    value = Column(Numeric(12, 2), nullable=False, default=0)

    stage = Column(Enum(DealStage), nullable=False, default=DealStage.LEAD)
    probability = Column(Integer, nullable=False, default=0)
    source = Column(Enum(DealSource), nullable=False, default=DealSource.MANUAL)

    # Transaction id on the originating platform; NULL for manual deals
    external_id = Column(String(255), nullable=True, index=True)
    loss_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user = relationship("User", foreign_keys=[user_id])
    sale = relationship("Sale", back_populates="deal", uselist=False)

    __table_args__ = (
        # Concurrent deliveries of the same transaction collide here
        UniqueConstraint("tenant_id", "source", "external_id", name="uq_deals_tenant_source_external"),
    )
