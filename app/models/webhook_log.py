import enum
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base, JSONPayload


class WebhookLogStatus(str, enum.Enum):
    RECEIVED = "received"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class WebhookOutcome(str, enum.Enum):
    CREATED = "created"
    REVERSED = "reversed"
    DUPLICATE = "duplicate"
    ALREADY_REVERSED = "already_reversed"
    IGNORED_STATUS = "ignored_status"
    UNSUPPORTED_EVENT = "unsupported_event"
    ORPHAN_REVERSAL = "orphan_reversal"
    PARTIAL_WRITE_FAILURE = "partial_write_failure"
    UNAUTHENTICATED = "unauthenticated"
    UNKNOWN_PLATFORM = "unknown_platform"
    MALFORMED_PAYLOAD = "malformed_payload"
    INTERNAL_ERROR = "internal_error"


class WebhookLogEntry(Base):
    """Append-only record of every webhook delivery, used for audit, replay and dedup"""
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True, index=True)
    platform = Column(String(50), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, default="unknown")
    external_id = Column(String(255), nullable=True, index=True)
    event_status = Column(String(20), nullable=True)
    payload = Column(JSONPayload, nullable=False, default=dict)

    status = Column(Enum(WebhookLogStatus), nullable=False, default=WebhookLogStatus.RECEIVED, index=True)
    outcome = Column(Enum(WebhookOutcome), nullable=True, index=True)
    error_message = Column(Text, nullable=True)
    deal_id = Column(Integer, ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, index=True)
    needs_review = Column(Boolean, nullable=False, default=False, index=True)
    replay_of_id = Column(Integer, ForeignKey("webhook_logs.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    deal = relationship("Deal", foreign_keys=[deal_id])
    replay_of = relationship("WebhookLogEntry", remote_side=[id])

    __table_args__ = (
        Index("ix_webhook_logs_tenant_platform_external", "tenant_id", "platform", "external_id"),
    )
