# Database models
from .base import Base
from .tenant import Tenant
from .user import User, UserRole
from .platform_credential import PlatformCredential, Platform
from .deal import Deal, DealStage, DealSource
from .sale import Sale, SaleStatus
from .webhook_log import WebhookLogEntry, WebhookLogStatus, WebhookOutcome

__all__ = [
    "Base",
    "Tenant",
    "User",
    "UserRole",
    "PlatformCredential",
    "Platform",
    "Deal",
    "DealStage",
    "DealSource",
    "Sale",
    "SaleStatus",
    "WebhookLogEntry",
    "WebhookLogStatus",
    "WebhookOutcome",
]
