from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.models.platform_credential import Platform


class IntegrationUpdate(BaseModel):
    """Omit secret to toggle is_active without rotating it"""
    secret: Optional[str] = Field(None, min_length=8, max_length=255)
    is_active: bool = True
    owner_user_id: Optional[int] = None


class IntegrationResponse(BaseModel):
    platform: Platform
    configured: bool
    is_active: bool
    secret_masked: str = ""
    owner_user_id: Optional[int] = None
    webhook_url: str
    updated_at: Optional[datetime] = None
