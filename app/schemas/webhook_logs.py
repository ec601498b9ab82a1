from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Any, Dict, List
from app.models.webhook_log import WebhookLogStatus, WebhookOutcome


class WebhookLogResponse(BaseModel):
    id: int
    tenant_id: Optional[int] = None
    platform: str
    event_type: str
    external_id: Optional[str] = None
    event_status: Optional[str] = None
    payload: Dict[str, Any] = {}
    status: WebhookLogStatus
    outcome: Optional[WebhookOutcome] = None
    error_message: Optional[str] = None
    deal_id: Optional[int] = None
    needs_review: bool = False
    replay_of_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WebhookLogListResponse(BaseModel):
    items: List[WebhookLogResponse]
    total: int


class ReplayResponse(BaseModel):
    task_id: str
    message: str
