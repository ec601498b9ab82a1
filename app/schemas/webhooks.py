from pydantic import BaseModel
from typing import Optional


class WebhookResponse(BaseModel):
    success: bool = True
    event: Optional[str] = None
    deal_id: Optional[int] = None
    message: str = "OK"


class WebhookErrorResponse(BaseModel):
    error: str
