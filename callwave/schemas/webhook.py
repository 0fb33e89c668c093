from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class WebhookLogResponse(BaseModel):
    id: int
    user_id: str
    event_type: Optional[str] = None
    batch_id: Optional[str] = None
    conversation_id: Optional[str] = None
    status: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WebhookAck(BaseModel):
    success: bool = True
    event_type: Optional[str] = None
    handled: bool = True
