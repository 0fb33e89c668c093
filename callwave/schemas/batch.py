from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime


class BatchCallResponse(BaseModel):
    id: int
    user_id: str
    batch_id: str
    campaign_id: Optional[str] = None
    batch_name: Optional[str] = None
    agent_id: Optional[str] = None
    phone_number_id: Optional[str] = None
    scheduled_time_unix: Optional[int] = None
    created_at_unix: Optional[int] = None
    status: Optional[str] = None
    total_calls_dispatched: Optional[int] = 0
    total_calls_scheduled: Optional[int] = 0
    last_updated_at_unix: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RecipientResponse(BaseModel):
    id: int
    batch_id: str
    external_recipient_id: str
    phone_number: Optional[str] = None
    contact_name: Optional[str] = None
    status: Optional[str] = None
    conversation_id: Optional[str] = None
    conversation_initiation_client_data: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PollRequest(BaseModel):
    batch_id: str = Field(..., min_length=1)


class PollResponse(BaseModel):
    success: bool = True
    batch_id: str
    completed: bool
    poll_count: int
