from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime


class ConversationResponse(BaseModel):
    id: int
    user_id: str
    conversation_id: str
    campaign_id: Optional[str] = None
    batch_id: Optional[str] = None
    agent_id: Optional[str] = None
    external_recipient_id: Optional[str] = None
    phone_number: Optional[str] = None
    contact_name: Optional[str] = None
    status: Optional[str] = None
    call_successful: Optional[str] = None
    call_duration_secs: Optional[int] = 0
    total_cost: Optional[float] = 0
    start_time_unix: Optional[int] = None
    accepted_time_unix: Optional[int] = None
    conversation_summary: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    meta_data: Optional[Dict[str, Any]] = None
    dynamic_variables: Optional[Dict[str, Any]] = None
    has_audio: Optional[bool] = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ConversationDetail(ConversationResponse):
    transcript: List[Dict[str, Any]] = []


class CallMetrics(BaseModel):
    total_calls: int = 0
    total_connected: int = 0
    success_rate: float = 0.0
    total_minutes: float = 0.0
    total_cost: float = 0.0


class CampaignMetrics(CallMetrics):
    campaign_id: str
    name: str
    status: str
    launched_at: Optional[datetime] = None


class DashboardStats(BaseModel):
    overall: CallMetrics
    campaigns: List[CampaignMetrics] = []
