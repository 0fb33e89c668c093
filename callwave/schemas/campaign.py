from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any
from datetime import datetime

from callwave.models.campaign import CampaignStatus


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    agent_id: str = Field(..., min_length=1, description="Voice agent ID on the voice API")
    phone_number: Optional[str] = Field(None, description="Caller phone number shown to recipients")
    phone_number_id: Optional[str] = Field(None, description="Voice API phone number ID")
    campaign_start: str = Field("Now", description="'Now' or 'Custom'")
    start_date: Optional[datetime] = None

    @field_validator('campaign_start')
    @classmethod
    def validate_campaign_start(cls, v):
        if v not in ("Now", "Custom"):
            raise ValueError("campaign_start must be 'Now' or 'Custom'")
        return v


class CampaignResponse(BaseModel):
    id: int
    user_id: str
    campaign_id: str
    name: str
    status: CampaignStatus
    agent_id: str
    phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None
    campaign_start: Optional[str] = None
    start_date: Optional[datetime] = None
    launched_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LaunchRequest(BaseModel):
    """
    Launch a campaign as a batch-calling job.

    Each recipient is a free-form mapping: ``phone`` (or ``phone_number``) is
    required, every other field except ``name`` and ``id`` is forwarded to
    the agent as a dynamic variable.
    """
    call_name: Optional[str] = Field(None, description="Defaults to the campaign name")
    agent_id: Optional[str] = Field(None, description="Defaults to the campaign agent")
    phone_number_id: Optional[str] = Field(None, description="Defaults to the campaign phone number ID")
    scheduled_time_unix: Optional[int] = Field(None, description="Defaults to now")
    recipients: List[Dict[str, Any]] = Field(..., min_length=1)

    @field_validator('recipients')
    @classmethod
    def validate_recipients_have_phone(cls, v):
        for idx, recipient in enumerate(v):
            phone = recipient.get("phone") or recipient.get("phone_number")
            if not phone or not str(phone).strip():
                raise ValueError(f"Recipient #{idx + 1} has no phone number")
        return v


class LaunchResponse(BaseModel):
    success: bool
    campaign_id: str
    batch_id: Optional[str] = None
    status: Optional[str] = None
    polling_started: bool = False
    external_response: Dict[str, Any] = Field(default_factory=dict)
