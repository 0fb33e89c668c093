from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class Medicine(BaseModel):
    name: str
    quantity: Optional[str] = None
    notes: Optional[str] = None


class CustomerData(BaseModel):
    """Order details the assistant has collected so far"""
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    medicines: List[Medicine] = Field(default_factory=list)
    is_complete: bool = Field(False, alias="isComplete")

    class Config:
        populate_by_name = True


class ChatReply(BaseModel):
    response: str
    customer_data: CustomerData
    order_complete: bool = False
    order_lead_id: Optional[int] = None


class WhatsAppMessageResponse(BaseModel):
    id: int
    message_id: Optional[str] = None
    phone: str
    business_phone: Optional[str] = None
    text: Optional[str] = None
    message_type: Optional[str] = None
    direction: str
    status: Optional[str] = None
    meta_data: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderLeadResponse(BaseModel):
    id: int
    user_id: str
    customer_phone: str
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    medicines: Optional[List[Dict[str, Any]]] = None
    customer_data_complete: bool = False
    order_total: Optional[float] = None
    prescription_image_url: Optional[str] = None
    lead_status: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
