# callwave/api/v1/pharmacy.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from callwave.api.deps import get_user_id_flexible
from callwave.db.session import get_db
from callwave.models.message import OrderLead, WhatsAppMessage
from callwave.schemas.message import OrderLeadResponse, WhatsAppMessageResponse
from callwave.services.pharmacy_service import _normalize_phone

router = APIRouter()
log = logging.getLogger("callwave.pharmacy")


@router.get("/orders", response_model=List[OrderLeadResponse])
def list_orders(
    lead_status: Optional[str] = None,
    complete: Optional[bool] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Order leads collected by the bot"""
    query = db.query(OrderLead).filter(OrderLead.user_id == user_id)
    if lead_status:
        query = query.filter(OrderLead.lead_status == lead_status)
    if complete is not None:
        query = query.filter(OrderLead.customer_data_complete == complete)
    return query.order_by(OrderLead.created_at.desc()).all()


@router.get("/messages/{phone}", response_model=List[WhatsAppMessageResponse])
def get_messages(
    phone: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Conversation with one customer, oldest first"""
    return db.query(WhatsAppMessage).filter(
        WhatsAppMessage.user_id == user_id,
        WhatsAppMessage.phone == _normalize_phone(phone)
    ).order_by(WhatsAppMessage.created_at.asc(), WhatsAppMessage.id.asc()).all()
