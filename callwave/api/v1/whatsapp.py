# callwave/api/v1/whatsapp.py
"""
WhatsApp pharmacy bot: inbound YCloud webhook.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from callwave.core import config
from callwave.core.exceptions import ConfigurationError, ExternalServiceError
from callwave.db.session import get_db
from callwave.services import get_pharmacy_service
from callwave.services.pharmacy_service import PharmacyService

router = APIRouter()
log = logging.getLogger("callwave.whatsapp")

INBOUND_MESSAGE_EVENT = "whatsapp.inbound_message.received"


@router.get("/webhook", response_class=PlainTextResponse)
def verify_webhook(request: Request):
    """Webhook verification: echo the challenge"""
    challenge = request.query_params.get("hub.challenge")
    return challenge or "Webhook active"


@router.post("/webhook")
async def whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
    service: PharmacyService = Depends(get_pharmacy_service)
):
    """
    Inbound WhatsApp messages from YCloud.

    Text and image messages get an assistant reply; everything else is acknowledged.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")

    if payload.get("type") != INBOUND_MESSAGE_EVENT or not payload.get("whatsappInboundMessage"):
        return {"success": True, "handled": False}

    # Webhooks carry no auth header; leads belong to the configured pharmacy owner
    user_id = config.DEFAULT_PHARMACY_USER_ID or config.DEFAULT_USER_ID

    msg = payload["whatsappInboundMessage"]
    customer_phone = msg.get("from")
    business_phone = msg.get("to")

    if msg.get("type") == "text" and (msg.get("text") or {}).get("body"):
        text, image_url = msg["text"]["body"], None
    elif msg.get("type") == "image" and msg.get("image"):
        text, image_url = "Prescription image received", msg["image"].get("link")
    else:
        log.info(f"ℹ️ Ignoring WhatsApp message type: {msg.get('type')}")
        return {"success": True, "handled": False}

    log.info(f"💬 From: {customer_phone}, To: {business_phone}, Message: {text[:50]}")

    try:
        reply, sent = await service.handle_inbound(
            db, user_id, customer_phone, business_phone, text,
            image_url=image_url, message_id=msg.get("id") or msg.get("wamid")
        )
    except (ConfigurationError, ExternalServiceError) as e:
        log.error(f"❌ Pharmacy chat failed: {e}")
        raise HTTPException(502, "Pharmacy chat failed")

    return {
        "success": True,
        "handled": True,
        "reply_sent": sent,
        "order_complete": reply.order_complete,
        "order_lead_id": reply.order_lead_id
    }
