# callwave/api/v1/webhooks.py
import json
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from callwave.api.deps import get_user_id_flexible
from callwave.core import config
from callwave.db.session import get_db
from callwave.models.webhook import WebhookLog
from callwave.schemas.webhook import WebhookAck, WebhookLogResponse
from callwave.services.webhook_service import (
    SIGNATURE_HEADERS,
    UnknownOwnerError,
    handle_event,
    verify_signature,
)

router = APIRouter()
log = logging.getLogger("callwave.webhooks")


@router.post("/voice", response_model=WebhookAck)
async def voice_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Voice API webhook (conversation ended, batch status update).

    The `sha256=<hex>` signature header is checked against an HMAC-SHA256 of
    the raw body before anything is parsed or written.
    """
    secret = config.ELEVENLABS_WEBHOOK_SECRET
    if not secret:
        log.error("❌ Webhook secret not configured")
        raise HTTPException(500, "Webhook secret not configured")

    body = await request.body()
    signature = next((request.headers.get(h) for h in SIGNATURE_HEADERS if request.headers.get(h)), None)

    if not verify_signature(secret, body, signature):
        log.warning(f"🚫 Invalid webhook signature (present={bool(signature)})")
        raise HTTPException(401, "Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(400, "Invalid JSON body")

    try:
        handled = handle_event(db, payload)
    except UnknownOwnerError as e:
        log.error(f"❌ {e}")
        raise HTTPException(400, "Unable to determine user_id")
    except ValueError as e:
        raise HTTPException(400, str(e))

    return WebhookAck(event_type=payload.get("type"), handled=handled)


@router.get("/logs", response_model=List[WebhookLogResponse])
def get_webhook_logs(
    limit: int = Query(50, le=200),
    skip: int = 0,
    event_type: Optional[str] = None,
    batch_id: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Get webhook logs"""
    query = db.query(WebhookLog).filter(WebhookLog.user_id == user_id)

    if event_type:
        query = query.filter(WebhookLog.event_type == event_type)

    if batch_id:
        query = query.filter(WebhookLog.batch_id == batch_id)

    # Get recent logs first
    return query.order_by(WebhookLog.created_at.desc()).offset(skip).limit(limit).all()


@router.delete("/logs/cleanup")
def cleanup_old_logs(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Clean up webhook logs older than specified days"""
    cutoff_date = datetime.utcnow() - timedelta(days=days)

    deleted_count = db.query(WebhookLog).filter(
        WebhookLog.user_id == user_id,
        WebhookLog.created_at < cutoff_date
    ).delete()

    db.commit()

    return {"deleted": deleted_count, "cutoff_date": cutoff_date}
