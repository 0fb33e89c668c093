# callwave/services/webhook_service.py
"""
Inbound voice API webhooks: signature verification and event handling.
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from callwave.core.config import DEFAULT_USER_ID
from callwave.models.campaign import BatchCall
from callwave.models.webhook import WebhookLog
from callwave.services.batch_service import update_batch_row
from callwave.services.campaign_status import sync_campaign_status
from callwave.services.conversation_service import (
    conversation_values_from_webhook,
    link_recipient,
    save_conversation,
)

log = logging.getLogger("callwave.webhooks")

SIGNATURE_HEADERS = ("elevenlabs-signature", "x-elevenlabs-signature")
CONVERSATION_ENDED_EVENTS = frozenset({"conversation_ended", "post_call_transcription"})
BATCH_STATUS_EVENT = "batch_status_update"


class UnknownOwnerError(Exception):
    """No batch (and therefore no user) matches the conversation"""


def clean_secret(secret: str) -> str:
    """Secrets pasted into env files sometimes keep their quotes"""
    return secret.strip().strip("'\"")


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(clean_secret(secret).encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """
    Check a ``sha256=<hex>`` signature over the raw request body.

    Comparison is constant-time. A missing signature never verifies.
    """
    if not signature:
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))


def _record(db: Session, user_id: Optional[str], event_type: str, payload: Dict[str, Any],
            batch_id: Optional[str] = None, conversation_id: Optional[str] = None,
            status: Optional[str] = None) -> None:
    try:
        db.add(WebhookLog(
            user_id=user_id or DEFAULT_USER_ID,
            event_type=event_type,
            batch_id=batch_id,
            conversation_id=conversation_id,
            status=status,
            raw_data=payload
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"❌ Failed to record webhook log: {e}")


def _event_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get("data")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("webhook data must be a JSON object")
    return data


def handle_conversation_ended(db: Session, payload: Dict[str, Any]) -> str:
    """
    Store a finished conversation: full record, transcript, recipient link.

    Raises:
        UnknownOwnerError: when the conversation's batch is not ours
    """
    data = _event_data(payload)
    conversation_id = data.get("conversation_id")
    if not conversation_id:
        raise ValueError("conversation_id missing from webhook data")

    batch_call = (data.get("metadata") or {}).get("batch_call") or {}
    batch_id = batch_call.get("batch_call_id")
    recipient_id = batch_call.get("batch_call_recipient_id")
    log.info(f"📞 Conversation ended: {conversation_id} (batch={batch_id}, recipient={recipient_id})")

    batch = None
    if batch_id:
        batch = db.query(BatchCall).filter(BatchCall.batch_id == batch_id).first()
    if not batch:
        raise UnknownOwnerError(f"Unable to determine user for conversation {conversation_id}")

    values = conversation_values_from_webhook(data, batch.user_id, batch.campaign_id)
    save_conversation(db, values, transcript=data.get("transcript") or [])

    if recipient_id:
        try:
            link_recipient(db, recipient_id, conversation_id, data.get("status"), batch_id=batch_id)
        except Exception as e:
            db.rollback()
            log.error(f"❌ Error linking recipient {recipient_id} to {conversation_id}: {e}")

    _record(db, batch.user_id, payload.get("type"), payload,
            batch_id=batch_id, conversation_id=conversation_id, status=data.get("status"))
    return batch.user_id


def handle_batch_status_update(db: Session, payload: Dict[str, Any]) -> None:
    data = _event_data(payload)
    batch_id = data.get("batch_id") or data.get("id")
    if not batch_id:
        raise ValueError("batch_id missing from webhook data")

    status = data.get("status")
    log.info(f"📊 Batch status update: {batch_id} -> {status}")

    try:
        update_batch_row(db, batch_id, data)
    except Exception as e:
        db.rollback()
        log.error(f"❌ Error updating batch {batch_id}: {e}")
        raise

    sync_campaign_status(db, batch_id, status)

    owner = db.query(BatchCall.user_id).filter(BatchCall.batch_id == batch_id).first()
    _record(db, owner.user_id if owner else None, BATCH_STATUS_EVENT, payload, batch_id=batch_id, status=status)


def handle_event(db: Session, payload: Dict[str, Any]) -> bool:
    """
    Dispatch a verified webhook payload.

    Returns:
        True if the event type was handled, False if it was ignored
    """
    event_type = payload.get("type")
    log.info(f"🔔 Webhook type: {event_type}")

    if event_type in CONVERSATION_ENDED_EVENTS:
        handle_conversation_ended(db, payload)
        return True
    if event_type == BATCH_STATUS_EVENT:
        handle_batch_status_update(db, payload)
        return True

    log.info(f"ℹ️ Ignoring webhook type: {event_type}")
    return False
