# callwave/services/conversation_service.py
"""
Conversation persistence.

Conversations reach the database from three directions: placeholders written
by the batch poller, full records from the post-call webhook, and on-demand
detail fetches. All of them are keyed by the external conversation ID and
written with INSERT ... ON CONFLICT.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from callwave.db.upsert import upsert
from callwave.models.conversation import Conversation, Transcript
from callwave.models.recipient import Recipient

log = logging.getLogger("callwave.conversation_service")

# Columns a full record may overwrite on an existing (possibly placeholder) row.
# user_id and campaign_id are written on insert only.
DETAIL_COLUMNS = [
    "batch_id", "agent_id", "external_recipient_id",
    "phone_number", "contact_name", "status", "call_successful",
    "call_duration_secs", "total_cost", "start_time_unix", "accepted_time_unix",
    "conversation_summary", "analysis", "meta_data", "dynamic_variables", "has_audio",
]


def _dig(data: Optional[dict], *keys, default=None):
    """Nested dict lookup that tolerates missing levels"""
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def upsert_conversation_placeholder(
    db: Session,
    conversation_id: str,
    user_id: str,
    status: Optional[str] = None,
    campaign_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    external_recipient_id: Optional[str] = None,
    phone_number: Optional[str] = None,
    contact_name: Optional[str] = None,
    dynamic_variables: Optional[Dict[str, Any]] = None
) -> None:
    """
    Make sure a conversation row exists for ``conversation_id``.

    An existing row (placeholder or full) is left as is.
    """
    upsert(
        db,
        Conversation,
        {
            "conversation_id": conversation_id,
            "user_id": user_id,
            "status": status,
            "campaign_id": campaign_id,
            "batch_id": batch_id,
            "external_recipient_id": external_recipient_id,
            "phone_number": phone_number,
            "contact_name": contact_name,
            "dynamic_variables": dynamic_variables,
        },
        conflict_columns=["conversation_id"]
    )


def upsert_transcript(db: Session, conversation_id: str, user_id: str, transcript: Optional[List[Any]]) -> None:
    upsert(
        db,
        Transcript,
        {
            "conversation_id": conversation_id,
            "user_id": user_id,
            "full_transcript": transcript or [],
        },
        conflict_columns=["conversation_id"],
        update_columns=["full_transcript"]
    )


def conversation_values_from_webhook(
    data: Dict[str, Any],
    user_id: str,
    campaign_id: Optional[str]
) -> Dict[str, Any]:
    """Column values for a ``conversation_ended`` webhook payload"""
    metadata = data.get("metadata") or {}
    dynamic_variables = _dig(data, "conversation_initiation_client_data", "dynamic_variables", default={}) or {}
    analysis = data.get("analysis") or {}

    return {
        "conversation_id": data["conversation_id"],
        "user_id": user_id,
        "campaign_id": campaign_id,
        "batch_id": _dig(metadata, "batch_call", "batch_call_id"),
        "agent_id": data.get("agent_id"),
        "external_recipient_id": _dig(metadata, "batch_call", "batch_call_recipient_id"),
        "phone_number": _dig(metadata, "phone_call", "external_number"),
        "contact_name": dynamic_variables.get("name") or data.get("contact_name"),
        "status": data.get("status"),
        "call_successful": analysis.get("call_successful"),
        "call_duration_secs": metadata.get("call_duration_secs") or 0,
        "total_cost": metadata.get("cost") or 0,
        "start_time_unix": metadata.get("start_time_unix_secs"),
        "accepted_time_unix": metadata.get("accepted_time_unix_secs"),
        "conversation_summary": analysis.get("transcript_summary"),
        "analysis": analysis,
        "meta_data": {**metadata, "dynamic_variables": dynamic_variables},
        "dynamic_variables": dynamic_variables,
        "has_audio": bool(data.get("has_audio")),
    }


def conversation_values_from_details(data: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Column values for a get-conversation API response"""
    metadata = data.get("metadata") or {}
    analysis = data.get("analysis") or {}
    dynamic_variables = _dig(data, "conversation_initiation_client_data", "dynamic_variables")

    return {
        "conversation_id": data["conversation_id"],
        "user_id": user_id,
        "batch_id": _dig(metadata, "batch_call", "batch_call_id") or _dig(metadata, "batch_call", "batch_id"),
        "agent_id": data.get("agent_id"),
        "external_recipient_id": (
            _dig(metadata, "batch_call", "batch_call_recipient_id") or _dig(metadata, "batch_call", "recipient_id")
        ),
        "phone_number": _dig(metadata, "phone_call", "external_number") or _dig(metadata, "phone_call", "phone_number"),
        "status": data.get("status"),
        "call_successful": analysis.get("call_successful"),
        "call_duration_secs": metadata.get("call_duration_secs") or 0,
        "total_cost": _dig(metadata, "charging", "call_charge") or metadata.get("cost") or 0,
        "start_time_unix": metadata.get("start_time_unix_secs") or metadata.get("start_time_unix"),
        "accepted_time_unix": metadata.get("accepted_time_unix_secs") or metadata.get("accepted_time_unix"),
        "conversation_summary": analysis.get("transcript_summary"),
        "analysis": analysis,
        "meta_data": metadata,
        "dynamic_variables": dynamic_variables,
        "has_audio": bool(data.get("has_audio")),
    }


def save_conversation(db: Session, values: Dict[str, Any], transcript: Optional[List[Any]] = None) -> None:
    """
    Upsert a full conversation record (and its transcript when given).

    Columns whose new value is None are not overwritten, so a detail fetch
    never erases what a webhook already stored.
    """
    update_columns = [c for c in DETAIL_COLUMNS if c in values and values[c] is not None]
    upsert(
        db,
        Conversation,
        {k: v for k, v in values.items() if v is not None},
        conflict_columns=["conversation_id"],
        update_columns=update_columns
    )
    if transcript is not None:
        upsert_transcript(db, values["conversation_id"], values["user_id"], transcript)
    db.commit()
    log.info(f"💾 Conversation {values['conversation_id']} saved")


def link_recipient(
    db: Session,
    external_recipient_id: str,
    conversation_id: str,
    status: Optional[str],
    batch_id: Optional[str] = None
) -> int:
    """Point the recipient row at its conversation. Returns rows updated."""
    query = db.query(Recipient).filter(Recipient.external_recipient_id == external_recipient_id)
    if batch_id:
        query = query.filter(Recipient.batch_id == batch_id)
    updated = query.update(
        {
            "conversation_id": conversation_id,
            "status": status,
            "updated_at": datetime.utcnow(),
        },
        synchronize_session=False
    )
    db.commit()
    return updated


def get_transcript(db: Session, conversation_id: str) -> List[Any]:
    row = db.query(Transcript).filter(Transcript.conversation_id == conversation_id).first()
    return (row.full_transcript or []) if row else []
