# callwave/api/v1/conversations.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from callwave.api.deps import get_user_id_flexible
from callwave.core.exceptions import ConfigurationError, VoiceAPIError
from callwave.db.session import get_db
from callwave.models.conversation import Conversation
from callwave.schemas.conversation import ConversationDetail, ConversationResponse
from callwave.services import get_voice_client
from callwave.services.conversation_service import (
    conversation_values_from_details,
    get_transcript,
    save_conversation,
)
from callwave.services.voice_client import VoiceClient

router = APIRouter()
log = logging.getLogger("callwave.conversations")


@router.get("/", response_model=List[ConversationResponse])
def list_conversations(
    campaign_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    call_successful: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """List calls"""
    query = db.query(Conversation).filter(Conversation.user_id == user_id)
    if campaign_id:
        query = query.filter(Conversation.campaign_id == campaign_id)
    if batch_id:
        query = query.filter(Conversation.batch_id == batch_id)
    if call_successful:
        query = query.filter(Conversation.call_successful == call_successful)
    return query.order_by(Conversation.created_at.desc()).offset(skip).limit(limit).all()


@router.get("/{conversation_id}", response_model=ConversationDetail)
def get_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Get one call with its transcript"""
    conversation = db.query(Conversation).filter(
        Conversation.user_id == user_id,
        Conversation.conversation_id == conversation_id
    ).first()
    if not conversation:
        raise HTTPException(404, "Conversation not found")

    detail = ConversationDetail.model_validate(conversation)
    detail.transcript = get_transcript(db, conversation_id)
    return detail


@router.post("/{conversation_id}/refresh")
async def refresh_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible),
    voice_client: VoiceClient = Depends(get_voice_client)
):
    """Fetch conversation details from the voice API and store them"""
    existing = db.query(Conversation).filter(Conversation.conversation_id == conversation_id).first()
    if existing and existing.user_id != user_id:
        raise HTTPException(404, "Conversation not found")

    try:
        data = await voice_client.get_conversation(conversation_id)
    except ConfigurationError as e:
        raise HTTPException(500, str(e))
    except VoiceAPIError as e:
        raise HTTPException(502, f"Voice API error: {e.status_code} - {e.body}")

    data.setdefault("conversation_id", conversation_id)
    try:
        transcript = data.get("transcript") or None
        save_conversation(db, conversation_values_from_details(data, user_id), transcript=transcript)
    except Exception as e:
        db.rollback()
        log.error(f"❌ Error storing conversation {conversation_id}: {e}")

    return data
