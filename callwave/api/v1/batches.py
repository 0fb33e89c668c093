# callwave/api/v1/batches.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from callwave.api.deps import get_user_id_flexible
from callwave.core.exceptions import ConfigurationError, VoiceAPIError
from callwave.db.session import get_db
from callwave.models.campaign import BatchCall
from callwave.models.recipient import Recipient
from callwave.schemas.batch import BatchCallResponse, PollRequest, PollResponse, RecipientResponse
from callwave.services import get_batch_poller, get_voice_client
from callwave.services.batch_service import BatchPoller, check_batch_status
from callwave.services.voice_client import VoiceClient

router = APIRouter()
log = logging.getLogger("callwave.batches")


def _get_batch_or_404(db: Session, user_id: str, batch_id: str) -> BatchCall:
    batch = db.query(BatchCall).filter(
        BatchCall.user_id == user_id,
        BatchCall.batch_id == batch_id
    ).first()
    if not batch:
        raise HTTPException(404, "Batch not found")
    return batch


@router.get("/", response_model=List[BatchCallResponse])
def list_batches(
    campaign_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """List batch-calling jobs"""
    query = db.query(BatchCall).filter(BatchCall.user_id == user_id)
    if campaign_id:
        query = query.filter(BatchCall.campaign_id == campaign_id)
    return query.order_by(BatchCall.created_at.desc()).offset(skip).limit(limit).all()


@router.post("/poll", response_model=PollResponse)
async def poll_batch(
    data: PollRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible),
    poller: BatchPoller = Depends(get_batch_poller)
):
    """
    Poll a batch until it reaches a terminal status or the polling cap.

    Runs to completion before responding (up to interval x max polls).
    """
    _get_batch_or_404(db, user_id, data.batch_id)

    if not poller.voice_client.configured:
        raise HTTPException(500, "ElevenLabs API key not configured")

    result = await poller.poll(data.batch_id, user_id)
    return PollResponse(batch_id=data.batch_id, completed=result.completed, poll_count=result.poll_count)


@router.get("/{batch_id}", response_model=BatchCallResponse)
def get_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Get a batch as last reconciled"""
    return _get_batch_or_404(db, user_id, batch_id)


@router.get("/{batch_id}/recipients", response_model=List[RecipientResponse])
def list_recipients(
    batch_id: str,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Recipients of a batch"""
    _get_batch_or_404(db, user_id, batch_id)
    query = db.query(Recipient).filter(Recipient.batch_id == batch_id)
    if status:
        query = query.filter(Recipient.status == status)
    return query.order_by(Recipient.id).all()


@router.post("/{batch_id}/status")
async def refresh_batch_status(
    batch_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible),
    voice_client: VoiceClient = Depends(get_voice_client)
):
    """Fetch the batch from the voice API once, update it and its campaign"""
    _get_batch_or_404(db, user_id, batch_id)
    try:
        return await check_batch_status(db, voice_client, batch_id, user_id=user_id)
    except ConfigurationError as e:
        raise HTTPException(500, str(e))
    except VoiceAPIError as e:
        raise HTTPException(502, f"Voice API error: {e.status_code} - {e.body}")
