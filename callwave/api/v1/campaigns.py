# callwave/api/v1/campaigns.py
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from callwave.api.deps import get_user_id_flexible
from callwave.core.exceptions import ConfigurationError, LaunchConflictError, VoiceAPIError
from callwave.db.session import get_db
from callwave.models.campaign import Campaign, CampaignStatus
from callwave.models.conversation import Conversation
from callwave.schemas.campaign import CampaignCreate, CampaignResponse, LaunchRequest, LaunchResponse
from callwave.schemas.conversation import ConversationResponse
from callwave.services import get_batch_poller, get_voice_client
from callwave.services.batch_service import BatchPoller, launch_campaign
from callwave.services.voice_client import VoiceClient

router = APIRouter()
log = logging.getLogger("callwave.campaigns")


def _get_campaign_or_404(db: Session, user_id: str, campaign_id: str) -> Campaign:
    campaign = db.query(Campaign).filter(
        Campaign.user_id == user_id,
        Campaign.campaign_id == campaign_id
    ).first()
    if not campaign:
        raise HTTPException(404, "Campaign not found")
    return campaign


@router.post("/", response_model=CampaignResponse)
def create_campaign(
    data: CampaignCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Create a campaign in Draft status"""
    campaign = Campaign(
        user_id=user_id,
        campaign_id=str(uuid.uuid4()),
        status=CampaignStatus.DRAFT,
        **data.model_dump()
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)

    log.info(f"📋 Campaign created: {campaign.campaign_id} ({campaign.name})")
    return campaign


@router.get("/", response_model=List[CampaignResponse])
def list_campaigns(
    skip: int = 0,
    limit: int = 50,
    status: Optional[CampaignStatus] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """List campaigns"""
    query = db.query(Campaign).filter(Campaign.user_id == user_id)
    if status:
        query = query.filter(Campaign.status == status)
    return query.order_by(Campaign.created_at.desc()).offset(skip).limit(limit).all()


@router.get("/{campaign_id}", response_model=CampaignResponse)
def get_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Get campaign details"""
    return _get_campaign_or_404(db, user_id, campaign_id)


@router.get("/{campaign_id}/conversations", response_model=List[ConversationResponse])
def list_campaign_conversations(
    campaign_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Calls made for a campaign"""
    _get_campaign_or_404(db, user_id, campaign_id)
    return db.query(Conversation).filter(
        Conversation.user_id == user_id,
        Conversation.campaign_id == campaign_id
    ).order_by(Conversation.created_at.desc()).all()


@router.post("/{campaign_id}/launch", response_model=LaunchResponse)
async def launch(
    campaign_id: str,
    data: LaunchRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible),
    voice_client: VoiceClient = Depends(get_voice_client),
    poller: BatchPoller = Depends(get_batch_poller)
):
    """
    Launch a campaign as a batch-calling job.

    **Recipients** are free-form objects. `phone` is required; every other
    field except `name` and `id` is passed to the agent as a dynamic variable:
    ```json
    {
      "recipients": [
        {"phone": "+15551234567", "name": "Ann", "clinic": "Acme"}
      ]
    }
    ```

    Batch status polling starts in the background once the batch is saved;
    this call does not wait for it.
    """
    campaign = _get_campaign_or_404(db, user_id, campaign_id)
    if campaign.status != CampaignStatus.DRAFT:
        raise HTTPException(409, f"Campaign already {campaign.status.value}")

    try:
        result = await launch_campaign(db, voice_client, campaign, data, user_id)
    except LaunchConflictError as e:
        raise HTTPException(409, str(e))
    except ConfigurationError as e:
        log.error(f"❌ Launch failed for {campaign_id}: {e}")
        raise HTTPException(500, str(e))
    except VoiceAPIError as e:
        raise HTTPException(502, f"Voice API error: {e.status_code} - {e.body}")

    polling_started = False
    if result.batch_saved:
        background_tasks.add_task(poller.poll_in_background, result.batch_id, user_id)
        polling_started = True
        log.info(f"🚀 Background polling scheduled for batch {result.batch_id}")

    return LaunchResponse(
        success=True,
        campaign_id=campaign_id,
        batch_id=result.batch_id,
        status=result.external_response.get("status"),
        polling_started=polling_started,
        external_response=result.external_response
    )
