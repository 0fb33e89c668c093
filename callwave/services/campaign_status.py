# callwave/services/campaign_status.py
"""
Project a batch's status onto its owning campaign.

Shared by the poller, the manual status check and the webhook, so it must be
safe to call repeatedly with the same status.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from callwave.models.campaign import BatchCall, Campaign, CampaignStatus

log = logging.getLogger("callwave.campaign_status")

_COMPLETED = frozenset({"completed", "successful", "success"})
_FAILED = frozenset({"failed", "error", "cancelled"})


def project_campaign_status(batch_status: Optional[str]) -> Optional[CampaignStatus]:
    """
    Map a batch status to a campaign status.

    Returns None for every status that must leave the campaign untouched
    (pending, in_progress, unknown values, None).
    """
    if not batch_status:
        return None
    normalized = str(batch_status).strip().lower()
    if normalized in _COMPLETED:
        return CampaignStatus.COMPLETED
    if normalized in _FAILED:
        return CampaignStatus.FAILED
    return None


def sync_campaign_status(
    db: Session,
    batch_id: str,
    batch_status: Optional[str],
    user_id: Optional[str] = None
) -> Optional[CampaignStatus]:
    """
    Update the campaign that owns ``batch_id`` when ``batch_status`` is terminal.

    Non-terminal statuses return None without touching the database.
    Errors are logged and swallowed so callers keep processing.

    Returns:
        The status written, or None if nothing was written
    """
    campaign_status = project_campaign_status(batch_status)
    if campaign_status is None:
        return None

    try:
        query = db.query(BatchCall.campaign_id).filter(BatchCall.batch_id == batch_id)
        if user_id:
            query = query.filter(BatchCall.user_id == user_id)
        row = query.first()

        if not row or not row.campaign_id:
            log.info(f"ℹ️ No campaign linked to batch {batch_id}")
            return None

        updated = db.query(Campaign).filter(
            Campaign.campaign_id == row.campaign_id
        ).update(
            {"status": campaign_status, "updated_at": datetime.utcnow()},
            synchronize_session=False
        )
        db.commit()

        if updated:
            log.info(f"✅ Campaign {row.campaign_id} status -> {campaign_status.value}")
            return campaign_status
        log.warning(f"⚠️ Campaign {row.campaign_id} for batch {batch_id} not found")
        return None

    except Exception as e:
        db.rollback()
        log.error(f"❌ Error updating campaign status for batch {batch_id}: {e}")
        return None
