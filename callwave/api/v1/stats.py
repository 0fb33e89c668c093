# callwave/api/v1/stats.py
"""Dashboard metrics over stored conversations"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from callwave.api.deps import get_user_id_flexible
from callwave.db.session import get_db
from callwave.models.campaign import Campaign
from callwave.models.conversation import Conversation
from callwave.schemas.conversation import CallMetrics, CampaignMetrics, DashboardStats

router = APIRouter()
log = logging.getLogger("callwave.stats")


def call_metrics(db: Session, user_id: str, campaign_id: Optional[str] = None) -> CallMetrics:
    """Totals for a user, optionally narrowed to one campaign"""
    query = db.query(
        func.count(Conversation.id).label('total'),
        func.sum(case((Conversation.call_successful == "success", 1), else_=0)).label('connected'),
        func.coalesce(func.sum(Conversation.call_duration_secs), 0).label('seconds'),
        func.coalesce(func.sum(Conversation.total_cost), 0).label('cost')
    ).filter(Conversation.user_id == user_id)

    if campaign_id:
        query = query.filter(Conversation.campaign_id == campaign_id)

    row = query.one()
    total = row.total or 0
    connected = int(row.connected or 0)

    return CallMetrics(
        total_calls=total,
        total_connected=connected,
        success_rate=round(connected * 100.0 / total, 2) if total else 0.0,
        total_minutes=round(float(row.seconds) / 60.0, 2),
        total_cost=round(float(row.cost), 4)
    )


@router.get("", response_model=DashboardStats)
def get_stats(
    campaign_id: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id_flexible)
):
    """Call statistics, overall and per campaign"""
    campaigns_query = db.query(Campaign).filter(Campaign.user_id == user_id)
    if campaign_id:
        campaigns_query = campaigns_query.filter(Campaign.campaign_id == campaign_id)

    per_campaign = []
    for campaign in campaigns_query.order_by(Campaign.created_at.desc()).all():
        metrics = call_metrics(db, user_id, campaign.campaign_id)
        per_campaign.append(CampaignMetrics(
            campaign_id=campaign.campaign_id,
            name=campaign.name,
            status=campaign.status.value,
            launched_at=campaign.launched_at,
            **metrics.model_dump()
        ))

    return DashboardStats(
        overall=call_metrics(db, user_id, campaign_id),
        campaigns=per_campaign
    )
