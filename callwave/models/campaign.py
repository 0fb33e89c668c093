# callwave/models/campaign.py
"""
Outbound calling campaign and the external batch-calling jobs it launches.
"""
import enum
from sqlalchemy import Column, String, Integer, BigInteger, DateTime, Enum as SQLEnum
from callwave.models.base import BaseModel


class CampaignStatus(str, enum.Enum):
    """Campaign lifecycle"""
    DRAFT = "Draft"
    LAUNCHED = "Launched"
    COMPLETED = "Completed"
    FAILED = "Failed"


class BatchStatus(str, enum.Enum):
    """Statuses reported by the voice API for a batch"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Campaign(BaseModel):
    __tablename__ = "campaigns"

    campaign_id = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    status = Column(
        SQLEnum(CampaignStatus, values_callable=lambda e: [m.value for m in e], name="campaignstatus"),
        default=CampaignStatus.DRAFT,
        nullable=False
    )
    agent_id = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    phone_number_id = Column(String(255), nullable=True)
    campaign_start = Column(String(20), default="Now")  # 'Now' or 'Custom'
    start_date = Column(DateTime, nullable=True)
    launched_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Campaign {self.name} - {self.status}>"


class BatchCall(BaseModel):
    """Handle to a batch-calling job running on the voice API"""
    __tablename__ = "batch_calls"

    batch_id = Column(String(255), unique=True, index=True, nullable=False)  # External job ID
    campaign_id = Column(String(100), index=True, nullable=True)
    batch_name = Column(String(255), nullable=True)
    agent_id = Column(String(255), nullable=True)
    phone_number_id = Column(String(255), nullable=True)
    scheduled_time_unix = Column(BigInteger, nullable=True)
    created_at_unix = Column(BigInteger, nullable=True)
    status = Column(String(50), default=BatchStatus.PENDING.value)  # Raw status string from the API
    total_calls_dispatched = Column(Integer, default=0)
    total_calls_scheduled = Column(Integer, default=0)
    last_updated_at_unix = Column(BigInteger, nullable=True)

    def __repr__(self):
        return f"<BatchCall {self.batch_id} - {self.status}>"
