# callwave/models/webhook.py
"""
Webhook activity logging models.
"""
from sqlalchemy import Column, String, JSON
from callwave.models.base import BaseModel


class WebhookLog(BaseModel):
    """Log every verified webhook delivered by the voice API"""
    __tablename__ = "webhook_logs"

    event_type = Column(String(50), index=True)  # 'conversation_ended', 'batch_status_update', ...
    batch_id = Column(String(255), nullable=True)
    conversation_id = Column(String(255), nullable=True)
    status = Column(String(50), nullable=True)
    raw_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<WebhookLog {self.event_type} - {self.conversation_id or self.batch_id}>"
