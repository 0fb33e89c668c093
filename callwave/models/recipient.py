# callwave/models/recipient.py
from sqlalchemy import Column, String, JSON, UniqueConstraint
from callwave.models.base import BaseModel


class Recipient(BaseModel):
    """One phone number called as part of a batch"""
    __tablename__ = "recipients"
    __table_args__ = (
        UniqueConstraint('batch_id', 'external_recipient_id', name='uq_batch_recipient'),
    )

    batch_id = Column(String(255), index=True, nullable=False)
    external_recipient_id = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    contact_name = Column(String(255), nullable=True)
    status = Column(String(50), nullable=True)
    conversation_id = Column(String(255), index=True, nullable=True)
    conversation_initiation_client_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Recipient {self.external_recipient_id} ({self.phone_number}) - {self.status}>"
