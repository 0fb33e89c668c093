# callwave/models/conversation.py
"""
Call outcomes reported by the voice API.
"""
from sqlalchemy import Column, String, Text, JSON, Integer, Float, Boolean, BigInteger
from callwave.models.base import BaseModel


class Conversation(BaseModel):
    """One realized call; may start as a placeholder written by the poller"""
    __tablename__ = "conversations"

    conversation_id = Column(String(255), unique=True, index=True, nullable=False)
    campaign_id = Column(String(100), index=True, nullable=True)
    batch_id = Column(String(255), index=True, nullable=True)
    agent_id = Column(String(255), nullable=True)
    external_recipient_id = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    contact_name = Column(String(255), nullable=True)
    status = Column(String(50), nullable=True)
    call_successful = Column(String(50), nullable=True)  # 'success', 'failure', 'unknown'
    call_duration_secs = Column(Integer, default=0)
    total_cost = Column(Float, default=0)
    start_time_unix = Column(BigInteger, nullable=True)
    accepted_time_unix = Column(BigInteger, nullable=True)
    conversation_summary = Column(Text, nullable=True)
    analysis = Column(JSON, nullable=True)
    meta_data = Column(JSON, nullable=True)
    dynamic_variables = Column(JSON, nullable=True)
    has_audio = Column(Boolean, default=False)

    def __repr__(self):
        return f"<Conversation {self.conversation_id} - {self.status}>"


class Transcript(BaseModel):
    """Full transcript of a conversation, one row per conversation"""
    __tablename__ = "transcripts"

    conversation_id = Column(String(255), unique=True, index=True, nullable=False)
    full_transcript = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Transcript {self.conversation_id}>"
