# callwave/db/base.py
"""Import all models so Base.metadata knows every table"""
from callwave.models.base import Base

from callwave.models.campaign import Campaign, BatchCall
from callwave.models.recipient import Recipient
from callwave.models.conversation import Conversation, Transcript
from callwave.models.webhook import WebhookLog
from callwave.models.message import WhatsAppMessage, OrderLead

__all__ = ["Base"]
