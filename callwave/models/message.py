# callwave/models/message.py
"""
WhatsApp pharmacy bot: messages and the order leads extracted from them.
"""
from sqlalchemy import Column, String, Text, JSON, Boolean, Float
from callwave.models.base import BaseModel


class WhatsAppMessage(BaseModel):
    """Store all WhatsApp messages (incoming and outgoing)"""
    __tablename__ = "whatsapp_messages"

    message_id = Column(String(255), unique=True, index=True, nullable=True)
    phone = Column(String(50), index=True, nullable=False)
    business_phone = Column(String(50), nullable=True)
    text = Column(Text, nullable=True)
    message_type = Column(String(50), nullable=True)  # 'text', 'image'
    direction = Column(String(20), nullable=False)  # 'incoming' or 'outgoing'
    status = Column(String(20), nullable=True, default='sent')  # 'sent', 'failed', 'received'
    meta_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<WhatsAppMessage {self.direction} {self.phone}>"


class OrderLead(BaseModel):
    """Pharmacy order collected over WhatsApp, one open lead per customer"""
    __tablename__ = "order_leads"

    customer_phone = Column(String(50), index=True, nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_address = Column(Text, nullable=True)
    medicines = Column(JSON, nullable=True, default=list)  # [{"name": ..., "quantity": ...}]
    customer_data_complete = Column(Boolean, default=False)
    order_total = Column(Float, nullable=True)
    prescription_image_url = Column(String(1000), nullable=True)
    lead_status = Column(String(20), default="new")  # new, contacted, confirmed, delivered, cancelled
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<OrderLead {self.customer_phone} - {self.lead_status}>"
