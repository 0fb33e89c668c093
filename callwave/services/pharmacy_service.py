# callwave/services/pharmacy_service.py
"""
WhatsApp pharmacy ordering bot.

Inbound WhatsApp messages (YCloud) are answered by a generative model
(Gemini); the order details it extracts are kept on an OrderLead per
customer until the order is complete.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from callwave.core.config import (
    GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_MODEL,
    YCLOUD_API_KEY, YCLOUD_BASE_URL, VOICE_API_TIMEOUT
)
from callwave.core.exceptions import ConfigurationError, ExternalServiceError
from callwave.db.upsert import upsert
from callwave.models.message import OrderLead, WhatsAppMessage
from callwave.schemas.message import ChatReply, CustomerData

log = logging.getLogger("callwave.pharmacy")

ASSISTANT_PROMPT = """You are a pharmacy assistant taking a medicine order over WhatsApp.
Collect the customer's name, phone, delivery address and each medicine with its quantity.
Reply in the customer's language, ask for one missing detail at a time, and once everything
is collected confirm the order and say a person will take care of it.

Details collected so far: {previous}
Customer message: {message}"""

EXTRACT_PROMPT = """From this exchange return only JSON in exactly this format:
{{"name": string or null, "phone": string or null, "address": string or null,
"medicines": [{{"name": string, "quantity": string}}], "isComplete": true or false}}

Assistant reply: {reply}
Customer message: {message}
Previous: {previous}"""

_JSON_BLOCK = re.compile(r"\{.*\}", re.DOTALL)


def _normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Store phone numbers with a leading '+' so incoming and outgoing match"""
    if not phone:
        return phone
    phone = str(phone).strip()
    return phone if phone.startswith('+') else f'+{phone}'


class GeminiClient:
    """Minimal generateContent client"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 base_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = GEMINI_API_KEY if api_key is None else api_key
        self.model = model or GEMINI_MODEL
        self.base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self.timeout = VOICE_API_TIMEOUT if timeout is None else timeout
        self._transport = transport

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ConfigurationError("Gemini API key not configured")

        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(url, params={"key": self.api_key}, json=payload)

        if response.status_code != 200:
            log.error(f"❌ Gemini error: {response.status_code} - {response.text}")
            raise ExternalServiceError("Gemini", response.status_code, response.text)

        result = response.json()
        try:
            return result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ExternalServiceError("Gemini", response.status_code, "Unexpected response shape")


class YCloudClient:
    """Sends WhatsApp text messages through YCloud"""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = YCLOUD_API_KEY if api_key is None else api_key
        self.base_url = (base_url or YCLOUD_BASE_URL).rstrip("/")
        self.timeout = VOICE_API_TIMEOUT if timeout is None else timeout
        self._transport = transport

    async def send_text(self, from_phone: str, to_phone: str, text: str) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("YCloud API key not configured")

        payload = {"from": from_phone, "to": to_phone, "type": "text", "text": {"body": text}}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/v2/whatsapp/messages/send",
                headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
                json=payload
            )

        if response.status_code < 200 or response.status_code >= 300:
            log.error(f"🔴 YCloud API failed: {response.status_code} - {response.text}")
            raise ExternalServiceError("YCloud", response.status_code, response.text)
        return response.json()


def parse_customer_data(text: str, previous: CustomerData) -> CustomerData:
    """
    Parse the extraction reply. Falls back to ``previous`` (marked incomplete)
    when the model did not return usable JSON.
    """
    match = _JSON_BLOCK.search(text or "")
    if not match:
        return previous.model_copy(update={"is_complete": False})
    try:
        data = json.loads(match.group(0))
        parsed = CustomerData.model_validate(data)
    except (ValueError, TypeError):
        return previous.model_copy(update={"is_complete": False})

    # Keep what we already knew when the model drops a field
    return CustomerData(
        name=parsed.name or previous.name,
        phone=parsed.phone or previous.phone,
        address=parsed.address or previous.address,
        medicines=parsed.medicines or previous.medicines,
        is_complete=parsed.is_complete
    )


class PharmacyService:
    """Conversation handling for the pharmacy bot"""

    def __init__(self, gemini: GeminiClient, ycloud: Optional[YCloudClient] = None):
        self.gemini = gemini
        self.ycloud = ycloud

    # ────────────────────────────────────────────
    # Leads
    # ────────────────────────────────────────────

    def get_open_lead(self, db: Session, user_id: str, phone: str) -> Optional[OrderLead]:
        return db.query(OrderLead).filter(
            OrderLead.user_id == user_id,
            OrderLead.customer_phone == phone,
            OrderLead.customer_data_complete == False
        ).order_by(OrderLead.created_at.desc()).first()

    def _lead_to_customer_data(self, lead: Optional[OrderLead]) -> CustomerData:
        if not lead:
            return CustomerData()
        return CustomerData(
            name=lead.customer_name,
            phone=lead.customer_phone,
            address=lead.customer_address,
            medicines=lead.medicines or [],
            is_complete=bool(lead.customer_data_complete)
        )

    def _save_lead(self, db: Session, user_id: str, phone: str, lead: Optional[OrderLead],
                   data: CustomerData, image_url: Optional[str]) -> OrderLead:
        if lead is None:
            lead = OrderLead(user_id=user_id, customer_phone=phone)
            db.add(lead)
        lead.customer_name = data.name
        lead.customer_address = data.address
        lead.medicines = [m.model_dump(exclude_none=True) for m in data.medicines]
        lead.customer_data_complete = data.is_complete
        if image_url:
            lead.prescription_image_url = image_url
        db.commit()
        db.refresh(lead)
        return lead

    # ────────────────────────────────────────────
    # Messages
    # ────────────────────────────────────────────

    def save_message(self, db: Session, user_id: str, phone: str, text: Optional[str], direction: str,
                     message_type: str = "text", business_phone: Optional[str] = None,
                     message_id: Optional[str] = None, status: str = "sent",
                     metadata: Optional[Dict[str, Any]] = None) -> WhatsAppMessage:
        values = {
            "user_id": user_id,
            "message_id": message_id,
            "phone": _normalize_phone(phone),
            "business_phone": business_phone,
            "text": text,
            "message_type": message_type,
            "direction": direction,
            "status": status,
            "meta_data": metadata,
        }

        if not message_id:
            message = WhatsAppMessage(**values)
            db.add(message)
            db.commit()
            db.refresh(message)
            return message

        # A redelivered message_id keeps the first stored row
        upsert(db, WhatsAppMessage, values, conflict_columns=["message_id"])
        db.commit()
        return db.query(WhatsAppMessage).filter(WhatsAppMessage.message_id == message_id).one()

    async def chat(self, db: Session, user_id: str, phone: str, message: str,
                   image_url: Optional[str] = None) -> ChatReply:
        """
        Produce the assistant reply for ``message`` and update the customer's lead.
        """
        phone = _normalize_phone(phone)
        lead = self.get_open_lead(db, user_id, phone)
        previous = self._lead_to_customer_data(lead)
        previous_json = previous.model_dump_json(exclude_none=True)

        customer_text = message if not image_url else f"{message} (prescription image: {image_url})"
        reply = await self.gemini.generate(ASSISTANT_PROMPT.format(previous=previous_json, message=customer_text))

        extracted = await self.gemini.generate(
            EXTRACT_PROMPT.format(reply=reply, message=customer_text, previous=previous_json)
        )
        customer_data = parse_customer_data(extracted, previous)

        lead = self._save_lead(db, user_id, phone, lead, customer_data, image_url)
        if customer_data.is_complete:
            log.info(f"🧾 Order complete for {phone}: lead {lead.id}")

        return ChatReply(
            response=reply,
            customer_data=customer_data,
            order_complete=customer_data.is_complete,
            order_lead_id=lead.id
        )

    async def handle_inbound(self, db: Session, user_id: str, customer_phone: str, business_phone: str,
                             text: str, image_url: Optional[str] = None,
                             message_id: Optional[str] = None) -> Tuple[ChatReply, bool]:
        """
        Full inbound flow: store the message, answer it, send the answer.

        Returns:
            (reply, sent) where ``sent`` tells whether WhatsApp accepted the reply
        """
        self.save_message(
            db, user_id, customer_phone, text, "incoming",
            message_type="image" if image_url else "text",
            business_phone=business_phone, message_id=message_id, status="received",
            metadata={"image_url": image_url} if image_url else None
        )

        reply = await self.chat(db, user_id, customer_phone, text, image_url=image_url)

        sent = False
        outgoing_id = None
        if self.ycloud:
            try:
                result = await self.ycloud.send_text(business_phone, customer_phone, reply.response)
                outgoing_id = result.get("id")
                sent = True
                log.info(f"✅ Reply sent to {customer_phone}")
            except (ConfigurationError, ExternalServiceError, httpx.HTTPError) as e:
                log.error(f"❌ Failed to send WhatsApp reply to {customer_phone}: {e}")
        else:
            log.warning("⚠️ WhatsApp sender not configured, reply not sent")

        self.save_message(
            db, user_id, customer_phone, reply.response, "outgoing",
            business_phone=business_phone, message_id=outgoing_id,
            status="sent" if sent else "failed"
        )
        return reply, sent
