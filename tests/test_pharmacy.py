"""
Tests for the WhatsApp pharmacy bot (services/pharmacy_service.py, api/v1/whatsapp.py, api/v1/pharmacy.py)
"""
import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from callwave.core.exceptions import ExternalServiceError
from callwave.models.message import OrderLead, WhatsAppMessage
from callwave.schemas.message import ChatReply, CustomerData, Medicine
from callwave.services.pharmacy_service import (
    GeminiClient,
    PharmacyService,
    YCloudClient,
    parse_customer_data,
)

USER_ID = "user-1"


def _extraction(**fields):
    data = {"name": None, "phone": None, "address": None, "medicines": [], "isComplete": False}
    data.update(fields)
    return json.dumps(data)


# ============================================================================
# TEST: parse_customer_data
# ============================================================================

class TestParseCustomerData:

    def test_parses_fenced_json(self):
        text = "```json\n" + _extraction(name="Ann", medicines=[{"name": "Paracetamol", "quantity": "2"}]) + "\n```"

        data = parse_customer_data(text, CustomerData())

        assert data.name == "Ann"
        assert data.medicines[0].name == "Paracetamol"
        assert data.is_complete is False

    def test_keeps_previous_fields(self):
        previous = CustomerData(name="Ann", address="1 Main St")

        data = parse_customer_data(_extraction(phone="+15551234567", isComplete=True), previous)

        assert data.name == "Ann"
        assert data.address == "1 Main St"
        assert data.phone == "+15551234567"
        assert data.is_complete is True

    def test_garbage_falls_back_to_previous(self):
        previous = CustomerData(name="Ann", is_complete=True)

        data = parse_customer_data("Sorry, I cannot do that", previous)

        assert data.name == "Ann"
        assert data.is_complete is False


# ============================================================================
# TEST: PharmacyService
# ============================================================================

class TestPharmacyService:

    def _service(self, replies, send_side_effect=None):
        gemini = AsyncMock(spec=GeminiClient)
        gemini.generate.side_effect = replies
        ycloud = AsyncMock(spec=YCloudClient)
        ycloud.send_text.return_value = {"id": "out_1"}
        if send_side_effect:
            ycloud.send_text.side_effect = send_side_effect
        return PharmacyService(gemini, ycloud), ycloud

    def test_inbound_message_flow(self, db):
        """Test the reply is sent and both messages and the lead are stored"""
        service, ycloud = self._service([
            "Hi! What is your delivery address?",
            _extraction(name="Ann", medicines=[{"name": "Ibuprofen", "quantity": "1"}]),
        ])

        reply, sent = asyncio.run(service.handle_inbound(
            db, USER_ID, "15551234567", "+15550000000", "I need ibuprofen", message_id="wamid.1"
        ))

        assert sent is True
        assert reply.response == "Hi! What is your delivery address?"
        ycloud.send_text.assert_awaited_once_with("+15550000000", "15551234567", reply.response)

        messages = db.query(WhatsAppMessage).order_by(WhatsAppMessage.id).all()
        assert [m.direction for m in messages] == ["incoming", "outgoing"]
        assert messages[0].phone == "+15551234567"

        lead = db.query(OrderLead).one()
        assert lead.customer_name == "Ann"
        assert lead.medicines == [{"name": "Ibuprofen", "quantity": "1"}]
        assert lead.customer_data_complete is False

    def test_lead_is_updated_until_complete(self, db):
        """Test follow-up messages update the same open lead"""
        service, _ = self._service([
            "Address please", _extraction(name="Ann"),
            "Thanks, order confirmed", _extraction(address="1 Main St", phone="+15551234567", isComplete=True),
        ])

        asyncio.run(service.chat(db, USER_ID, "+15551234567", "I'm Ann"))
        reply = asyncio.run(service.chat(db, USER_ID, "+15551234567", "1 Main St"))

        assert reply.order_complete is True
        lead = db.query(OrderLead).one()
        assert lead.customer_name == "Ann"
        assert lead.customer_address == "1 Main St"
        assert lead.customer_data_complete is True

    def test_send_failure_is_recorded(self, db):
        service, _ = self._service(
            ["Hello", _extraction()],
            send_side_effect=ExternalServiceError("YCloud", 500, "down")
        )

        reply, sent = asyncio.run(service.handle_inbound(db, USER_ID, "+1555", "+1666", "hi"))

        assert sent is False
        outgoing = db.query(WhatsAppMessage).filter_by(direction="outgoing").one()
        assert outgoing.status == "failed"

    def test_duplicate_inbound_message_stored_once(self, db):
        service, _ = self._service(["a", _extraction(), "b", _extraction()])

        asyncio.run(service.handle_inbound(db, USER_ID, "+1555", "+1666", "hi", message_id="wamid.1"))
        asyncio.run(service.handle_inbound(db, USER_ID, "+1555", "+1666", "hi", message_id="wamid.1"))

        assert db.query(WhatsAppMessage).filter_by(direction="incoming").count() == 1

    def test_redelivered_message_keeps_first_row(self, db):
        """Test saving a message_id that is already stored returns the stored row"""
        db.add(WhatsAppMessage(user_id=USER_ID, message_id="wamid.7", phone="+1555", text="first",
                               direction="incoming", status="received"))
        db.commit()
        service, _ = self._service([])

        message = service.save_message(db, USER_ID, "+1555", "second", "incoming", message_id="wamid.7")

        assert message.text == "first"
        assert db.query(WhatsAppMessage).filter_by(message_id="wamid.7").count() == 1

    def test_messages_without_id_are_all_stored(self, db):
        service, _ = self._service([])

        service.save_message(db, USER_ID, "+1555", "hello", "outgoing")
        service.save_message(db, USER_ID, "+1555", "hello", "outgoing")

        assert db.query(WhatsAppMessage).filter_by(direction="outgoing").count() == 2


# ============================================================================
# TEST: HTTP clients
# ============================================================================

def test_gemini_client_request():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["key"] = request.url.params.get("key")
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Hello"}]}}]})

    client = GeminiClient(api_key="g-key", model="gemini-test", base_url="https://gemini.test",
                          transport=httpx.MockTransport(handler))

    assert asyncio.run(client.generate("hi")) == "Hello"
    assert seen == {"path": "/v1beta/models/gemini-test:generateContent", "key": "g-key"}


def test_ycloud_client_error():
    client = YCloudClient(api_key="y-key", base_url="https://ycloud.test",
                          transport=httpx.MockTransport(lambda request: httpx.Response(401, text="bad key")))

    with pytest.raises(ExternalServiceError):
        asyncio.run(client.send_text("+1666", "+1555", "hi"))


# ============================================================================
# TEST: endpoints
# ============================================================================

class TestWhatsAppWebhook:

    def test_verification_echo(self, client):
        assert client.get("/api/whatsapp/webhook", params={"hub.challenge": "12345"}).text == "12345"
        assert client.get("/api/whatsapp/webhook").text == "Webhook active"

    def test_inbound_text(self, client, pharmacy_service):
        pharmacy_service.handle_inbound.return_value = (
            ChatReply(response="Hello", customer_data=CustomerData(), order_lead_id=1), True
        )
        payload = {
            "type": "whatsapp.inbound_message.received",
            "whatsappInboundMessage": {
                "id": "msg_1", "from": "+15551234567", "to": "+15550000000",
                "type": "text", "text": {"body": "Need paracetamol"},
            },
        }

        response = client.post("/api/whatsapp/webhook", json=payload)

        assert response.status_code == 200
        assert response.json()["reply_sent"] is True
        args = pharmacy_service.handle_inbound.await_args
        assert args.args[2:5] == ("+15551234567", "+15550000000", "Need paracetamol")

    def test_other_events_ignored(self, client, pharmacy_service):
        response = client.post("/api/whatsapp/webhook", json={"type": "whatsapp.message.updated"})

        assert response.json()["handled"] is False
        pharmacy_service.handle_inbound.assert_not_awaited()


class TestPharmacyEndpoints:

    def test_orders_and_messages(self, client, db):
        db.add(OrderLead(user_id=USER_ID, customer_phone="+1555", customer_name="Ann",
                         medicines=[Medicine(name="Ibuprofen").model_dump(exclude_none=True)]))
        db.add(WhatsAppMessage(user_id=USER_ID, phone="+1555", text="hi", direction="incoming"))
        db.add(OrderLead(user_id="someone-else", customer_phone="+1777"))
        db.commit()

        orders = client.get("/api/pharmacy/orders").json()
        messages = client.get("/api/pharmacy/messages/1555").json()

        assert [o["customer_name"] for o in orders] == ["Ann"]
        assert [m["text"] for m in messages] == ["hi"]
