"""
Tests for callwave/services/voice_client.py

Tests cover:
- Recipient and batch payload construction
- Request URLs and auth header
- Error translation
"""
import asyncio
import json

import httpx
import pytest

from callwave.core.exceptions import ConfigurationError, VoiceAPIError
from callwave.services.voice_client import (
    RESERVED_RECIPIENT_KEYS,
    VoiceClient,
    build_batch_payload,
    build_recipient_entry,
)


# ============================================================================
# TEST: payload construction
# ============================================================================

class TestBuildRecipientEntry:

    def test_extra_fields_become_dynamic_variables(self):
        """Test non-reserved fields are forwarded to the agent"""
        entry = build_recipient_entry({"phone": "+15551234567", "name": "Ann", "clinic": "Acme"})

        assert entry["phone_number"] == "+15551234567"
        assert entry["dynamic_variables"] == {"clinic": "Acme"}
        assert entry["conversation_initiation_client_data"] == {"dynamic_variables": {"clinic": "Acme"}}

    def test_reserved_keys_are_not_forwarded(self):
        """Test phone, phone_number, name and id never reach dynamic variables"""
        entry = build_recipient_entry({
            "phone_number": "+15550000000",
            "phone": "+15550000000",
            "name": "Bob",
            "id": 7,
            "appointment": "Tuesday",
        })

        assert set(entry["dynamic_variables"]) == {"appointment"}
        assert not RESERVED_RECIPIENT_KEYS & set(entry["dynamic_variables"])

    def test_values_are_stringified(self):
        """Test non-string values are sent as strings"""
        entry = build_recipient_entry({"phone": "+1555", "visits": 3, "vip": True, "note": None})

        assert entry["dynamic_variables"] == {"visits": "3", "vip": "True", "note": ""}

    def test_no_extra_fields(self):
        """Test a bare recipient carries only its phone number"""
        assert build_recipient_entry({"phone": " +1555 "}) == {"phone_number": "+1555"}


def test_build_batch_payload():
    """Test the submit body uses the voice API field names"""
    payload = build_batch_payload("Recall", "agent_1", "phnum_1", 1700000000, [{"phone": "+1555", "clinic": "Acme"}])

    assert payload["call_name"] == "Recall"
    assert payload["agent_id"] == "agent_1"
    assert payload["agent_phone_number_id"] == "phnum_1"
    assert payload["scheduled_time_unix"] == 1700000000
    assert payload["recipients"][0]["dynamic_variables"] == {"clinic": "Acme"}


# ============================================================================
# TEST: VoiceClient
# ============================================================================

class TestVoiceClient:

    def test_submit_batch(self):
        """Test submit posts to the batch endpoint with the API key header"""
        seen = {}

        def handler(request: httpx.Request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("xi-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "batch_1", "status": "pending"})

        client = VoiceClient(api_key="xi-key", base_url="https://voice.test", transport=httpx.MockTransport(handler))
        result = asyncio.run(client.submit_batch("Recall", "agent_1", "phnum_1", 1700000000, [{"phone": "+1555"}]))

        assert result == {"id": "batch_1", "status": "pending"}
        assert seen["method"] == "POST"
        assert seen["url"] == "https://voice.test/v1/convai/batch-calling/submit"
        assert seen["key"] == "xi-key"
        assert seen["body"]["recipients"] == [{"phone_number": "+1555"}]

    def test_get_batch_and_conversation_urls(self):
        """Test status and conversation fetches hit their endpoints"""
        urls = []

        def handler(request: httpx.Request):
            urls.append(request.url.path)
            return httpx.Response(200, json={})

        client = VoiceClient(api_key="xi-key", base_url="https://voice.test", transport=httpx.MockTransport(handler))
        asyncio.run(client.get_batch("batch_1"))
        asyncio.run(client.get_conversation("conv_1"))

        assert urls == ["/v1/convai/batch-calling/batch_1", "/v1/convai/conversations/conv_1"]

    def test_non_2xx_raises_voice_api_error(self):
        """Test an API rejection carries status and body"""
        client = VoiceClient(
            api_key="xi-key",
            base_url="https://voice.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(422, text="bad agent"))
        )

        with pytest.raises(VoiceAPIError) as exc_info:
            asyncio.run(client.get_batch("batch_1"))

        assert exc_info.value.status_code == 422
        assert exc_info.value.body == "bad agent"

    def test_missing_api_key_sends_nothing(self):
        """Test a missing key fails before any request is made"""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        client = VoiceClient(api_key="", base_url="https://voice.test", transport=httpx.MockTransport(handler))

        assert client.configured is False
        with pytest.raises(ConfigurationError):
            asyncio.run(client.submit_batch("Recall", "agent_1", "phnum_1", 0, [{"phone": "+1555"}]))
        assert calls == []
