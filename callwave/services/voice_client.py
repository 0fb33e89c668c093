# callwave/services/voice_client.py
"""
Client for the ElevenLabs conversational-AI batch calling API.

One instance is built per process (see ``callwave.main``) and handed to the
launch/poll/status functions explicitly. Every request carries a timeout so a
single slow call cannot stall a polling loop.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from callwave.core.config import ELEVENLABS_API_KEY, ELEVENLABS_BASE_URL, VOICE_API_TIMEOUT
from callwave.core.exceptions import ConfigurationError, VoiceAPIError
from callwave.core.logging_config import get_voice_api_logger, log_api_request, log_api_response

log = logging.getLogger("callwave.voice_client")
api_log = get_voice_api_logger()

RESERVED_RECIPIENT_KEYS = frozenset({"phone", "phone_number", "name", "id"})


def build_recipient_entry(recipient: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert one launch recipient into the voice API's recipient shape.

    Every field except the reserved keys becomes a dynamic variable that the
    agent can substitute into its prompt (``{{clinic}}``).
    """
    phone = recipient.get("phone") or recipient.get("phone_number")
    entry: Dict[str, Any] = {"phone_number": str(phone).strip()}

    dynamic_variables = {
        key: "" if value is None else str(value)
        for key, value in recipient.items()
        if key not in RESERVED_RECIPIENT_KEYS
    }
    if dynamic_variables:
        entry["dynamic_variables"] = dynamic_variables
        entry["conversation_initiation_client_data"] = {"dynamic_variables": dict(dynamic_variables)}

    return entry


def build_batch_payload(
    call_name: str,
    agent_id: str,
    phone_number_id: str,
    scheduled_time_unix: int,
    recipients: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """Request body for the submit-batch endpoint"""
    return {
        "call_name": call_name,
        "agent_id": agent_id,
        "agent_phone_number_id": phone_number_id,
        "scheduled_time_unix": scheduled_time_unix,
        "recipients": [build_recipient_entry(r) for r in recipients],
    }


class VoiceClient:
    """Async client for batch submit, batch status and conversation details"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            api_key: Voice API key (defaults to ELEVENLABS_API_KEY)
            base_url: API root (defaults to ELEVENLABS_BASE_URL)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.api_key = ELEVENLABS_API_KEY if api_key is None else api_key
        self.base_url = (base_url or ELEVENLABS_BASE_URL).rstrip("/")
        self.timeout = VOICE_API_TIMEOUT if timeout is None else timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("ElevenLabs API key not configured")
        return {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Dict[str, Any]:
        headers = self._headers()
        url = f"{self.base_url}{path}"
        log_api_request(api_log, method, url, data=json, headers=headers)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, url, headers=headers, json=json)

        if response.status_code < 200 or response.status_code >= 300:
            error = VoiceAPIError(response.status_code, response.text, endpoint=path)
            log_api_response(api_log, response.status_code, None, error=error)
            log.error(f"❌ Voice API error on {method} {path}: {response.status_code} - {response.text}")
            raise error

        data = response.json()
        log_api_response(api_log, response.status_code, data)
        return data

    # ────────────────────────────────────────────
    # Batch calling
    # ────────────────────────────────────────────

    async def submit_batch(
        self,
        call_name: str,
        agent_id: str,
        phone_number_id: str,
        scheduled_time_unix: int,
        recipients: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Submit a batch-calling job. Returns the job as reported by the API."""
        payload = build_batch_payload(call_name, agent_id, phone_number_id, scheduled_time_unix, recipients)
        log.info(f"📞 Submitting batch '{call_name}' with {len(payload['recipients'])} recipients")
        return await self._request("POST", "/v1/convai/batch-calling/submit", json=payload)

    async def get_batch(self, batch_id: str) -> Dict[str, Any]:
        """Current status, counts and recipients of a batch"""
        return await self._request("GET", f"/v1/convai/batch-calling/{batch_id}")

    # ────────────────────────────────────────────
    # Conversations
    # ────────────────────────────────────────────

    async def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        """Status, analysis, transcript, cost and duration of one call"""
        return await self._request("GET", f"/v1/convai/conversations/{conversation_id}")
