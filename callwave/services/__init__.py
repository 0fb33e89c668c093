"""
Service layer initialization.
Holds the process-wide clients built once at startup and exposes them as
FastAPI dependencies.
"""
from typing import Optional

from callwave.services.voice_client import VoiceClient
from callwave.services.batch_service import BatchPoller
from callwave.services.pharmacy_service import GeminiClient, PharmacyService, YCloudClient

# Process-wide instances, set once by callwave.main
_voice_client: Optional[VoiceClient] = None
_batch_poller: Optional[BatchPoller] = None
_pharmacy_service: Optional[PharmacyService] = None


def init_services(
    voice_client: Optional[VoiceClient] = None,
    batch_poller: Optional[BatchPoller] = None,
    pharmacy_service: Optional[PharmacyService] = None
):
    """Build (or accept) the process-wide clients. Call once at startup."""
    global _voice_client, _batch_poller, _pharmacy_service
    _voice_client = voice_client or VoiceClient()
    _batch_poller = batch_poller or BatchPoller(_voice_client)
    _pharmacy_service = pharmacy_service or PharmacyService(GeminiClient(), YCloudClient())


def get_voice_client() -> VoiceClient:
    """Get the process-wide voice API client"""
    if _voice_client is None:
        init_services()
    return _voice_client


def get_batch_poller() -> BatchPoller:
    """Get the process-wide batch poller"""
    if _batch_poller is None:
        init_services()
    return _batch_poller


def get_pharmacy_service() -> PharmacyService:
    """Get the pharmacy bot service"""
    if _pharmacy_service is None:
        init_services()
    return _pharmacy_service


__all__ = [
    'VoiceClient',
    'BatchPoller',
    'PharmacyService',
    'init_services',
    'get_voice_client',
    'get_batch_poller',
    'get_pharmacy_service'
]
