# callwave/core/exceptions.py
"""Service-layer errors, translated to HTTP responses by the API routers."""
from typing import Optional


class ConfigurationError(RuntimeError):
    """A required credential or secret is missing"""


class VoiceAPIError(Exception):
    """The voice API answered with a non-success status"""

    def __init__(self, status_code: int, body: str = "", endpoint: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(f"Voice API error: {status_code} - {body}")


class ExternalServiceError(Exception):
    """A non-voice upstream (Gemini, YCloud) failed"""

    def __init__(self, service: str, status_code: int, body: str = ""):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service} error: {status_code} - {body}")


class LaunchConflictError(RuntimeError):
    """The campaign was already claimed by another launch"""
