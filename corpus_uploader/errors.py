"""
Error taxonomy for the upload client.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


def extract_error_message(response, fallback: str) -> str:
    """
    Pull the human-readable reason out of an error response.

    The server reports errors as ``{"detail": [{"msg": ...}, ...]}``; the
    first entry wins. Non-JSON bodies and missing entries fall back to the
    per-operation message. Works for both httpx and requests responses.
    """
    try:
        payload = response.json()
    except ValueError:
        return fallback

    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, list) and detail:
        first = detail[0]
        if isinstance(first, dict) and first.get("msg"):
            return str(first["msg"])
    elif isinstance(detail, str) and detail:
        return detail
    return fallback


class UploadError(Exception):
    """Base class for every upload pipeline failure."""


class TransportError(UploadError):
    """Non-success response (or network failure) from an upload endpoint."""

    fallback_message = "Request failed"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @classmethod
    def from_response(cls, response: httpx.Response, **kwargs):
        message = extract_error_message(response, cls.fallback_message)
        logger.error(f"HTTP error {response.status_code}: {message}")
        return cls(message, status_code=response.status_code, **kwargs)


class ChunkUploadError(TransportError):
    fallback_message = "Failed to upload chunk"

    def __init__(self, message: str, status_code: Optional[int] = None, chunk_index: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.chunk_index = chunk_index


class FinalizeError(TransportError):
    fallback_message = "Failed to upload record"


class EmptyFileError(UploadError):
    """Zero-length files cannot be chunked."""


class UploadCancelledError(UploadError):
    """The caller cancelled the upload before it finished."""

    def __init__(self, session_id: str, chunks_sent: int):
        super().__init__(f"Upload {session_id} cancelled after {chunks_sent} chunk(s)")
        self.session_id = session_id
        self.chunks_sent = chunks_sent


class AuthError(Exception):
    """Failure reported by the auth service."""
