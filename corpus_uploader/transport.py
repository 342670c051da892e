"""
HTTP primitives for the chunked upload protocol: one call per chunk and
one finalize call per session.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import settings
from .errors import ChunkUploadError, FinalizeError
from .models import MediaRecord, RecordMetadata, metadata_form_fields

logger = logging.getLogger(__name__)


class _RecordsApi:
    """Shared plumbing for the records endpoints."""

    def __init__(self, base_url: Optional[str] = None, access_token: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.access_token = access_token
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.request_timeout)

    def _auth_headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class ChunkTransport(_RecordsApi):
    """Sends single chunks of an upload session to the server."""

    async def send_chunk(self, data: bytes, filename: str, index: int,
                         total_chunks: int, session_id: str) -> Dict[str, Any]:
        """
        Upload one chunk and wait for its acknowledgement.

        Args:
            data: Chunk bytes
            filename: Original file name of the upload
            index: 0-based chunk index
            total_chunks: Number of chunks in the session
            session_id: Upload session identifier

        Returns:
            The server acknowledgement (opaque to the coordinator)
        """
        if index < 0 or index >= total_chunks:
            raise ValueError(f"chunk index {index} out of range [0, {total_chunks})")

        files = {"chunk": (filename, data, "application/octet-stream")}
        form = {
            "filename": filename,
            "chunk_index": str(index),
            "total_chunks": str(total_chunks),
            "upload_uuid": session_id,
        }
        try:
            response = await self.client.post(
                f"{self.base_url}/records/upload/chunk",
                data=form,
                files=files,
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.error(f"Chunk {index} of {session_id} failed: {e}")
            raise ChunkUploadError(str(e) or ChunkUploadError.fallback_message, chunk_index=index) from e

        if not response.is_success:
            raise ChunkUploadError.from_response(response, chunk_index=index)

        logger.debug(f"Chunk {index + 1}/{total_chunks} acknowledged for {session_id}")
        try:
            return response.json()
        except ValueError:
            return {}

    async def abort(self, session_id: str) -> bool:
        """Best-effort notification that a session was abandoned."""
        try:
            response = await self.client.delete(
                f"{self.base_url}/records/upload/{session_id}",
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Abort notification for {session_id} failed: {e}")
            return False
        if not response.is_success:
            logger.warning(f"Abort notification for {session_id} rejected: HTTP {response.status_code}")
            return False
        logger.info(f"Aborted upload session {session_id}")
        return True


class RecordFinalizer(_RecordsApi):
    """Turns a fully acknowledged chunk set into a persisted media record."""

    async def finalize(self, session_id: str, filename: str, total_chunks: int,
                       metadata: RecordMetadata) -> MediaRecord:
        form = metadata_form_fields(metadata)
        form.update({
            "upload_uuid": session_id,
            "filename": filename,
            "total_chunks": str(total_chunks),
        })
        # (None, value) parts keep the body multipart/form-data without file fields
        parts = [(key, (None, value)) for key, value in form.items()]
        try:
            response = await self.client.post(
                f"{self.base_url}/records/upload",
                files=parts,
                headers=self._auth_headers(),
            )
        except httpx.HTTPError as e:
            logger.error(f"Finalize of {session_id} failed: {e}")
            raise FinalizeError(str(e) or FinalizeError.fallback_message) from e

        if not response.is_success:
            raise FinalizeError.from_response(response)

        record = MediaRecord.model_validate(response.json())
        logger.info(f"Finalized upload {session_id} as record {record.uid}")
        return record
