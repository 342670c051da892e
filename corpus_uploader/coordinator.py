"""
Upload coordinator: splits a media file into chunks, sends them strictly in
order under one session id, reports progress, and finalizes the record.
"""

import asyncio
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

import httpx

from .config import settings
from .errors import EmptyFileError, UploadCancelledError
from .models import MediaRecord, RecordMetadata, UploadSession
from .transport import ChunkTransport, RecordFinalizer

logger = logging.getLogger(__name__)

FileSource = Union[str, os.PathLike, BinaryIO]
ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Cooperative cancellation flag checked at every suspension point."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None):
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()


@contextmanager
def _open_source(file: FileSource):
    """Yield ``(fileobj, filename, size)`` for a path or a binary file object."""
    if isinstance(file, (str, os.PathLike)):
        path = Path(file)
        with open(path, "rb") as f:
            yield f, path.name, path.stat().st_size
        return

    position = file.tell()
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(position)
    yield file, Path(str(getattr(file, "name", "upload"))).name, size


class UploadCoordinator:
    """Runs one chunked upload per call; calls are independent of each other."""

    def __init__(self, transport: ChunkTransport, finalizer: RecordFinalizer,
                 chunk_size: Optional[int] = None):
        self.transport = transport
        self.finalizer = finalizer
        self.chunk_size = chunk_size or settings.chunk_size

    async def upload_file_in_chunks(self, file: FileSource, metadata: RecordMetadata,
                                    chunk_size: Optional[int] = None,
                                    on_progress: Optional[ProgressCallback] = None,
                                    cancel_token: Optional[CancellationToken] = None,
                                    filename: Optional[str] = None) -> MediaRecord:
        """
        Upload ``file`` in sequential chunks and finalize it into a record.

        Args:
            file: Path or readable binary file object
            metadata: Record metadata, validated by the caller
            chunk_size: Bytes per chunk, defaults to the coordinator's
            on_progress: Called with the percentage after each acknowledged chunk
            cancel_token: Optional cooperative cancellation token
            filename: Overrides the name derived from ``file``

        Returns:
            The persisted media record

        Raises:
            ChunkUploadError: a chunk was rejected; later chunks are not sent
            FinalizeError: the finalize call was rejected
            UploadCancelledError: ``cancel_token`` fired before completion
            EmptyFileError: ``file`` has no content
        """
        chunk_size = self.chunk_size if chunk_size is None else chunk_size
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")

        with _open_source(file) as (f, source_name, size):
            if size <= 0:
                raise EmptyFileError(f"Cannot upload empty file {filename or source_name}")

            session = UploadSession(
                filename=filename or source_name,
                file_size=size,
                chunk_size=chunk_size,
            )
            logger.info(
                f"Starting upload {session.session_id} for {session.filename} "
                f"({session.file_size} bytes, {session.total_chunks} chunks)"
            )

            try:
                await self._send_chunks(f, session, on_progress, cancel_token)
                self._check_cancelled(session, cancel_token)
                return await self.finalizer.finalize(
                    session.session_id, session.filename, session.total_chunks, metadata
                )
            except UploadCancelledError:
                await self.transport.abort(session.session_id)
                raise
            except asyncio.CancelledError:
                logger.info(f"Upload {session.session_id} task cancelled")
                await self.transport.abort(session.session_id)
                raise
            except Exception as e:
                # Chunks already sent stay on the server unreferenced
                logger.error(
                    f"Upload {session.session_id} failed after "
                    f"{session.chunks_sent}/{session.total_chunks} chunks: {e}"
                )
                raise

    async def _send_chunks(self, f: BinaryIO, session: UploadSession,
                           on_progress: Optional[ProgressCallback],
                           cancel_token: Optional[CancellationToken]):
        total_chunks = session.total_chunks
        for index in range(total_chunks):
            self._check_cancelled(session, cancel_token)

            start, end = session.chunk_bounds(index)
            f.seek(start)
            data = f.read(end - start)

            await self.transport.send_chunk(
                data, session.filename, index, total_chunks, session.session_id
            )
            session.mark_chunk_sent(index)

            if on_progress:
                on_progress((index + 1) / total_chunks * 100)

    @staticmethod
    def _check_cancelled(session: UploadSession, cancel_token: Optional[CancellationToken]):
        if cancel_token is not None and cancel_token.cancelled:
            logger.info(f"Upload {session.session_id} cancelled: {cancel_token.reason or 'no reason given'}")
            raise UploadCancelledError(session.session_id, session.chunks_sent)


async def upload_file_in_chunks(file: FileSource, metadata: RecordMetadata,
                                chunk_size: Optional[int] = None,
                                on_progress: Optional[ProgressCallback] = None,
                                access_token: Optional[str] = None,
                                base_url: Optional[str] = None,
                                cancel_token: Optional[CancellationToken] = None,
                                client: Optional[httpx.AsyncClient] = None) -> MediaRecord:
    """Upload a file with transport and finalizer built from settings."""
    own_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.request_timeout)
    try:
        coordinator = UploadCoordinator(
            ChunkTransport(base_url, access_token=access_token, client=client),
            RecordFinalizer(base_url, access_token=access_token, client=client),
        )
        return await coordinator.upload_file_in_chunks(
            file, metadata, chunk_size=chunk_size,
            on_progress=on_progress, cancel_token=cancel_token,
        )
    finally:
        if own_client:
            await client.aclose()
