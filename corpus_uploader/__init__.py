"""
Chunked media upload client for the community video corpus.
"""

from .coordinator import CancellationToken, UploadCoordinator, upload_file_in_chunks
from .errors import (
    ChunkUploadError,
    EmptyFileError,
    FinalizeError,
    TransportError,
    UploadCancelledError,
    UploadError,
)
from .models import MediaRecord, RecordMetadata, RecordStatus, UploadSession
from .transport import ChunkTransport, RecordFinalizer

__all__ = [
    "CancellationToken",
    "ChunkTransport",
    "ChunkUploadError",
    "EmptyFileError",
    "FinalizeError",
    "MediaRecord",
    "RecordFinalizer",
    "RecordMetadata",
    "RecordStatus",
    "TransportError",
    "UploadCancelledError",
    "UploadCoordinator",
    "UploadError",
    "UploadSession",
    "upload_file_in_chunks",
]

__version__ = "0.1.0"
