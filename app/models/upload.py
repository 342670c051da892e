from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from enum import Enum
from typing import Optional
from datetime import datetime


class UploadSessionState(str, Enum):
    RECEIVING = "receiving"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class UploadSession(BaseModel):
    """Server-side view of a chunked upload session; chunks are appended in order."""

    model_config = ConfigDict(use_enum_values=True)

    upload_uuid: str
    filename: str
    total_chunks: int
    received_chunks: int = 0
    bytes_received: int = 0
    state: UploadSessionState = UploadSessionState.RECEIVING
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def mark_chunk_received(self, index: int, size: int) -> None:
        if index != self.received_chunks:
            raise ValueError(f"Expected chunk {self.received_chunks}, got {index}")
        self.received_chunks += 1
        self.bytes_received += size
        self.updated_at = datetime.now()

    def is_complete(self) -> bool:
        if self.total_chunks == 0:
            return False
        return self.received_chunks == self.total_chunks
