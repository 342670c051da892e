from __future__ import annotations

import math
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecordStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RecordMetadata(BaseModel):
    """Domain metadata supplied by the caller for a new media record."""

    title: str
    description: Optional[str] = None
    category_id: str
    user_id: str
    media_type: str = "video"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    release_rights: str
    language: str
    use_uid_filename: Optional[bool] = None


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class MediaRecord(BaseModel):
    """Persisted record returned by the finalize endpoint."""

    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    title: str
    description: Optional[str] = None
    media_type: str
    file_url: str
    file_name: str
    file_size: int
    status: RecordStatus = RecordStatus.PENDING
    location: Optional[Location] = None
    reviewed: bool = False
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    release_rights: str
    language: str
    uid: str
    user_id: str
    category_id: str
    created_at: datetime
    updated_at: datetime
    duration_seconds: Optional[float] = None


class UploadSession(BaseModel):
    """Represents one in-flight chunked transfer and its progression state."""

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    filename: str
    file_size: int
    chunk_size: int
    chunks_sent: int = 0

    @field_validator("file_size", "chunk_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @property
    def total_chunks(self) -> int:
        return math.ceil(self.file_size / self.chunk_size)

    @property
    def progress(self) -> float:
        return self.chunks_sent / self.total_chunks * 100

    @property
    def is_complete(self) -> bool:
        return self.chunks_sent == self.total_chunks

    def chunk_bounds(self, index: int) -> Tuple[int, int]:
        if index < 0 or index >= self.total_chunks:
            raise IndexError(f"chunk index {index} out of range [0, {self.total_chunks})")
        start = index * self.chunk_size
        return start, min(start + self.chunk_size, self.file_size)

    def mark_chunk_sent(self, index: int) -> None:
        # Sequential pipeline: acknowledgements arrive in index order
        if index != self.chunks_sent:
            raise ValueError(f"chunk {index} acknowledged out of order, expected {self.chunks_sent}")
        self.chunks_sent += 1


def metadata_form_fields(metadata: RecordMetadata) -> Dict[str, str]:
    """Stringify every present metadata value for a multipart form."""
    fields: Dict[str, str] = {}
    for key, value in metadata.model_dump().items():
        if value is None:
            continue
        fields[key] = _form_value(value)
    return fields


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
