from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from enum import Enum
from datetime import datetime


class RecordStatus(str, Enum):
    """Moderation status of a corpus record"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Location(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class MediaRecord(BaseModel):
    """Persisted media record schema"""
    model_config = ConfigDict(use_enum_values=True)

    uid: str
    title: str
    description: Optional[str] = None
    media_type: str
    file_url: str
    file_name: str
    file_size: int
    status: RecordStatus = RecordStatus.PENDING
    location: Location
    reviewed: bool = False
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    release_rights: str
    language: str
    user_id: str
    category_id: str
    created_at: datetime
    updated_at: datetime
    duration_seconds: Optional[float] = None
    history: Optional[List[dict]] = None


class ReviewRequest(BaseModel):
    status: RecordStatus
    reviewed_by: str
    notes: Optional[str] = None
