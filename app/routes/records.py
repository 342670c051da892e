import json
import logging
import os
import shutil
import uuid
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, HTTPException, UploadFile, File, Form, Header, Depends

from app.config import settings
from app.models import UploadSession, UploadSessionState, MediaRecord, RecordStatus, Location, ReviewRequest
from app.services.review import ReviewStateMachine

logger = logging.getLogger(__name__)
router = APIRouter()


# In-memory stores for sessions and records
UPLOAD_SESSIONS = {}
RECORDS = {}

DATA_FILE = "data.part"


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the bearer credential; verification belongs to the auth service."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    return token


def _validate_upload_uuid(upload_uuid: str) -> str:
    try:
        return str(uuid.UUID(upload_uuid))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid upload_uuid")


def _persist_session(session: UploadSession, base_dir: str) -> None:
    out_dir = os.path.join(base_dir, session.upload_uuid)
    os.makedirs(out_dir, exist_ok=True)
    session_path = os.path.join(out_dir, "session.json")
    with open(session_path, "w") as f:
        json.dump(session.model_dump(mode="json"), f)


def _load_session(upload_uuid: str, base_dir: str) -> Optional[UploadSession]:
    session_path = os.path.join(base_dir, upload_uuid, "session.json")
    if not os.path.exists(session_path):
        return None
    with open(session_path, "r") as f:
        data = json.load(f)
    return UploadSession.model_validate(data)


def _get_session(upload_uuid: str) -> Optional[UploadSession]:
    session = UPLOAD_SESSIONS.get(upload_uuid)
    if not session:
        # try load from disk (server restart)
        session = _load_session(upload_uuid, settings.upload_base_dir)
        if session:
            UPLOAD_SESSIONS[upload_uuid] = session
    return session


def _remove_session_dir(upload_uuid: str) -> bool:
    out_dir = os.path.join(settings.upload_base_dir, upload_uuid)
    if not os.path.isdir(out_dir):
        return False
    shutil.rmtree(out_dir, ignore_errors=True)
    return True


@router.post("/records/upload/chunk")
async def upload_chunk(
    chunk: UploadFile = File(...),
    filename: str = Form(...),
    chunk_index: int = Form(...),
    total_chunks: int = Form(...),
    upload_uuid: str = Form(...),
    token: Optional[str] = Depends(get_bearer_token),
):
    upload_uuid = _validate_upload_uuid(upload_uuid)
    if total_chunks <= 0:
        raise HTTPException(status_code=400, detail="total_chunks must be > 0")
    if chunk_index < 0 or chunk_index >= total_chunks:
        raise HTTPException(status_code=400, detail="Invalid chunk index")

    base_dir = settings.upload_base_dir
    session = _get_session(upload_uuid)
    if session is None:
        if chunk_index != 0:
            raise HTTPException(status_code=404, detail="Upload session not found")
        now = datetime.now()
        session = UploadSession(
            upload_uuid=upload_uuid,
            filename=filename,
            total_chunks=total_chunks,
            created_at=now,
            updated_at=now,
        )
        UPLOAD_SESSIONS[upload_uuid] = session
        logger.info(f"Created upload session {upload_uuid} for {filename} ({total_chunks} chunks, authenticated={token is not None})")

    if session.state != UploadSessionState.RECEIVING:
        raise HTTPException(status_code=409, detail=f"Upload session is {session.state}")
    if session.filename != filename or session.total_chunks != total_chunks:
        raise HTTPException(status_code=400, detail="Chunk does not match upload session")
    if chunk_index != session.received_chunks:
        raise HTTPException(status_code=409, detail=f"Expected chunk {session.received_chunks}, got {chunk_index}")

    max_chunk = settings.max_chunk_size_mb * 1024 * 1024
    max_total = settings.max_upload_size_gb * 1024 * 1024 * 1024

    # append to the session's data file
    out_dir = os.path.join(base_dir, upload_uuid)
    os.makedirs(out_dir, exist_ok=True)
    data_path = os.path.join(out_dir, DATA_FILE)
    offset = os.path.getsize(data_path) if os.path.exists(data_path) else 0
    size = 0
    try:
        with open(data_path, "ab") as f:
            while True:
                data = await chunk.read(1024 * 1024)
                if not data:
                    break
                size += len(data)
                if size > max_chunk:
                    raise HTTPException(status_code=413, detail="Chunk size exceeds configured maximum")
                if session.bytes_received + size > max_total:
                    raise HTTPException(status_code=413, detail="File too large")
                f.write(data)
    except HTTPException:
        # drop the partial write so the session stays append-only
        with open(data_path, "r+b") as f:
            f.truncate(offset)
        raise
    finally:
        await chunk.close()

    if size == 0:
        raise HTTPException(status_code=400, detail="Empty chunk")

    session.mark_chunk_received(chunk_index, size)
    _persist_session(session, base_dir)
    logger.info(f"Received chunk {chunk_index + 1}/{total_chunks} for {upload_uuid}")
    return {
        "status": "ok",
        "upload_uuid": upload_uuid,
        "chunk_index": chunk_index,
        "received_chunks": session.received_chunks,
    }


@router.post("/records/upload", response_model=MediaRecord)
async def upload_record(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    category_id: str = Form(...),
    user_id: str = Form(...),
    media_type: str = Form(...),
    upload_uuid: str = Form(...),
    filename: str = Form(...),
    total_chunks: int = Form(...),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    release_rights: str = Form(...),
    language: str = Form(...),
    use_uid_filename: bool = Form(False),
    token: Optional[str] = Depends(get_bearer_token),
):
    """
    Finalize an upload session into a media record.
    The record always starts out pending review.
    """
    upload_uuid = _validate_upload_uuid(upload_uuid)
    if not title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    if latitude is not None and not -90 <= latitude <= 90:
        raise HTTPException(status_code=400, detail="Latitude must be between -90 and 90")
    if longitude is not None and not -180 <= longitude <= 180:
        raise HTTPException(status_code=400, detail="Longitude must be between -180 and 180")

    session = _get_session(upload_uuid)
    if not session:
        raise HTTPException(status_code=404, detail="Upload session not found")
    if session.state == UploadSessionState.FINALIZED:
        raise HTTPException(status_code=409, detail="Upload already finalized")
    if session.filename != filename or session.total_chunks != total_chunks:
        raise HTTPException(status_code=400, detail="Finalize does not match upload session")
    if not session.is_complete():
        raise HTTPException(status_code=400, detail="Not all chunks uploaded")

    data_path = os.path.join(settings.upload_base_dir, upload_uuid, DATA_FILE)
    if not os.path.exists(data_path):
        raise HTTPException(status_code=500, detail="Assembled upload missing")

    uid = str(uuid.uuid4())
    original_name = os.path.basename(filename) or "upload"
    if use_uid_filename:
        stored_name = f"{uid}{os.path.splitext(original_name)[1]}"
    else:
        stored_name = original_name

    media_dir = os.path.join(settings.media_base_dir, uid)
    os.makedirs(media_dir, exist_ok=True)
    media_path = os.path.join(media_dir, stored_name)
    shutil.move(data_path, media_path)

    now = datetime.now()
    record = MediaRecord(
        uid=uid,
        title=title,
        description=description,
        media_type=media_type,
        file_url=f"{settings.media_base_url.rstrip('/')}/{uid}/{stored_name}",
        file_name=stored_name,
        file_size=os.path.getsize(media_path),
        status=RecordStatus.PENDING,
        location=Location(latitude=latitude, longitude=longitude),
        release_rights=release_rights,
        language=language,
        user_id=user_id,
        category_id=category_id,
        created_at=now,
        updated_at=now,
    )
    RECORDS[uid] = record

    session.state = UploadSessionState.FINALIZED
    session.updated_at = now
    _remove_session_dir(upload_uuid)
    logger.info(f"Finalized upload {upload_uuid} as record {uid} ({record.file_size} bytes)")
    return record


@router.delete("/records/upload/{upload_uuid}")
async def abort_upload(upload_uuid: str, token: Optional[str] = Depends(get_bearer_token)):
    upload_uuid = _validate_upload_uuid(upload_uuid)
    session = UPLOAD_SESSIONS.get(upload_uuid)
    if session and session.state == UploadSessionState.FINALIZED:
        raise HTTPException(status_code=409, detail="Upload already finalized")

    removed = _remove_session_dir(upload_uuid)
    if not removed and not session:
        raise HTTPException(status_code=404, detail="Upload session not found")

    # drop from memory
    UPLOAD_SESSIONS.pop(upload_uuid, None)
    logger.info(f"Aborted upload session {upload_uuid}")
    return {"status": "cancelled", "upload_uuid": upload_uuid}


@router.get("/records", response_model=List[MediaRecord])
async def list_records(status: Optional[RecordStatus] = None, user_id: Optional[str] = None):
    records = list(RECORDS.values())
    if status is not None:
        records = [r for r in records if r.status == status.value]
    if user_id is not None:
        records = [r for r in records if r.user_id == user_id]
    return sorted(records, key=lambda r: r.created_at)


@router.get("/records/{uid}", response_model=MediaRecord)
async def get_record(uid: str):
    record = RECORDS.get(uid)
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.post("/records/{uid}/review", response_model=MediaRecord)
async def review_record(uid: str, req: ReviewRequest):
    record = RECORDS.get(uid)
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    try:
        ReviewStateMachine.transition(record, req.status, req.reviewed_by, req.notes)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return record
