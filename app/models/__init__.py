from app.models.upload import UploadSession, UploadSessionState
from app.models.record import MediaRecord, RecordStatus, Location, ReviewRequest
