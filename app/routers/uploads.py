from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
import logging
import uuid

from ..auth.dependencies import gate
from ..auth.session import SessionState
from ..core.exceptions import FirebaseUnavailableError, UploadRejectedError, to_http_exception
from ..services.file_storage_service import file_storage_service, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


def _size_of(file: UploadFile) -> int:
    file.file.seek(0, 2)  # Seek to end
    size = file.file.tell()
    file.file.seek(0)
    return size


async def _store(kind: str, owner_id: str, file: UploadFile):
    try:
        # type and size are checked before the body is pulled into memory
        validate_upload(kind, file.content_type, _size_of(file), file.filename)
        content = await file.read()
        return await file_storage_service.upload(kind, owner_id, file.filename, file.content_type, content)
    except (UploadRejectedError, FirebaseUnavailableError) as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"❌ Upload failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload file. Please try again.")


@router.post("/proof", status_code=201)
async def upload_proof(file: UploadFile = File(...)):
    """Proof of residency, uploaded from the signup form before an account exists."""
    stored = await _store("proof", f"signup-{uuid.uuid4().hex[:12]}", file)
    return {"success": True, "url": stored["url"], "file": stored}


@router.post("/proof/resubmission", status_code=201)
async def upload_resubmission_proof(
    file: UploadFile = File(...),
    session: SessionState = Depends(gate("/verification/declined")),
):
    stored = await _store("proof", session.uid, file)
    return {"success": True, "url": stored["url"], "file": stored}


@router.post("/attachment", status_code=201)
async def upload_attachment(
    file: UploadFile = File(...),
    session: SessionState = Depends(gate("/feedback")),
):
    stored = await _store("attachment", session.uid, file)
    return {"success": True, "url": stored["url"], "file": stored}
