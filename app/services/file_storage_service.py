import uuid
import mimetypes
import urllib.parse
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional
import asyncio
import logging

from firebase_admin import storage

from ..core.config import settings
from ..core.exceptions import UploadRejectedError
from ..core.firebase_init import require_firebase

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class UploadRule:
    allowed_types: FrozenSet[str]
    max_bytes: int
    type_message: str
    size_message: str
    folder: str


# proof of residency (signup and resubmission) vs. feedback attachments
UPLOAD_RULES: Dict[str, UploadRule] = {
    "proof": UploadRule(
        allowed_types=frozenset({"image/jpeg", "image/png", "image/jpg", "application/pdf"}),
        max_bytes=settings.MAX_IMAGE_SIZE_MB * MB,
        type_message="Invalid file type. Accepted: JPG, PNG, JPEG, PDF.",
        size_message=f"File size must not exceed {settings.MAX_IMAGE_SIZE_MB}MB.",
        folder="proofs",
    ),
    "attachment": UploadRule(
        allowed_types=frozenset({"image/jpeg", "image/png", "image/jpg", "image/gif", "application/pdf"}),
        max_bytes=settings.MAX_FILE_SIZE_MB * MB,
        type_message="Only images and PDFs are allowed",
        size_message=f"File size must be less than {settings.MAX_FILE_SIZE_MB}MB",
        folder="feedback",
    ),
}


def resolve_content_type(content_type: Optional[str], filename: Optional[str]) -> Optional[str]:
    """Fall back to the filename when the client sent a generic or empty type."""
    if not content_type or content_type in ("application/octet-stream", "binary/octet-stream"):
        guessed = mimetypes.guess_type(filename or "")[0]
        content_type = guessed or content_type
    return content_type.lower() if content_type else None


def validate_upload(kind: str, content_type: Optional[str], size: int, filename: Optional[str] = None) -> str:
    """
    Check type and size before anything is sent to the bucket. Returns the
    normalized content type; raises UploadRejectedError with the message shown
    next to the file input.
    """
    rule = UPLOAD_RULES[kind]
    if size <= 0:
        raise UploadRejectedError(kind, "Proof of residency is required." if kind == "proof" else "File is empty")
    resolved = resolve_content_type(content_type, filename)
    if resolved not in rule.allowed_types:
        raise UploadRejectedError(kind, rule.type_message)
    if size > rule.max_bytes:
        raise UploadRejectedError(kind, rule.size_message)
    return resolved


class FileStorageService:
    """Validated uploads to the Firebase Storage bucket; returns a tokenized download URL."""

    def __init__(self, bucket=None):
        self._bucket = bucket

    @property
    def bucket(self):
        if self._bucket is None:
            require_firebase("Firebase Storage")
            try:
                self._bucket = storage.bucket(settings.FIREBASE_STORAGE_BUCKET)
                logger.info(f"✅ Firebase Storage ready (gs://{self._bucket.name})")
            except Exception as e:
                logger.error(f"❌ Firebase Storage not available: {e}")
                raise
        return self._bucket

    @staticmethod
    def build_path(folder: str, owner_id: str, filename: Optional[str]) -> str:
        ext = Path(filename or "").suffix.lower()
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{folder}/{owner_id}/{stamp}_{uuid.uuid4()}{ext}"

    async def upload(self, kind: str, owner_id: str, filename: Optional[str],
                     content_type: Optional[str], content: bytes) -> Dict[str, Any]:
        resolved = validate_upload(kind, content_type, len(content), filename)
        path = self.build_path(UPLOAD_RULES[kind].folder, owner_id, filename)

        token = str(uuid.uuid4())
        blob = self.bucket.blob(path)
        blob.metadata = {
            "uploaded_by": owner_id,
            "original_filename": filename or "",
            "firebaseStorageDownloadTokens": token,
        }
        await asyncio.to_thread(blob.upload_from_string, content, content_type=resolved)

        encoded = urllib.parse.quote(path, safe="")
        url = f"https://firebasestorage.googleapis.com/v0/b/{self.bucket.name}/o/{encoded}?alt=media&token={token}"
        logger.info(f"✅ Uploaded {kind} for {owner_id}: {path}")
        return {
            "path": path,
            "url": url,
            "name": filename,
            "size": len(content),
            "type": resolved,
        }


file_storage_service = FileStorageService()
