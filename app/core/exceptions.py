"""
Error taxonomy shared by the sync layer, services and routers.

Authorization outcomes are not errors: the access gate reports them as
values (see app.auth.access_gate).
"""

from typing import Dict, Optional

from fastapi import HTTPException


class PortalError(Exception):
    """Base class for every error raised by the portal core"""


class FetchError(PortalError):
    """One-shot read failed at the transport level"""

    def __init__(self, collection: str, detail: Optional[str] = None):
        self.collection = collection
        self.detail = detail
        super().__init__(f"Failed to fetch {collection}: {detail}")


class StoreWriteError(PortalError):
    """add / update / delete failed at the transport level"""

    def __init__(self, collection: str, detail: Optional[str] = None):
        self.collection = collection
        self.detail = detail
        super().__init__(f"Write to {collection} failed: {detail}")


class NotFoundError(PortalError):
    def __init__(self, collection: str, document_id: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found in {collection}")


class ArchiveFailedError(PortalError):
    """Archive copy could not be written; the paired delete must not run"""

    def __init__(self, collection: str, document_id: str, detail: Optional[str] = None):
        self.collection = collection
        self.document_id = document_id
        self.detail = detail
        super().__init__(f"Archiving {collection}/{document_id} failed: {detail}")


class RecordValidationError(PortalError):
    """Write-boundary validation failure, keyed by field name"""

    def __init__(self, errors: Dict[str, str], collection: Optional[str] = None):
        self.errors = errors
        self.collection = collection
        fields = ", ".join(sorted(errors))
        super().__init__(f"Invalid fields for {collection or 'record'}: {fields}")


class UploadRejectedError(PortalError):
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


class UnknownCollectionError(PortalError):
    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"Unknown collection: {collection}")


class FirebaseUnavailableError(PortalError):
    """Firebase Admin could not be initialized, so the backend is unreachable"""

    def __init__(self, feature: str, reason: Optional[str] = None):
        self.feature = feature
        self.reason = reason
        super().__init__(f"{feature} not available: {reason or 'Firebase is not initialized'}")


def to_http_exception(error: PortalError) -> HTTPException:
    """Status code and body a router returns for a portal error."""
    if isinstance(error, RecordValidationError):
        return HTTPException(status_code=422, detail={"errors": error.errors})
    if isinstance(error, UploadRejectedError):
        return HTTPException(status_code=400, detail={"errors": {error.field: error.message}})
    if isinstance(error, (NotFoundError, UnknownCollectionError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ArchiveFailedError):
        return HTTPException(status_code=503, detail=f"Archive failed; {error.collection}/{error.document_id} was not deleted")
    if isinstance(error, FirebaseUnavailableError):
        return HTTPException(status_code=503, detail=str(error))
    if isinstance(error, FetchError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=502, detail=str(error))
