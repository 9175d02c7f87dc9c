from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging

from ..core.exceptions import ArchiveFailedError
from ..database.collections import archive_collection_name

logger = logging.getLogger(__name__)

ARCHIVE_METADATA_FIELDS = (
    "originalId",
    "originalCollection",
    "archivedAt",
    "archivedBy",
    "archivedByEmail",
    "archivedDate",
)


class ArchiveService:
    """
    Copies a document into ``archived_<collection>`` before it is deleted.

    Archive documents are append-only: every call writes a new document and
    nothing here ever updates or removes one.
    """

    def __init__(self, store):
        self.db = store

    def build_archive_payload(
        self,
        collection: str,
        record_id: str,
        original: Dict[str, Any],
        archived_by: Optional[str] = None,
        archived_by_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {k: v for k, v in original.items() if k != "id"}
        payload.update({
            "originalId": record_id,
            "originalCollection": collection,
            "archivedBy": archived_by,
            "archivedByEmail": archived_by_email,
            "archivedDate": datetime.now(timezone.utc).isoformat(),
        })
        return payload

    async def archive_record(
        self,
        collection: str,
        record_id: str,
        archived_by: Optional[str] = None,
        archived_by_email: Optional[str] = None,
    ) -> bool:
        """
        Archive one record.

        Returns:
            True once the archive copy is written, False when the record does
            not exist (nothing to archive).

        Raises:
            ArchiveFailedError: the original could not be read or the copy
            could not be written.
        """
        success, original, error = await self.db.get_document(collection, record_id)
        if not success:
            logger.error(f"Could not read {collection}/{record_id} for archiving: {error}")
            raise ArchiveFailedError(collection, record_id, error)

        if original is None:
            logger.warning(f"Document {record_id} does not exist in {collection}")
            return False

        payload = self.build_archive_payload(collection, record_id, original, archived_by, archived_by_email)
        archive_collection = archive_collection_name(collection)

        success, archive_id, error = await self.db.create_document(
            archive_collection,
            payload,
            server_timestamps=("archivedAt",),
        )
        if not success:
            logger.error(f"Archive write for {collection}/{record_id} failed: {error}")
            raise ArchiveFailedError(collection, record_id, error)

        logger.info(f"Archived {collection}/{record_id} as {archive_collection}/{archive_id} (by {archived_by or 'unknown'})")
        return True

    async def archive_records(
        self,
        collection: str,
        record_ids: List[str],
        archived_by: Optional[str] = None,
        archived_by_email: Optional[str] = None,
    ) -> List[str]:
        """
        Archive several records one by one. There is no cross-record
        atomicity: the first failure raises and earlier copies stay written.

        Returns the ids that were actually archived.
        """
        archived = []
        for record_id in record_ids:
            if await self.archive_record(collection, record_id, archived_by, archived_by_email):
                archived.append(record_id)
        return archived
