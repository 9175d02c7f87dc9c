from fastapi import APIRouter, Body, Depends, HTTPException, Path
from typing import Any, Dict
import logging

from ..auth.dependencies import gate, get_sync_manager, require_admin
from ..auth.session import SessionState
from ..core.exceptions import PortalError, to_http_exception
from ..database.collections import COLLECTIONS
from ..services.sync_manager import SyncManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["content"])

# url segment -> (collection, resident page that gates reads, admin page)
CONTENT_SECTIONS = {
    "announcements": (COLLECTIONS['announcements'], "/announcements", "/admin/announcements"),
    "emergency-alerts": (COLLECTIONS['emergency_alerts'], "/emergency-alerts", "/admin/emergency-alerts"),
    "officials": (COLLECTIONS['officials'], "/officials", "/admin/officials"),
    "events": (COLLECTIONS['events'], "/events", "/admin/events"),
    "voting": (COLLECTIONS['voting'], "/vote", "/admin/voting"),
}


def _dump(record) -> Dict[str, Any]:
    return record.model_dump(mode="json")


def add_section_routes(segment: str, collection: str, read_path: str, admin_path: str):
    """Register list/get for residents and create/update/delete/clear for admins."""
    read_gate = gate(read_path)
    write_gate = gate(admin_path)

    @router.get(f"/{segment}", name=f"list_{segment}")
    async def list_records(
        session: SessionState = Depends(read_gate),
        sync: SyncManager = Depends(get_sync_manager),
    ):
        try:
            records = await sync.get_all(collection)
            return {"success": True, "data": [_dump(r) for r in records], "count": len(records)}
        except PortalError as e:
            logger.error(f"Error listing {collection}: {str(e)}")
            raise to_http_exception(e)

    @router.get(f"/{segment}/{{record_id}}", name=f"get_{segment}")
    async def get_record(
        record_id: str = Path(...),
        session: SessionState = Depends(read_gate),
        sync: SyncManager = Depends(get_sync_manager),
    ):
        try:
            record = await sync.get(collection, record_id)
        except PortalError as e:
            raise to_http_exception(e)
        if record is None:
            raise HTTPException(status_code=404, detail=f"{collection}/{record_id} not found")
        return {"success": True, "data": _dump(record)}

    @router.post(f"/{segment}", status_code=201, name=f"create_{segment}")
    async def create_record(
        fields: Dict[str, Any] = Body(...),
        session: SessionState = Depends(write_gate),
        sync: SyncManager = Depends(get_sync_manager),
    ):
        try:
            record = await sync.add(collection, {"createdBy": session.email, **fields})
            return {"success": True, "data": _dump(record)}
        except PortalError as e:
            logger.error(f"Error creating {collection} record: {str(e)}")
            raise to_http_exception(e)

    @router.patch(f"/{segment}/{{record_id}}", name=f"update_{segment}")
    async def update_record(
        record_id: str = Path(...),
        fields: Dict[str, Any] = Body(...),
        session: SessionState = Depends(write_gate),
        sync: SyncManager = Depends(get_sync_manager),
    ):
        try:
            changes = await sync.update(collection, record_id, fields)
            return {"success": True, "data": {k: v for k, v in changes.items() if k != "updatedAt"}}
        except PortalError as e:
            logger.error(f"Error updating {collection}/{record_id}: {str(e)}")
            raise to_http_exception(e)

    @router.delete(f"/{segment}/{{record_id}}", name=f"delete_{segment}")
    async def delete_record(
        record_id: str = Path(...),
        session: SessionState = Depends(write_gate),
        sync: SyncManager = Depends(get_sync_manager),
    ):
        try:
            removed = await sync.remove(collection, record_id, session.uid, session.email)
            return {"success": True, "removed": removed}
        except PortalError as e:
            logger.error(f"Error deleting {collection}/{record_id}: {str(e)}")
            raise to_http_exception(e)

    @router.delete(f"/{segment}", name=f"clear_{segment}")
    async def clear_records(
        session: SessionState = Depends(write_gate),
        sync: SyncManager = Depends(get_sync_manager),
    ):
        try:
            removed = await sync.clear_collection(collection, session.uid, session.email)
            return {"success": True, "removed": removed}
        except PortalError as e:
            logger.error(f"Error clearing {collection}: {str(e)}")
            raise to_http_exception(e)


for _segment, (_collection, _read_path, _admin_path) in CONTENT_SECTIONS.items():
    add_section_routes(_segment, _collection, _read_path, _admin_path)


@router.get("/export")
async def export_data(
    session: SessionState = Depends(require_admin),
    sync: SyncManager = Depends(get_sync_manager),
):
    """JSON dump of the main sections; a section that cannot be read comes back empty."""
    return {"success": True, "data": await sync.export_data()}
