from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from typing import Optional
import asyncio
import json
import logging
from datetime import datetime

from ..auth.access_gate import Admitted, destination_for
from ..auth.firebase_auth import firebase_auth
from ..core.exceptions import UnknownCollectionError
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])

# collection -> page whose gate guards the live feed
FEED_PAGES = {
    COLLECTIONS['announcements']: "/announcements",
    COLLECTIONS['emergency_alerts']: "/emergency-alerts",
    COLLECTIONS['officials']: "/officials",
    COLLECTIONS['events']: "/events",
    COLLECTIONS['event_registrations']: "/admin/events",
    COLLECTIONS['voting']: "/vote",
    COLLECTIONS['user_votes']: "/vote",
    COLLECTIONS['feedback']: "/admin/feedback",
    COLLECTIONS['users']: "/admin/residents",
}

POLICY_VIOLATION = 1008


def _message(kind: str, **payload) -> str:
    return json.dumps({"type": kind, "timestamp": datetime.now().isoformat(), **payload}, default=str)


@router.websocket("/collections/{collection}")
async def collection_feed(
    websocket: WebSocket,
    collection: str,
    token: Optional[str] = Query(None, description="Firebase ID token"),
    mine: bool = Query(False, description="Only records whose userId is the caller"),
):
    """
    Live snapshots of one collection. The first message carries the current
    contents; each later message carries the full snapshot after a change.
    The feed closes as soon as the caller's gate outcome stops being Admitted
    (sign-out, role change, verification revoked).
    """
    page = FEED_PAGES.get(collection)
    if page is None:
        await websocket.close(code=POLICY_VIOLATION)
        return

    registry = websocket.app.state.sessions
    sync = websocket.app.state.sync_manager

    user_data = await firebase_auth.verify_token(token) if token else None
    if user_data:
        session = registry.session_for(user_data.get("uid"), user_data.get("email"))
        await session.wait_until_loaded()
    else:
        session = registry.anonymous()

    # residents may follow their own records in gated admin collections
    if mine and collection in (COLLECTIONS['feedback'], COLLECTIONS['event_registrations']):
        page = "/feedback" if collection == COLLECTIONS['feedback'] else "/events"
    destination = destination_for(page)

    if not isinstance(session.evaluate(destination), Admitted):
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    def on_change(snapshot):
        outbox.put_nowait(_message(
            "snapshot",
            collection=collection,
            data=[record.model_dump(mode="json") for record in snapshot],
        ))

    def on_outcome(outcome):
        if not isinstance(outcome, Admitted):
            outbox.put_nowait(None)

    try:
        if mine:
            subscription = sync.subscribe_filtered(collection, ("userId", session.uid), on_change)
        else:
            subscription = sync.subscribe(collection, on_change)
    except UnknownCollectionError:
        await websocket.close(code=POLICY_VIOLATION)
        return

    stop_watching = session.watch(destination, on_outcome)

    async def pump():
        while True:
            message = await outbox.get()
            if message is None:
                logger.info(f"Feed {collection} closed for {session.uid}: access revoked")
                await websocket.close(code=POLICY_VIOLATION)
                return
            await websocket.send_text(message)

    async def drain():
        # client messages are only pings
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text(_message("pong"))

    pump_task = asyncio.create_task(pump())
    drain_task = asyncio.create_task(drain())
    try:
        done, pending = await asyncio.wait({pump_task, drain_task}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"WebSocket feed error on {collection}: {str(error)}")
    finally:
        stop_watching()
        subscription()
