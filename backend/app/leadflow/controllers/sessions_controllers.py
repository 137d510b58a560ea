"""WebSocket channel that tells a client session when to re-fetch.

Browsers cannot set headers on a WebSocket handshake, so the identity comes
from query parameters set by the auth proxy.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from leadflow.logger_config import get_logger
from leadflow.models.enums import PresenceState, StaffRole
from leadflow.models.identity_models import Identity
from leadflow.repositories.records.crud.staff_crud import CRUDStaff
from leadflow.repositories.records.database import SessionLocal
from leadflow.services.sessions.change_propagation import SessionObserver
from leadflow.services.staff.presence_service import PresenceService, PresenceSession

logger = get_logger(__name__)

sessions_router = APIRouter(prefix="/sessions", tags=["Sessions"])


@sessions_router.websocket("/ws")
async def session_updates(
    websocket: WebSocket,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    name: Optional[str] = None,
) -> None:
    """
    Push `{"type": "refresh", "view": "leads" | "staff"}` for relevant changes.

    While connected, a staff member's presence is heartbeated. The client may
    send `{"type": "presence", "state": "online" | "offline"}` to toggle it;
    the reply reports the state actually in effect.
    """
    try:
        identity = Identity(id=user_id, role=StaffRole(role or ""), name=name)
    except ValueError:
        await websocket.close(code=1008)
        return
    if not identity.is_admin and not identity.id:
        await websocket.close(code=1008)
        return

    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[str]" = asyncio.Queue()
    observer: Optional[SessionObserver] = None
    presence: Optional[PresenceSession] = None
    sender: Optional["asyncio.Task[None]"] = None

    async def push_refreshes() -> None:
        while True:
            view = await queue.get()
            await websocket.send_json({"type": "refresh", "view": view})

    try:
        observer = SessionObserver(
            identity, on_refresh=lambda view: loop.call_soon_threadsafe(queue.put_nowait, view)
        )
        await websocket.accept()
        if identity.id:
            presence = PresenceSession(PresenceService(CRUDStaff()), SessionLocal, identity.id)
            await run_in_threadpool(presence.start)
        sender = asyncio.create_task(push_refreshes())
        logger.info("Session opened for %s (%s).", identity.display_name, identity.role.value)
        while True:
            message = await websocket.receive_json()
            if message.get("type") != "presence" or presence is None:
                continue
            try:
                state = PresenceState(message.get("state"))
            except ValueError:
                await websocket.send_json({"type": "error", "detail": "Unknown presence state"})
                continue
            accepted = await run_in_threadpool(presence.toggle, state)
            await websocket.send_json(
                {"type": "presence", "state": presence.state.value, "accepted": accepted}
            )
    except WebSocketDisconnect:
        logger.info("Session closed for %s.", identity.display_name)
    finally:
        if sender is not None:
            sender.cancel()
            (outcome,) = await asyncio.gather(sender, return_exceptions=True)
            if isinstance(outcome, Exception):
                logger.warning(
                    "Refresh push for %s failed: %s", identity.display_name, outcome
                )
        if observer is not None:
            observer.close()
        if presence is not None:
            await run_in_threadpool(presence.close, False)
