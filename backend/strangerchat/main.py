from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
import uvicorn

from .config import Settings, load_settings
from .core import ChatService
from .models import (
    BlockUserMessage,
    CancelSearchMessage,
    ErrorMessage,
    FindMatchMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    ReportInfo,
    ReportUserMessage,
    RoomSummary,
    SendMessageMessage,
    TypingMessage,
)
from .reaper import ReaperTask

settings = load_settings()


def setup_logging(config: Settings) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.log_to_file:
        handlers.append(logging.FileHandler("strangerchat.log"))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


setup_logging(settings)
logger = logging.getLogger("strangerchat")


class Metrics:
    def __init__(self):
        self.active_connections = 0
        self.total_connections = 0
        self.websocket_errors = 0
        self.bad_messages = 0
        self.start_time = time.time()

    def connection_established(self):
        self.active_connections += 1
        self.total_connections += 1

    def connection_closed(self):
        self.active_connections = max(0, self.active_connections - 1)

    def websocket_error(self):
        self.websocket_errors += 1

    def bad_message(self):
        self.bad_messages += 1

    def get_stats(self):
        return {
            "uptime_seconds": time.time() - self.start_time,
            "active_connections": self.active_connections,
            "total_connections": self.total_connections,
            "websocket_errors": self.websocket_errors,
            "bad_messages": self.bad_messages,
        }


class ConnectionHub:
    """Notifier backed by one outbox queue per connected socket.

    Sends never await, so the chat service can emit while holding its lock;
    a writer task per socket drains the outbox in order. A full outbox means
    the client stopped reading; further events for it are dropped.
    """

    def __init__(self, max_outbox: int = 256):
        self._outboxes: Dict[str, asyncio.Queue] = {}
        self._max_outbox = max_outbox
        self.dropped = 0

    def attach(self, participant_id: str) -> asyncio.Queue:
        outbox: asyncio.Queue = asyncio.Queue(maxsize=self._max_outbox)
        self._outboxes[participant_id] = outbox
        return outbox

    def detach(self, participant_id: str) -> None:
        self._outboxes.pop(participant_id, None)

    def notify(self, participant_id: str, event: BaseModel) -> None:
        outbox = self._outboxes.get(participant_id)
        if outbox is None:
            logger.debug(f"Dropped {event.__class__.__name__} for gone peer {participant_id}")
            return
        try:
            outbox.put_nowait(event.model_dump_json())
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Outbox full for {participant_id}, dropped {event.__class__.__name__}")

    def broadcast(self, participant_ids: Iterable[str], event: BaseModel) -> None:
        for pid in participant_ids:
            self.notify(pid, event)

    def broadcast_all(self, event: BaseModel) -> None:
        self.broadcast(list(self._outboxes), event)

    def __len__(self) -> int:
        return len(self._outboxes)


metrics = Metrics()

app = FastAPI(
    title="Stranger Chat",
    version="1.0",
    description="Anonymous one-to-one chat matchmaking over WebSocket",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

if settings.trusted_hosts:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)


@app.on_event("startup")
async def on_startup():
    logger.info("Starting Stranger Chat server")
    hub = ConnectionHub(settings.outbox_max_size)
    service = ChatService(
        hub,
        search_timeout_seconds=settings.search_timeout_seconds,
        room_max_age_seconds=settings.room_max_age_seconds,
    )
    reaper = ReaperTask(service, settings.reaper_interval_seconds)
    reaper.start()
    app.state.hub = hub
    app.state.chat = service
    app.state.reaper = reaper
    logger.info("Room reaper started")


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("Shutting down Stranger Chat server")
    await app.state.reaper.stop()


@app.get("/api/health")
async def health(request: Request):
    try:
        stats = await request.app.state.chat.stats()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": app.version,
            "metrics": metrics.get_stats(),
            "dropped_events": request.app.state.hub.dropped,
            "chat": stats,
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "error": str(e),
                     "timestamp": datetime.now(timezone.utc).isoformat()},
        )


@app.get("/api/admin/rooms", response_model=List[RoomSummary])
async def admin_rooms(request: Request):
    chat: ChatService = request.app.state.chat
    now = time.time()
    return [
        RoomSummary(
            roomId=room.room_id,
            members=list(room.members),
            createdAt=datetime.fromtimestamp(room.created_at, timezone.utc),
            ageSeconds=max(0.0, now - room.created_at),
        )
        for room in chat.rooms
    ]


@app.get("/api/admin/reports", response_model=List[ReportInfo])
async def admin_reports(request: Request):
    chat: ChatService = request.app.state.chat
    return [
        ReportInfo(
            reporterId=r.reporter_id,
            reportedUserId=r.reported_id,
            roomId=r.room_id,
            reason=r.reason,
            createdAt=datetime.fromtimestamp(r.created_at, timezone.utc),
        )
        for r in chat.reports
    ]


# --- WebSocket transport ---

def send_error(hub: ConnectionHub, participant_id: str, code: str, message: str):
    hub.notify(participant_id, ErrorMessage(code=code, message=message))
    logger.warning(f"Sent error to {participant_id}: {code} - {message}")


async def handle_websocket_message(chat: ChatService, hub: ConnectionHub, participant_id: str,
                                   data: dict) -> bool:
    """Validate one inbound frame and hand it to the chat service."""
    msg_type = data.get("type") if isinstance(data, dict) else None
    if not msg_type:
        send_error(hub, participant_id, "missing_type", "Message type is required")
        return False

    try:
        if msg_type == "findMatch":
            msg = FindMatchMessage(**data)
            await chat.find_match(participant_id, msg.avatar, msg.nickname)

        elif msg_type == "cancelSearch":
            CancelSearchMessage(**data)
            await chat.cancel_search(participant_id)

        elif msg_type == "joinRoom":
            msg = JoinRoomMessage(**data)
            await chat.join_room(participant_id, msg.roomId)

        elif msg_type == "sendMessage":
            msg = SendMessageMessage(**data)
            if len(msg.message) > settings.max_message_length:
                send_error(hub, participant_id, "message_too_long",
                           f"Message exceeds {settings.max_message_length} characters")
                return False
            await chat.send_message(participant_id, msg.roomId, msg.message)

        elif msg_type == "typing":
            msg = TypingMessage(**data)
            await chat.typing(participant_id, msg.roomId, msg.isTyping)

        elif msg_type == "leaveRoom":
            msg = LeaveRoomMessage(**data)
            await chat.leave_room(participant_id, msg.roomId)

        elif msg_type == "reportUser":
            msg = ReportUserMessage(**data)
            await chat.report_user(participant_id, msg.roomId, msg.reason, msg.reportedUserId)

        elif msg_type == "blockUser":
            msg = BlockUserMessage(**data)
            await chat.block_user(participant_id, msg.roomId, msg.blockedUserId)

        else:
            send_error(hub, participant_id, "unknown_type", f"Unknown message type: {msg_type}")
            return False

    except ValidationError as e:
        send_error(hub, participant_id, "bad_message", f"Invalid {msg_type} message: {e.errors()[0]['msg']}")
        return False

    return True


async def pump_outbox(ws: WebSocket, hub: ConnectionHub, participant_id: str, outbox: asyncio.Queue):
    while True:
        payload = await outbox.get()
        try:
            await ws.send_text(payload)
        except Exception as e:
            # no retry; stop queueing for this socket, the receive loop cleans up
            logger.warning(f"Failed to deliver to {participant_id}: {e}")
            metrics.websocket_error()
            hub.detach(participant_id)
            return


@app.websocket("/ws")
async def ws_chat(ws: WebSocket):
    await ws.accept()
    chat: ChatService = ws.app.state.chat
    hub: ConnectionHub = ws.app.state.hub

    participant_id = secrets.token_urlsafe(12)
    outbox = hub.attach(participant_id)
    writer = asyncio.create_task(pump_outbox(ws, hub, participant_id, outbox))
    metrics.connection_established()
    await chat.connect(participant_id)

    bad_count = 0
    try:
        while True:
            try:
                raw = await ws.receive_text()
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Invalid JSON from {participant_id}: {e}")
                send_error(hub, participant_id, "bad_json", "Invalid JSON format")
                ok = False
            else:
                ok = await handle_websocket_message(chat, hub, participant_id, data)

            if ok:
                bad_count = 0
                continue
            metrics.bad_message()
            bad_count += 1
            if bad_count >= settings.max_bad_messages:
                logger.error(f"Too many bad messages from {participant_id}, closing connection")
                await _flush(outbox)
                await ws.close(code=4400)
                break
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnect: {participant_id}")
    except Exception as e:
        logger.error(f"Unexpected WebSocket error for {participant_id}: {e}")
        metrics.websocket_error()
    finally:
        hub.detach(participant_id)
        writer.cancel()
        await chat.disconnect(participant_id)
        metrics.connection_closed()


async def _flush(outbox: asyncio.Queue, timeout: float = 1.0):
    # give the writer a chance to send pending error frames before close
    deadline = time.monotonic() + timeout
    while not outbox.empty() and time.monotonic() < deadline:
        await asyncio.sleep(0.01)


def run(config: Optional[Settings] = None) -> None:
    config = config or settings
    uvicorn.run(
        "strangerchat.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level=config.log_level.lower(),
        access_log=True,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )


if __name__ == "__main__":
    run()
