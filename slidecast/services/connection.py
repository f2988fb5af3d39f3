"""WebSocket session for one topic.

Admission happens before the socket is accepted: a malformed id is refused
with 400, an unknown topic with 404 and a secret that fails verification
with 403. Once open, a read-only connection may still send reactions; content
and navigation writes from it are answered with ``FORBIDDEN``. Every frame
this connection writes after the initial state goes through one outbox drained
by a single sender task. Broadcast frames beyond the outbox bound are dropped;
replies addressed to this connection alone never are.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from slidecast.core.capability import AccessLevel, verify_access
from slidecast.core.config import settings
from slidecast.core.errors import ERROR_MESSAGES, ErrorCode, TopicError
from slidecast.core.http_hardening import denial_response
from slidecast.schemas.topics import ErrorFrame, InboundFrame, OutboundFrame, PubEvent
from slidecast.services.broadcast_hub import BroadcastHub, Subscription
from slidecast.services.topic_directory import TopicDirectory
from slidecast.services.validation import is_valid_emoji, is_valid_topic_id

_LOG = logging.getLogger("slidecast.connection")

DENIAL_EXTENSION = "websocket.http.response"


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def error_frame(code: ErrorCode) -> str:
    return ErrorFrame(error=ERROR_MESSAGES[code], code=code.value).to_json()


@dataclass
class ConnectionResources:
    loop: asyncio.AbstractEventLoop
    broadcast_limit: int
    # Items are (text, droppable); only broadcasts count against the limit.
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    subscription: Subscription | None = None
    sender: asyncio.Task | None = None
    initial_frame: str | None = None
    queued_broadcasts: int = 0
    dropped_frames: int = 0
    released: bool = False

    def push_broadcast(self, text: str) -> bool:
        if self.queued_broadcasts >= self.broadcast_limit:
            self.dropped_frames += 1
            return False
        self.queued_broadcasts += 1
        self.outbox.put_nowait((text, True))
        return True

    def push_reply(self, text: str) -> None:
        self.outbox.put_nowait((text, False))

    async def next_frame(self) -> str:
        text, droppable = await self.outbox.get()
        if droppable:
            self.queued_broadcasts -= 1
        return text

    async def release(self) -> None:
        if self.released:
            return
        self.released = True
        if self.subscription is not None:
            self.subscription.cancel()
        if self.sender is not None and not self.sender.done():
            self.sender.cancel()
            try:
                await self.sender
            except asyncio.CancelledError:
                pass


async def refuse_upgrade(websocket: WebSocket, status_code: int, detail: str) -> None:
    response = denial_response(websocket, status_code, detail)
    if DENIAL_EXTENSION in (websocket.scope.get("extensions") or {}):
        await websocket.send_denial_response(response)
        return
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=detail)


class TopicConnection:
    def __init__(
        self,
        websocket: WebSocket,
        *,
        topic_id: str,
        access_level: AccessLevel,
        directory: TopicDirectory,
        hub: BroadcastHub,
        queue_size: int | None = None,
    ):
        self.websocket = websocket
        self.topic_id = topic_id
        self.access_level = access_level
        self.directory = directory
        self.hub = hub
        self.queue_size = max(1, int(queue_size if queue_size is not None else settings.WS_SEND_QUEUE_SIZE))
        self.state = ConnectionState.CONNECTING
        self._resources: ConnectionResources | None = None

    @property
    def writable(self) -> bool:
        return self.access_level == AccessLevel.WRITABLE

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    async def serve(self) -> None:
        async with self._opened() as resources:
            try:
                if resources.initial_frame is not None:
                    await self.websocket.send_text(resources.initial_frame)
                resources.sender = asyncio.create_task(self._drain_outbox(resources))
                await self._receive_loop()
            except WebSocketDisconnect:
                pass

    @asynccontextmanager
    async def _opened(self):
        resources = ConnectionResources(loop=asyncio.get_running_loop(), broadcast_limit=self.queue_size)
        self._resources = resources
        try:
            # Subscribe, then read: a write landing in between is seen by both.
            resources.subscription = self.hub.subscribe(self.topic_id, self._on_broadcast)
            resources.initial_frame = await self._load_initial_state()
            await self.websocket.accept()
            self.state = ConnectionState.OPEN
            _LOG.info("websocket connected topic_id=%s access=%s", self.topic_id, self.access_level.value)
            yield resources
        finally:
            self.state = ConnectionState.CLOSED
            await resources.release()
            _LOG.info(
                "websocket disconnected topic_id=%s dropped_frames=%s",
                self.topic_id,
                resources.dropped_frames,
            )

    def _on_broadcast(self, frame: OutboundFrame) -> None:
        resources = self._resources
        if resources is None or resources.released:
            return
        resources.loop.call_soon_threadsafe(self._enqueue, frame.to_json())

    def _enqueue(self, text: str) -> None:
        resources = self._resources
        if resources is None or resources.released:
            return
        if not resources.push_broadcast(text):
            _LOG.warning("outbox full, dropping frame topic_id=%s", self.topic_id)

    async def _drain_outbox(self, resources: ConnectionResources) -> None:
        while True:
            text = await resources.next_frame()
            try:
                await self.websocket.send_text(text)
            except Exception:
                _LOG.debug("websocket send failed topic_id=%s", self.topic_id, exc_info=True)
                return

    async def _load_initial_state(self) -> str | None:
        try:
            topic = await run_in_threadpool(self.directory.get_topic, self.topic_id)
        except Exception:
            _LOG.exception("initial state fetch failed topic_id=%s", self.topic_id)
            return error_frame(ErrorCode.INTERNAL)
        if topic is None or not topic.markdown:
            return None
        return OutboundFrame(markdown=topic.markdown).to_json()

    async def _receive_loop(self) -> None:
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            raw = message.get("text")
            if raw is None:
                data = message.get("bytes") or b""
                raw = data.decode("utf-8", errors="replace")
            await self.handle_frame(raw)

    async def reply_error(self, code: ErrorCode) -> None:
        resources = self._resources
        if not self.is_open or resources is None or resources.released:
            return
        resources.push_reply(error_frame(code))

    async def handle_frame(self, raw: str) -> None:
        if not self.is_open:
            return
        try:
            frame = InboundFrame.model_validate_json(raw)
        except ValidationError:
            await self.reply_error(ErrorCode.INVALID_MESSAGE)
            return

        if frame.has_content:
            await self._handle_content(frame.markdown)
        if frame.has_navigation:
            await self._handle_navigation(frame)
        if frame.pub is not None:
            await self._handle_pub(frame.pub)

    async def _handle_content(self, markdown: str) -> None:
        if not self.writable:
            await self.reply_error(ErrorCode.FORBIDDEN)
            return
        try:
            await run_in_threadpool(self.directory.update_content, self.topic_id, markdown)
        except TopicError as exc:
            await self.reply_error(exc.code)
            return
        except Exception:
            _LOG.exception("content update failed topic_id=%s", self.topic_id)
            await self.reply_error(ErrorCode.INTERNAL)
            return
        self.hub.broadcast(self.topic_id, OutboundFrame(markdown=markdown))

    async def _handle_navigation(self, frame: InboundFrame) -> None:
        if not self.writable:
            await self.reply_error(ErrorCode.FORBIDDEN)
            return
        self.hub.broadcast(
            self.topic_id,
            OutboundFrame(current_page=frame.current_page, current_section=frame.current_section),
        )

    async def _handle_pub(self, pub: PubEvent) -> None:
        reaction = pub.reaction
        if reaction is None:
            return
        if not is_valid_emoji(reaction.emoji):
            await self.reply_error(ErrorCode.INVALID_EMOJI)
            return
        self.hub.broadcast(self.topic_id, OutboundFrame(pub=pub))


async def serve_topic_socket(
    websocket: WebSocket,
    *,
    topic_id: str,
    secret: str | None,
    directory: TopicDirectory,
    hub: BroadcastHub,
) -> None:
    if not is_valid_topic_id(topic_id):
        await refuse_upgrade(websocket, status.HTTP_400_BAD_REQUEST, "Invalid topic ID format")
        return
    if not await run_in_threadpool(directory.topic_exists, topic_id):
        await refuse_upgrade(websocket, status.HTTP_404_NOT_FOUND, "Topic not found")
        return
    access_level = await run_in_threadpool(verify_access, topic_id, secret or "")
    if access_level == AccessLevel.INVALID:
        await refuse_upgrade(websocket, status.HTTP_403_FORBIDDEN, "Forbidden - invalid secret")
        return

    connection = TopicConnection(
        websocket,
        topic_id=topic_id,
        access_level=access_level,
        directory=directory,
        hub=hub,
    )
    await connection.serve()
