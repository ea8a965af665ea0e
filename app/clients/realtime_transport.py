"""Client side of the real-time channel, on top of aiohttp's WebSocket client."""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from app.logging_config import get_logger
from app.models.api.events import (
    Event,
    JoinConversationEvent,
    LeaveConversationEvent,
    MarkReadEvent,
    SendMessageEvent,
    SendTypingEvent,
    parse_server_event,
)

logger = get_logger(__name__)

Handler = Callable[[Any], Any]

# Lifecycle events dispatched next to the server event types
CONNECT = "connect"
DISCONNECT = "disconnect"
ERROR = "error"


class RealtimeTransport:
    """One WebSocket per session, fanning validated server events out to observers.

    Handlers are registered per event type (``"message:new"``, ``"connect"``
    and so on) and may be plain functions or coroutines. There is no
    reconnection: when the socket drops ``disconnect`` is dispatched and the
    owner calls ``connect`` again if it wants to.
    """

    def __init__(
        self,
        ws_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        heartbeat: Optional[float] = 20.0,
    ):
        self.ws_url = ws_url
        self.heartbeat = heartbeat
        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional["asyncio.Task[None]"] = None
        self._handlers: Dict[str, List[Handler]] = {}

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event``. Returns a callable that removes it."""
        self._handlers.setdefault(event, []).append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def connect(self, token: str) -> None:
        if self.connected:
            return

        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            ws = await self._session.ws_connect(
                self.ws_url, params={"token": token}, heartbeat=self.heartbeat
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Real-time connection to %s failed: %s", self.ws_url, e)
            await self._dispatch(ERROR, e)
            raise

        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info("Real-time channel connected")
        await self._dispatch(CONNECT, None)

    async def disconnect(self) -> None:
        ws, reader = self._ws, self._reader
        if ws is not None:
            await ws.close()
        if reader is not None:
            await reader
        self._reader = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def join_conversation(self, conversation_id: str) -> None:
        await self._send(JoinConversationEvent(conversation_id=conversation_id))

    async def leave_conversation(self, conversation_id: str) -> None:
        await self._send(LeaveConversationEvent(conversation_id=conversation_id))

    async def send_message(
        self, conversation_id: str, content: str, client_id: Optional[str] = None
    ) -> None:
        await self._send(
            SendMessageEvent(
                conversation_id=conversation_id, content=content, client_id=client_id
            )
        )

    async def send_typing(self, conversation_id: str, is_typing: bool) -> None:
        await self._send(
            SendTypingEvent(conversation_id=conversation_id, is_typing=is_typing)
        )

    async def mark_read(
        self, conversation_id: str, message_ids: Optional[List[str]] = None
    ) -> None:
        await self._send(
            MarkReadEvent(conversation_id=conversation_id, message_ids=message_ids or [])
        )

    async def _send(self, event: Event) -> None:
        if self._ws is None or self._ws.closed:
            raise ConnectionError("Real-time channel is not connected")
        await self._ws.send_json(event.to_wire())

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        event = parse_server_event(msg.data)
                    except ValueError as e:
                        logger.warning("Dropping malformed frame: %s", e)
                        continue
                    await self._dispatch(event.type, event)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    await self._dispatch(ERROR, ws.exception())
        finally:
            if self._ws is ws:
                self._ws = None
            logger.info("Real-time channel closed (code=%s)", ws.close_code)
            await self._dispatch(DISCONNECT, ws.close_code)

    async def _dispatch(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", event)
