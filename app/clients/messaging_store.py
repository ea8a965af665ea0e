"""Client-side messaging state.

Merges REST history with live events for the open conversation, keeps the
conversation list, typing indicators and presence current, and runs the
optimistic send flow::

    sending -> confirmed
            -> failed -> (retry) -> sending

A sent message is shown exactly once whichever arrives first, the REST
response or the ``message:new`` echo: entries are matched by server id and
by the ``clientId`` the temporary entry was sent with.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Literal, Optional, Set, Tuple
from uuid import UUID

from app.clients.messaging_api_client import MessagingApiClient
from app.clients.realtime_transport import CONNECT, DISCONNECT, ERROR, RealtimeTransport
from app.clients.typing_throttle import TypingThrottle
from app.logging_config import get_logger
from app.models.api.base import CamelModel
from app.models.api.conversations import ConversationResponse, LastMessageSnapshot
from app.models.api.events import (
    ConversationJoinedEvent,
    MessageNewEvent,
    MessageReadEvent,
    PresenceUpdateEvent,
    TypingEvent,
)
from app.models.api.messages import MessageResponse

logger = get_logger(__name__)

MessageStatus = Literal["sending", "confirmed", "failed"]

TEMP_PREFIX = "temp-"


def new_temp_id() -> str:
    return f"{TEMP_PREFIX}{uuid.uuid4().hex}"


class ChatMessage(CamelModel):
    """A message as shown in the open conversation."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    is_read: bool = False
    status: MessageStatus = "confirmed"
    client_id: Optional[str] = None

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_PREFIX)

    @classmethod
    def from_response(
        cls, message: MessageResponse, client_id: Optional[str] = None
    ) -> "ChatMessage":
        return cls(
            id=str(message.id),
            conversation_id=str(message.conversation_id),
            sender_id=message.sender_id,
            content=message.content,
            created_at=message.created_at,
            is_read=message.is_read,
            client_id=client_id,
        )

    @classmethod
    def from_event(cls, event: MessageNewEvent) -> "ChatMessage":
        return cls(
            id=event.id,
            conversation_id=event.conversation_id,
            sender_id=event.sender_id,
            content=event.content,
            created_at=event.created_at,
            is_read=event.is_read,
            client_id=event.client_id,
        )


class MessagingStore:
    """State reducer for one signed-in user.

    The transport is injected and owned by the store between ``start`` and
    ``close``. Listeners registered with ``subscribe`` are called after every
    state change.
    """

    def __init__(
        self,
        api: MessagingApiClient,
        transport: RealtimeTransport,
        user_id: str,
        typing_ttl: float = 3.0,
        typing_interval: float = 2.0,
        typing_idle: float = 2.0,
    ):
        self.api = api
        self.transport = transport
        self.user_id = user_id
        self.typing_ttl = typing_ttl
        self.typing_interval = typing_interval
        self.typing_idle = typing_idle

        self.conversations: List[ConversationResponse] = []
        self.total_unread = 0
        self.active_conversation_id: Optional[str] = None
        self.messages: List[ChatMessage] = []
        self.has_more = False
        self.typing: Dict[str, Set[str]] = {}
        self.online_users: Set[str] = set()
        self.connected = False

        self._typing_timers: Dict[Tuple[str, str], asyncio.TimerHandle] = {}
        self._throttle: Optional[TypingThrottle] = None
        self._unsubscribers: List[Callable[[], None]] = []
        self._listeners: List[Callable[[], None]] = []

    # Lifecycle

    async def start(self, token: str) -> None:
        """Wire the transport's events into the store and connect."""
        if not self._unsubscribers:
            self._unsubscribers = [
                self.transport.on("message:new", self._on_message_new),
                self.transport.on("message:read", self._on_message_read),
                self.transport.on("message:typing", self._on_typing),
                self.transport.on("presence:update", self._on_presence),
                self.transport.on("conversation:joined", self._on_conversation_joined),
                self.transport.on(CONNECT, self._on_connect),
                self.transport.on(DISCONNECT, self._on_disconnect),
                self.transport.on(ERROR, self._on_error),
            ]
        await self.transport.connect(token)

    async def close(self) -> None:
        await self.close_conversation()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.transport.disconnect()
        self.connected = False

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # Conversations

    async def load_conversations(self) -> None:
        try:
            result = await self.api.list_conversations()
        except Exception:
            logger.exception("Failed to load conversations")
            return
        self.conversations = result.conversations
        self.total_unread = result.total_unread
        self._notify()

    async def open_conversation(self, conversation_id: str) -> None:
        """Show a conversation: fetch its history, join its room, clear its unread."""
        if self.active_conversation_id and self.active_conversation_id != conversation_id:
            await self.close_conversation()

        self.active_conversation_id = conversation_id
        self.messages = []
        self.has_more = False
        if self._throttle is not None:
            self._throttle.close()
        self._throttle = TypingThrottle(
            lambda is_typing: self._send_typing(conversation_id, is_typing),
            interval=self.typing_interval,
            idle=self.typing_idle,
        )

        try:
            detail = await self.api.get_conversation(conversation_id)
        except Exception:
            logger.exception("Failed to load conversation %s", conversation_id)
        else:
            if self.active_conversation_id == conversation_id:
                self.merge_history(detail.messages)
                self.has_more = detail.has_more
                self._clear_unread(conversation_id)

        if self.transport.connected:
            try:
                await self.transport.join_conversation(conversation_id)
            except ConnectionError as e:
                logger.warning("Could not join %s: %s", conversation_id, e)
        self._notify()

    async def load_older(self) -> None:
        """Prepend the page of history before the oldest message shown."""
        conversation_id = self.active_conversation_id
        confirmed = [m for m in self.messages if not m.is_temporary]
        if not conversation_id or not confirmed or not self.has_more:
            return
        try:
            detail = await self.api.get_conversation(
                conversation_id, before=confirmed[0].created_at
            )
        except Exception:
            logger.exception("Failed to load older messages of %s", conversation_id)
            return
        if self.active_conversation_id == conversation_id:
            self.merge_history(detail.messages)
            self.has_more = detail.has_more
            self._notify()

    async def close_conversation(self) -> None:
        conversation_id = self.active_conversation_id
        if conversation_id is None:
            return
        if self._throttle is not None:
            if self._throttle.is_typing:
                await self._stop_own_typing(conversation_id)
            self._throttle.close()
            self._throttle = None
        for key in [key for key in self._typing_timers if key[0] == conversation_id]:
            self._typing_timers.pop(key).cancel()
        self.typing.pop(conversation_id, None)
        self.active_conversation_id = None
        self.messages = []
        self.has_more = False
        if self.transport.connected:
            try:
                await self.transport.leave_conversation(conversation_id)
            except ConnectionError as e:
                logger.warning("Could not leave %s: %s", conversation_id, e)
        self._notify()

    async def mute_conversation(
        self, conversation_id: str, duration: Optional[float] = None
    ) -> None:
        """Optimistically mute; the previous state comes back if the request fails."""
        await self._set_muted(conversation_id, True, duration)

    async def unmute_conversation(self, conversation_id: str) -> None:
        await self._set_muted(conversation_id, False)

    async def _set_muted(
        self, conversation_id: str, is_muted: bool, duration: Optional[float] = None
    ) -> None:
        conversation = self._conversation(conversation_id)
        previous = (
            (conversation.is_muted, conversation.muted_until) if conversation else None
        )
        if conversation is not None:
            conversation.is_muted = is_muted
            self._notify()

        try:
            if is_muted:
                result = await self.api.mute_conversation(conversation_id, duration)
            else:
                result = await self.api.unmute_conversation(conversation_id)
        except Exception as e:
            logger.warning("Could not change mute of %s: %s", conversation_id, e)
            if conversation is not None and previous is not None:
                conversation.is_muted, conversation.muted_until = previous
                self._notify()
            return

        if conversation is not None:
            conversation.is_muted = result.is_muted
            conversation.muted_until = result.muted_until
            self._notify()

    def merge_history(self, history: List[MessageResponse]) -> None:
        """Merge a page of server history into the open conversation.

        Entries are deduplicated by id; live and optimistic entries the page
        does not cover are kept; a message already read stays read.
        """
        existing = {m.id: m for m in self.messages}
        merged: List[ChatMessage] = []
        for item in history:
            message = ChatMessage.from_response(item)
            known = existing.pop(message.id, None)
            if known is not None:
                message.is_read = message.is_read or known.is_read
                message.client_id = known.client_id
            merged.append(message)

        extras = [m for m in self.messages if m.id in existing]
        self.messages = sorted(merged + extras, key=lambda m: m.created_at)

    # Sending

    async def send_message(self, content: str) -> ChatMessage:
        """Optimistically append ``content`` and persist it over REST."""
        conversation_id = self.active_conversation_id
        if conversation_id is None:
            raise ValueError("No conversation is open")
        if not content.strip():
            raise ValueError("Message content must not be empty")

        if self._throttle is not None:
            self._throttle.stop()

        temp_id = new_temp_id()
        message = ChatMessage(
            id=temp_id,
            conversation_id=conversation_id,
            sender_id=self.user_id,
            content=content,
            created_at=datetime.now(timezone.utc),
            status="sending",
            client_id=temp_id,
        )
        self.messages.append(message)
        self._notify()

        return await self._deliver(message)

    async def retry(self, temp_id: str) -> ChatMessage:
        """Re-send a failed message with its original content."""
        message = self._find(temp_id)
        if message is None or message.status != "failed":
            raise ValueError(f"No failed message {temp_id}")
        message.status = "sending"
        self._notify()
        return await self._deliver(message)

    async def _deliver(self, message: ChatMessage) -> ChatMessage:
        temp_id = message.id
        try:
            stored = await self.api.send_message(
                message.conversation_id, message.content, client_id=temp_id
            )
        except Exception as e:
            logger.warning("Sending %s failed: %s", temp_id, e)
            message.status = "failed"
            self._notify()
            return message

        confirmed = self._confirm(temp_id, ChatMessage.from_response(stored, temp_id))
        self._touch_conversation(confirmed)
        self._notify()
        return confirmed

    def _confirm(self, temp_id: str, confirmed: ChatMessage) -> ChatMessage:
        """Swap the temporary entry for the stored message, keeping one bubble."""
        confirmed.status = "confirmed"
        already = self._find(confirmed.id)
        if already is not None:
            # The echo got here first
            self.messages = [m for m in self.messages if m.id != temp_id]
            already.status = "confirmed"
            already.is_read = already.is_read or confirmed.is_read
            return already

        for index, message in enumerate(self.messages):
            if message.id == temp_id:
                self.messages[index] = confirmed
                break
        return confirmed

    # Typing and read receipts

    def input_changed(self) -> None:
        """Call on every edit of the composer."""
        if self._throttle is not None:
            self._throttle.input_changed()

    async def mark_read(self, message_ids: Optional[List[str]] = None) -> None:
        """Mark messages from others in the open conversation as read."""
        conversation_id = self.active_conversation_id
        if conversation_id is None:
            return
        ids = set(message_ids or [])
        for message in self.messages:
            if message.sender_id != self.user_id and (not ids or message.id in ids):
                message.is_read = True
        self._clear_unread(conversation_id)
        self._notify()

        try:
            await self.api.mark_read(conversation_id, list(ids))
        except Exception as e:
            logger.warning("Read receipt for %s failed: %s", conversation_id, e)

    async def _send_typing(self, conversation_id: str, is_typing: bool) -> None:
        if self.transport.connected:
            await self.transport.send_typing(conversation_id, is_typing)

    async def _stop_own_typing(self, conversation_id: str) -> None:
        """Send typing=False now, while the room and the socket still exist."""
        try:
            await self._send_typing(conversation_id, False)
        except ConnectionError as e:
            logger.warning("Could not clear typing in %s: %s", conversation_id, e)

    # Inbound events

    async def _on_message_new(self, event: MessageNewEvent) -> None:
        incoming = ChatMessage.from_event(event)
        self._stop_typing(event.conversation_id, event.sender_id)

        if event.conversation_id == self.active_conversation_id:
            if self._find(incoming.id) is None:
                placeholder = self._find(event.client_id) if event.client_id else None
                if placeholder is not None:
                    self._confirm(placeholder.id, incoming)
                else:
                    self.messages.append(incoming)

        known = self._touch_conversation(incoming)
        is_open = event.conversation_id == self.active_conversation_id
        if known and not is_open and event.sender_id != self.user_id:
            known.unread_count += 1
            self.total_unread += 1
        self._notify()

        if not known:
            await self.load_conversations()
        elif is_open and event.sender_id != self.user_id:
            await self.mark_read([event.id])

    async def _on_message_read(self, event: MessageReadEvent) -> None:
        if event.conversation_id != self.active_conversation_id:
            return
        ids = set(event.message_ids)
        for message in self.messages:
            if ids:
                if message.id in ids:
                    message.is_read = True
            elif message.sender_id != event.user_id:
                message.is_read = True
        self._notify()

    async def _on_typing(self, event: TypingEvent) -> None:
        if event.user_id == self.user_id:
            return
        if not event.is_typing:
            self._stop_typing(event.conversation_id, event.user_id)
            self._notify()
            return

        key = (event.conversation_id, event.user_id)
        self.typing.setdefault(event.conversation_id, set()).add(event.user_id)
        timer = self._typing_timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._typing_timers[key] = loop.call_later(
            self.typing_ttl, self._expire_typing, *key
        )
        self._notify()

    async def _on_presence(self, event: PresenceUpdateEvent) -> None:
        if event.status == "online":
            self.online_users.add(event.user_id)
        else:
            self.online_users.discard(event.user_id)
        self._notify()

    async def _on_conversation_joined(self, event: ConversationJoinedEvent) -> None:
        self.online_users.update(
            user_id for user_id in event.online_participants if user_id != self.user_id
        )
        self._notify()

    async def _on_connect(self, _payload: object) -> None:
        self.connected = True
        if self.active_conversation_id:
            await self.transport.join_conversation(self.active_conversation_id)
        self._notify()

    async def _on_disconnect(self, code: object) -> None:
        logger.info("Real-time channel lost (code=%s)", code)
        self.connected = False
        self._notify()

    async def _on_error(self, error: object) -> None:
        logger.warning("Real-time error: %s", getattr(error, "message", error))

    # Helpers

    def _expire_typing(self, conversation_id: str, user_id: str) -> None:
        self._typing_timers.pop((conversation_id, user_id), None)
        self._stop_typing(conversation_id, user_id)
        self._notify()

    def _stop_typing(self, conversation_id: str, user_id: str) -> None:
        timer = self._typing_timers.pop((conversation_id, user_id), None)
        if timer is not None:
            timer.cancel()
        users = self.typing.get(conversation_id)
        if users is None:
            return
        users.discard(user_id)
        if not users:
            del self.typing[conversation_id]

    def _touch_conversation(
        self, message: ChatMessage
    ) -> Optional[ConversationResponse]:
        """Put ``message`` on its conversation's snapshot and move it to the top."""
        for index, conversation in enumerate(self.conversations):
            if str(conversation.id) == message.conversation_id:
                conversation.last_message = LastMessageSnapshot(
                    id=UUID(message.id),
                    sender_id=message.sender_id,
                    content=message.content,
                    created_at=message.created_at,
                )
                conversation.updated_at = message.created_at
                self.conversations.insert(0, self.conversations.pop(index))
                return conversation
        return None

    def _conversation(self, conversation_id: str) -> Optional[ConversationResponse]:
        return next(
            (c for c in self.conversations if str(c.id) == conversation_id), None
        )

    def _clear_unread(self, conversation_id: str) -> None:
        for conversation in self.conversations:
            if str(conversation.id) == conversation_id:
                self.total_unread = max(0, self.total_unread - conversation.unread_count)
                conversation.unread_count = 0

    def _find(self, message_id: Optional[str]) -> Optional[ChatMessage]:
        if message_id is None:
            return None
        return next((m for m in self.messages if m.id == message_id), None)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
