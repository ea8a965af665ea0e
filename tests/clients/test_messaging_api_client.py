import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List
from uuid import uuid4

import httpx
import pytest

from app.clients.messaging_api_client import MessagingApiClient


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> MessagingApiClient:
    return MessagingApiClient(
        "http://api.test/", "token-123", transport=httpx.MockTransport(handler)
    )


def message_payload(conversation_id: str, content: str = "Hello") -> Dict[str, Any]:
    return {
        "id": str(uuid4()),
        "conversationId": conversation_id,
        "senderId": "alice",
        "content": content,
        "messageType": "text",
        "isRead": False,
        "readAt": None,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }


class TestMessagingApiClient:
    """REST client tests over httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_send_message(self) -> None:
        conversation_id = str(uuid4())
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                201, json={"message": message_payload(conversation_id)}
            )

        client = make_client(handler)
        message = await client.send_message(conversation_id, "Hello", client_id="temp-1")

        assert str(message.conversation_id) == conversation_id
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == f"/messages/conversations/{conversation_id}/messages"
        assert request.headers["Authorization"] == "Bearer token-123"
        assert json.loads(request.content) == {"content": "Hello", "clientId": "temp-1"}

    @pytest.mark.asyncio
    async def test_get_conversation_with_paging(self) -> None:
        conversation_id = str(uuid4())
        now = datetime.now(timezone.utc).isoformat()
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "conversation": {
                        "id": conversation_id,
                        "type": "direct",
                        "participants": ["alice", "bob"],
                        "unreadCount": 0,
                        "createdAt": now,
                        "updatedAt": now,
                    },
                    "messages": [message_payload(conversation_id)],
                    "hasMore": True,
                },
            )

        client = make_client(handler)
        before = datetime(2026, 3, 1, tzinfo=timezone.utc)
        detail = await client.get_conversation(conversation_id, limit=20, before=before)

        assert detail.has_more is True
        assert len(detail.messages) == 1
        params = seen[0].url.params
        assert params["limit"] == "20"
        assert params["before"] == before.isoformat()

    @pytest.mark.asyncio
    async def test_list_and_unread_count(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/messages/unread-count":
                return httpx.Response(200, json={"unreadCount": 7})
            return httpx.Response(200, json={"conversations": [], "totalUnread": 7})

        client = make_client(handler)

        listing = await client.list_conversations()
        assert listing.total_unread == 7
        assert await client.get_unread_count() == 7

    @pytest.mark.asyncio
    async def test_mark_read_and_presence(self) -> None:
        conversation_id = str(uuid4())
        bodies: List[Any] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/read"):
                bodies.append(json.loads(request.content))
                return httpx.Response(
                    200, json={"success": True, "updated": 0, "messageIds": []}
                )
            assert request.url.params["userIds"] == "alice,bob"
            return httpx.Response(
                200,
                json={
                    "presence": {
                        "alice": {"online": True, "lastSeen": None},
                        "bob": {"online": False, "lastSeen": None},
                    }
                },
            )

        client = make_client(handler)

        result = await client.mark_read(conversation_id)
        assert result.updated == 0
        assert bodies == [{"messageIds": []}]

        presence = await client.get_presence(["alice", "bob"])
        assert presence["alice"].online is True
        assert presence["bob"].online is False

    @pytest.mark.asyncio
    async def test_leave_conversation_no_content(self) -> None:
        client = make_client(lambda request: httpx.Response(204))
        assert await client.leave_conversation(str(uuid4())) is None

    @pytest.mark.asyncio
    async def test_mute_and_unmute(self) -> None:
        conversation_id = str(uuid4())
        seen: List[tuple] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content) if request.content else None
            seen.append((request.method, request.url.path, body))
            if request.method == "POST":
                return httpx.Response(
                    200,
                    json={
                        "success": True,
                        "isMuted": True,
                        "mutedUntil": "2026-10-20T08:00:00+00:00",
                    },
                )
            return httpx.Response(
                200, json={"success": True, "isMuted": False, "mutedUntil": None}
            )

        client = make_client(handler)

        muted = await client.mute_conversation(conversation_id, duration=8)
        assert muted.is_muted is True
        assert muted.muted_until == datetime(2026, 10, 20, 8, tzinfo=timezone.utc)

        unmuted = await client.unmute_conversation(conversation_id)
        assert unmuted.is_muted is False

        path = f"/messages/conversations/{conversation_id}/mute"
        assert seen == [("POST", path, {"duration": 8}), ("DELETE", path, None)]

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        client = make_client(
            lambda request: httpx.Response(404, json={"detail": "Conversation not found"})
        )

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.get_conversation(str(uuid4()))

        assert exc_info.value.response.status_code == 404
