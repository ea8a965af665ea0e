from datetime import datetime, timezone
from typing import Callable, Dict
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.models.api.conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    MuteConversationResponse,
    StartConversationResponse,
)
from app.models.api.messages import MessageResponse

Headers = Callable[[str], Dict[str, str]]


class TestMessagesRouter:
    """Unit tests for the /messages endpoints with services mocked."""

    @pytest.fixture
    def conversation(self) -> ConversationResponse:
        now = datetime.now(timezone.utc)
        return ConversationResponse(
            id=uuid4(),
            participants=["alice", "bob"],
            unread_count=2,
            created_at=now,
            updated_at=now,
        )

    def test_list_conversations(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        with patch(
            "app.services.list_conversations_service"
            ".ListConversationsService.list_conversations",
            new_callable=AsyncMock,
            return_value=ConversationListResponse(
                conversations=[conversation], total_unread=2
            ),
        ) as mock_list:
            response = client.get(
                "/messages/conversations?limit=10", headers=auth_headers("bob")
            )

        assert response.status_code == 200
        data = response.json()
        assert data["totalUnread"] == 2
        assert data["conversations"][0]["id"] == str(conversation.id)
        assert data["conversations"][0]["unreadCount"] == 2
        mock_list.assert_awaited_once_with("bob", limit=10, offset=0)

    def test_list_conversations_limit_validation(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        response = client.get(
            "/messages/conversations?limit=500", headers=auth_headers("bob")
        )
        assert response.status_code == 400

    def test_unexpected_error_is_500(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        with patch(
            "app.services.list_conversations_service"
            ".ListConversationsService.list_conversations",
            new_callable=AsyncMock,
            side_effect=RuntimeError("boom"),
        ):
            response = client.get("/messages/conversations", headers=auth_headers("bob"))

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"

    def test_start_conversation(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        with patch(
            "app.services.start_conversation_service"
            ".StartConversationService.start_conversation",
            new_callable=AsyncMock,
            return_value=StartConversationResponse(
                conversation=conversation, is_existing=True
            ),
        ) as mock_start:
            response = client.post(
                "/messages/conversations",
                json={"participantIds": ["bob"], "initialMessage": "Yaama"},
                headers=auth_headers("alice"),
            )

        assert response.status_code == 200
        assert response.json()["isExisting"] is True
        user_id, request = mock_start.call_args.args
        assert user_id == "alice"
        assert request.participant_ids == ["bob"]
        assert request.initial_message == "Yaama"

    def test_start_conversation_bad_request(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        with patch(
            "app.services.start_conversation_service"
            ".StartConversationService.start_conversation",
            new_callable=AsyncMock,
            side_effect=ValueError("Direct conversations have exactly one other participant"),
        ):
            response = client.post(
                "/messages/conversations",
                json={"participantIds": ["bob", "carol"]},
                headers=auth_headers("alice"),
            )

        assert response.status_code == 400
        assert "exactly one" in response.json()["detail"]

    def test_get_conversation(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        message = MessageResponse(
            id=uuid4(),
            conversation_id=conversation.id,
            sender_id="alice",
            content="Hello",
            created_at=datetime.now(timezone.utc),
        )
        with patch(
            "app.services.get_conversation_messages_service"
            ".GetConversationMessagesService.get_conversation",
            new_callable=AsyncMock,
            return_value=ConversationDetailResponse(
                conversation=conversation, messages=[message], has_more=False
            ),
        ) as mock_get:
            response = client.get(
                f"/messages/conversations/{conversation.id}?limit=20",
                headers=auth_headers("bob"),
            )

        assert response.status_code == 200
        data = response.json()
        assert data["hasMore"] is False
        assert data["messages"][0]["senderId"] == "alice"
        assert mock_get.call_args.args == (conversation.id, "bob")
        assert mock_get.call_args.kwargs == {"limit": 20, "before": None}

    def test_get_conversation_not_found(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        with patch(
            "app.services.get_conversation_messages_service"
            ".GetConversationMessagesService.get_conversation",
            new_callable=AsyncMock,
            side_effect=HTTPException(status_code=404, detail="Conversation not found"),
        ):
            response = client.get(
                f"/messages/conversations/{uuid4()}", headers=auth_headers("bob")
            )

        assert response.status_code == 404

    def test_get_conversation_invalid_id(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        response = client.get(
            "/messages/conversations/not-a-uuid", headers=auth_headers("bob")
        )
        assert response.status_code == 400

    def test_send_message(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        stored = MessageResponse(
            id=uuid4(),
            conversation_id=conversation.id,
            sender_id="alice",
            content="Hello",
            created_at=datetime.now(timezone.utc),
        )
        with patch(
            "app.services.send_message_service.SendMessageService.send_message",
            new_callable=AsyncMock,
            return_value=stored,
        ) as mock_send:
            response = client.post(
                f"/messages/conversations/{conversation.id}/messages",
                json={"content": "Hello", "clientId": "temp-1"},
                headers=auth_headers("alice"),
            )

        assert response.status_code == 201
        assert response.json()["message"]["id"] == str(stored.id)
        _, sender_id, request = mock_send.call_args.args
        assert sender_id == "alice"
        assert request.client_id == "temp-1"

    def test_send_empty_message(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        response = client.post(
            f"/messages/conversations/{conversation.id}/messages",
            json={"content": "  "},
            headers=auth_headers("alice"),
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("message_type", ["system", "y" * 500])
    def test_send_message_rejects_message_type(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
        message_type: str,
    ) -> None:
        with patch(
            "app.services.send_message_service.SendMessageService.send_message",
            new_callable=AsyncMock,
        ) as mock_send:
            response = client.post(
                f"/messages/conversations/{conversation.id}/messages",
                json={"content": "Hello", "messageType": message_type},
                headers=auth_headers("alice"),
            )

        assert response.status_code == 400
        assert response.json()["detail"][0]["loc"] == ["body", "messageType"]
        mock_send.assert_not_awaited()

    def test_leave_conversation(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        with patch(
            "app.services.leave_conversation_service"
            ".LeaveConversationService.leave_conversation",
            new_callable=AsyncMock,
        ) as mock_leave:
            response = client.delete(
                f"/messages/conversations/{conversation.id}",
                headers=auth_headers("bob"),
            )

        assert response.status_code == 204
        mock_leave.assert_awaited_once_with(conversation.id, "bob")

    def test_mute_conversation(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        until = datetime.now(timezone.utc)
        with patch(
            "app.services.mute_conversation_service.MuteConversationService.mute",
            new_callable=AsyncMock,
            return_value=MuteConversationResponse(is_muted=True, muted_until=until),
        ) as mock_mute:
            response = client.post(
                f"/messages/conversations/{conversation.id}/mute",
                json={"duration": 1.5},
                headers=auth_headers("bob"),
            )

        assert response.status_code == 200
        assert response.json()["isMuted"] is True
        mock_mute.assert_awaited_once_with(conversation.id, "bob", 1.5)

    def test_mute_without_body(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        with patch(
            "app.services.mute_conversation_service.MuteConversationService.mute",
            new_callable=AsyncMock,
            return_value=MuteConversationResponse(is_muted=True),
        ) as mock_mute:
            response = client.post(
                f"/messages/conversations/{conversation.id}/mute",
                headers=auth_headers("bob"),
            )

        assert response.status_code == 200
        mock_mute.assert_awaited_once_with(conversation.id, "bob", None)

    def test_unmute_not_found(
        self,
        client: TestClient,
        auth_headers: Headers,
        conversation: ConversationResponse,
    ) -> None:
        with patch(
            "app.services.mute_conversation_service.MuteConversationService.unmute",
            new_callable=AsyncMock,
            side_effect=HTTPException(status_code=404, detail="Conversation not found"),
        ):
            response = client.delete(
                f"/messages/conversations/{conversation.id}/mute",
                headers=auth_headers("bob"),
            )

        assert response.status_code == 404

    def test_unread_count(self, client: TestClient, auth_headers: Headers) -> None:
        with patch(
            "app.services.list_conversations_service"
            ".ListConversationsService.get_unread_count",
            new_callable=AsyncMock,
            return_value=4,
        ):
            response = client.get("/messages/unread-count", headers=auth_headers("bob"))

        assert response.status_code == 200
        assert response.json() == {"unreadCount": 4}
