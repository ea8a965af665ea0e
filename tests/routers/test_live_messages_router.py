from typing import Callable, Dict
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from fastapi.testclient import TestClient

from app.models.api.messages import MarkReadResponse
from app.realtime.connection_manager import ConnectionManager

Headers = Callable[[str], Dict[str, str]]


class TestLiveMessagesRouter:
    """Unit tests for the /live-messages endpoints."""

    def test_mark_read(self, client: TestClient, auth_headers: Headers) -> None:
        conversation_id = uuid4()
        message_id = uuid4()
        with patch(
            "app.services.mark_read_service.MarkReadService.mark_read",
            new_callable=AsyncMock,
            return_value=MarkReadResponse(updated=1, message_ids=[message_id]),
        ) as mock_mark:
            response = client.post(
                f"/live-messages/conversations/{conversation_id}/read",
                json={"messageIds": [str(message_id)]},
                headers=auth_headers("bob"),
            )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "updated": 1,
            "messageIds": [str(message_id)],
        }
        mock_mark.assert_awaited_once_with(conversation_id, "bob", [str(message_id)])

    def test_mark_read_without_body_marks_everything(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        conversation_id = uuid4()
        with patch(
            "app.services.mark_read_service.MarkReadService.mark_read",
            new_callable=AsyncMock,
            return_value=MarkReadResponse(updated=0, message_ids=[]),
        ) as mock_mark:
            response = client.post(
                f"/live-messages/conversations/{conversation_id}/read",
                headers=auth_headers("bob"),
            )

        assert response.status_code == 200
        mock_mark.assert_awaited_once_with(conversation_id, "bob", [])

    def test_mark_read_invalid_id(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        with patch(
            "app.services.mark_read_service.MarkReadService.mark_read",
            new_callable=AsyncMock,
            side_effect=ValueError("Invalid message id: m1"),
        ):
            response = client.post(
                f"/live-messages/conversations/{uuid4()}/read",
                json={"messageIds": ["m1"]},
                headers=auth_headers("bob"),
            )

        assert response.status_code == 400

    def test_presence(
        self,
        client: TestClient,
        auth_headers: Headers,
        connections: ConnectionManager,
    ) -> None:
        connections.active_connections["alice"] = [MagicMock()]

        response = client.get(
            "/live-messages/presence?userIds=alice,bob", headers=auth_headers("carol")
        )

        assert response.status_code == 200
        presence = response.json()["presence"]
        assert presence["alice"]["online"] is True
        assert presence["bob"] == {"online": False, "lastSeen": None}

    def test_presence_requires_user_ids(
        self, client: TestClient, auth_headers: Headers
    ) -> None:
        response = client.get(
            "/live-messages/presence?userIds=,", headers=auth_headers("carol")
        )
        assert response.status_code == 400
