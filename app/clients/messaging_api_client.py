from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.models.api.conversations import (
    ConversationDetailResponse,
    ConversationListResponse,
    MuteConversationResponse,
    StartConversationResponse,
)
from app.models.api.messages import MarkReadResponse, MessageResponse, PresenceStatus


class MessagingApiClient:
    """REST client for the messaging API using httpx.

    Non-2xx answers raise ``httpx.HTTPStatusError``; callers decide what a
    failure means for their state.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    async def list_conversations(
        self, limit: int = 50, offset: int = 0
    ) -> ConversationListResponse:
        data = await self._request(
            "GET", "/messages/conversations", params={"limit": limit, "offset": offset}
        )
        return ConversationListResponse.model_validate(data)

    async def start_conversation(
        self,
        participant_ids: List[str],
        type: str = "direct",
        name: Optional[str] = None,
        initial_message: Optional[str] = None,
    ) -> StartConversationResponse:
        payload: Dict[str, Any] = {"participantIds": participant_ids, "type": type}
        if name is not None:
            payload["name"] = name
        if initial_message is not None:
            payload["initialMessage"] = initial_message
        data = await self._request("POST", "/messages/conversations", json=payload)
        return StartConversationResponse.model_validate(data)

    async def get_conversation(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        before: Optional[datetime] = None,
    ) -> ConversationDetailResponse:
        """Conversation detail with one page of history, oldest first."""
        params: Dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if before is not None:
            params["before"] = before.isoformat()
        data = await self._request(
            "GET", f"/messages/conversations/{conversation_id}", params=params
        )
        return ConversationDetailResponse.model_validate(data)

    async def send_message(
        self, conversation_id: str, content: str, client_id: Optional[str] = None
    ) -> MessageResponse:
        payload: Dict[str, Any] = {"content": content}
        if client_id:
            payload["clientId"] = client_id
        data = await self._request(
            "POST", f"/messages/conversations/{conversation_id}/messages", json=payload
        )
        return MessageResponse.model_validate(data["message"])

    async def leave_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/messages/conversations/{conversation_id}")

    async def mute_conversation(
        self, conversation_id: str, duration: Optional[float] = None
    ) -> MuteConversationResponse:
        """Mute for ``duration`` hours, or until unmuted."""
        payload: Dict[str, Any] = {}
        if duration is not None:
            payload["duration"] = duration
        data = await self._request(
            "POST", f"/messages/conversations/{conversation_id}/mute", json=payload
        )
        return MuteConversationResponse.model_validate(data)

    async def unmute_conversation(self, conversation_id: str) -> MuteConversationResponse:
        data = await self._request(
            "DELETE", f"/messages/conversations/{conversation_id}/mute"
        )
        return MuteConversationResponse.model_validate(data)

    async def get_unread_count(self) -> int:
        data = await self._request("GET", "/messages/unread-count")
        return int(data["unreadCount"])

    async def mark_read(
        self, conversation_id: str, message_ids: Optional[List[str]] = None
    ) -> MarkReadResponse:
        data = await self._request(
            "POST",
            f"/live-messages/conversations/{conversation_id}/read",
            json={"messageIds": message_ids or []},
        )
        return MarkReadResponse.model_validate(data)

    async def get_presence(self, user_ids: List[str]) -> Dict[str, PresenceStatus]:
        data = await self._request(
            "GET", "/live-messages/presence", params={"userIds": ",".join(user_ids)}
        )
        return {
            user_id: PresenceStatus.model_validate(status)
            for user_id, status in data["presence"].items()
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        ) as client:
            response = await client.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
            if response.status_code == 204 or not response.content:
                return None
            return response.json()
