from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from taskforce_client.cancellation import CancelToken
from taskforce_client.transport import SUCCESS, Transport, decode_model, expect_status
from taskforce_common.errors import InvalidArgumentError
from taskforce_common.resources import (
    Thread,
    ThreadListResponse,
    ThreadMessage,
    ThreadMessagesResponse,
    ThreadRunResponse,
    compact,
)


class Threads:
    """Conversation threads: plain request/response calls."""

    def __init__(self, transport: Transport):
        self._t = transport

    def create(
        self,
        title: str = "",
        messages: Optional[List[Union[ThreadMessage, Dict[str, Any]]]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        token: Optional[CancelToken] = None,
    ) -> Thread:
        msgs = [m.model_dump(mode="json", exclude_none=True) if isinstance(m, ThreadMessage) else m for m in messages or []]
        body = compact({"title": title, "messages": msgs, "metadata": metadata})
        resp = self._t.request("POST", "/threads", json=body, token=token)
        expect_status(resp, SUCCESS, "create thread")
        return decode_model(resp, Thread)

    def list(self, limit: int = 20, offset: int = 0, token: Optional[CancelToken] = None) -> ThreadListResponse:
        resp = self._t.request("GET", "/threads", params={"limit": limit, "offset": offset}, token=token)
        expect_status(resp, (200,), "list threads")
        return decode_model(resp, ThreadListResponse)

    def get(self, thread_id: int, token: Optional[CancelToken] = None) -> Thread:
        resp = self._t.request("GET", f"/threads/{thread_id}", token=token)
        expect_status(resp, (200,), "get thread")
        return decode_model(resp, Thread)

    def delete(self, thread_id: int, token: Optional[CancelToken] = None) -> None:
        resp = self._t.request("DELETE", f"/threads/{thread_id}", token=token)
        expect_status(resp, SUCCESS, "delete thread")

    def messages(
        self, thread_id: int, limit: int = 50, offset: int = 0, token: Optional[CancelToken] = None
    ) -> ThreadMessagesResponse:
        resp = self._t.request(
            "GET", f"/threads/{thread_id}/messages", params={"limit": limit, "offset": offset}, token=token
        )
        expect_status(resp, (200,), "get thread messages")
        return decode_model(resp, ThreadMessagesResponse)

    def run(
        self,
        thread_id: int,
        prompt: str,
        model_id: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        token: Optional[CancelToken] = None,
    ) -> ThreadRunResponse:
        """Submit a prompt in the context of a thread; poll the returned task id as usual."""
        if not prompt:
            raise InvalidArgumentError("prompt is required")
        body = {"prompt": prompt, **compact({"model_id": model_id, "options": options})}
        resp = self._t.request("POST", f"/threads/{thread_id}/runs", json=body, token=token)
        expect_status(resp, SUCCESS, "run in thread")
        return decode_model(resp, ThreadRunResponse)
