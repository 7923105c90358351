from __future__ import annotations

import json
from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from taskforce_client.client import TaskForceClient
from taskforce_client.config import ClientOptions
from taskforce_server.main import create_app

BASE_URL = "http://api.test"


def status_body(status: str, task_id: str = "task-1", **extra) -> dict:
    body = {"taskId": task_id, "status": status}
    body.update(extra)
    return body


def sse(*payloads: dict) -> bytes:
    return b"".join(f"data: {json.dumps(p)}\n\n".encode() for p in payloads)


class Recorder:
    """MockTransport handler that replays canned responses and keeps the requests."""

    def __init__(self, *responses: httpx.Response | Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request {request.method} {request.url}")
        # the last response repeats for any further request
        nxt = self.responses[0] if len(self.responses) == 1 else self.responses.pop(0)
        if callable(nxt):
            return nxt(request)
        return httpx.Response(nxt.status_code, headers=nxt.headers, content=nxt.content)


@pytest.fixture
def make_client():
    clients = []

    def _make(handler, **opts) -> TaskForceClient:
        opts.setdefault("base_url", BASE_URL)
        http = httpx.Client(transport=httpx.MockTransport(handler))
        c = TaskForceClient(ClientOptions(**opts), http_client=http)
        clients.append(http)
        return c

    yield _make
    for http in clients:
        http.close()


@pytest.fixture
def server():
    app = create_app(api_key="test-key", steps=2, stream_tick=0)
    with TestClient(app) as tc:
        yield tc


@pytest.fixture
def server_client(server):
    return TaskForceClient(ClientOptions(api_key="test-key", base_url="http://testserver"), http_client=server)
