"""Authenticated HTTP access to the task API."""

from __future__ import annotations

import logging
from typing import Any, Container, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from taskforce_client.cancellation import CancelToken
from taskforce_client.config import ClientOptions
from taskforce_common.errors import APIError, DecodeError

logger = logging.getLogger(__name__)

SDK_LANGUAGE = "python"
SUCCESS = range(200, 300)
BODY_EXCERPT = 500

M = TypeVar("M", bound=BaseModel)


class Transport:
    """Issues requests against ``options.base_url``.

    Every request carries the Bearer key (when configured) and the SDK
    header; every response, streaming ones included, is shown to the
    optional response hook before anything else looks at it.
    """

    def __init__(self, options: ClientOptions, http_client: Optional[httpx.Client] = None):
        self.options = options
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=options.timeout)

    def url(self, path: str) -> str:
        return f"{self.options.base_url}{path}"

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        h = {"X-SDK-Language": SDK_LANGUAGE}
        if self.options.api_key:
            h["Authorization"] = f"Bearer {self.options.api_key}"
        if extra:
            h.update(extra)
        return h

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        files: Any = None,
        data: Optional[Dict[str, Any]] = None,
        token: Optional[CancelToken] = None,
    ) -> httpx.Response:
        if token is not None:
            token.raise_if_cancelled()
        extra = {"Content-Type": "application/json"} if json is not None else None
        logger.debug("%s %s", method, path)
        resp = self._client.request(
            method,
            self.url(path),
            json=json,
            params=params,
            files=files,
            data=data,
            headers=self.headers(extra),
        )
        self._observe(resp)
        return resp

    def open_stream(
        self,
        path: str,
        token: Optional[CancelToken] = None,
        *,
        what: str = "stream",
        accept: str = "text/event-stream",
    ) -> httpx.Response:
        """Send a GET and return the response with its body still unread.

        The caller owns the returned response and must close it.
        """
        if token is not None:
            token.raise_if_cancelled()
        # reads may idle for as long as the server keeps the stream open
        timeout = httpx.Timeout(self.options.timeout, read=None)
        req = self._client.build_request(
            "GET", self.url(path), headers=self.headers({"Accept": accept}), timeout=timeout
        )
        logger.debug("GET %s (%s)", path, what)
        resp = self._client.send(req, stream=True)
        self._observe(resp)
        if resp.status_code != 200:
            try:
                body = resp.read().decode("utf-8", errors="replace")[:BODY_EXCERPT]
            finally:
                resp.close()
            raise APIError(f"{what} error", resp.status_code, body)
        return resp

    def _observe(self, resp: httpx.Response) -> None:
        hook = self.options.response_hook
        if hook is not None:
            hook(resp.status_code, resp.headers)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def expect_status(resp: httpx.Response, ok: Container[int], action: str) -> None:
    if resp.status_code not in ok:
        raise APIError(f"failed to {action}", resp.status_code, resp.text[:BODY_EXCERPT])


def decode_model(resp: httpx.Response, model: Type[M]) -> M:
    try:
        return model.model_validate_json(resp.content)
    except ValidationError as e:
        logger.warning("could not decode %s from %s", model.__name__, resp.request.url)
        raise DecodeError(f"invalid {model.__name__} payload: {e.errors(include_url=False)}") from e
