"""Server-pushed task status events.

The server sends newline-delimited text frames::

    : keep-alive
    data: {"taskId": "t", "status": "processing"}

Only ``data:`` lines carry a status; blank lines, ``:`` comments and any
other event fields are skipped.
"""

from __future__ import annotations

import abc
import logging
import threading
from collections import deque
from typing import Callable, Deque, Iterable, Iterator, Optional

from taskforce_client.cancellation import CancelToken
from taskforce_common.errors import DecodeError, EndOfStream, OperationCancelled
from taskforce_common.schemas import TaskStatus, decode_status

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"


class TaskStatusStream(abc.ABC):
    """Pull-based sequence of status updates for one task."""

    task_id: str

    @abc.abstractmethod
    def next(self) -> TaskStatus:
        """Block until the next status; raises EndOfStream when the stream is done."""

    @abc.abstractmethod
    def close(self) -> None:
        ...

    def __iter__(self) -> Iterator[TaskStatus]:
        return self

    def __next__(self) -> TaskStatus:
        try:
            return self.next()
        except EndOfStream:
            raise StopIteration from None

    def __enter__(self) -> "TaskStatusStream":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class LineBuffer:
    """Accumulates raw bytes and hands out complete lines."""

    def __init__(self) -> None:
        self._buf = bytearray()
        self._lines: Deque[bytes] = deque()

    def feed(self, chunk: bytes) -> None:
        start = len(self._buf)
        self._buf.extend(chunk)
        # only the new bytes can hold a line break
        end = self._buf.find(b"\n", start)
        if end < 0:
            return
        begin = 0
        while end >= 0:
            self._lines.append(bytes(self._buf[begin:end]))
            begin = end + 1
            end = self._buf.find(b"\n", begin)
        del self._buf[:begin]

    def pop_line(self) -> Optional[str]:
        if not self._lines:
            return None
        return _text(self._lines.popleft())

    def finish(self) -> None:
        """End of input: an unterminated tail still counts as a line."""
        if self._buf:
            self._lines.append(bytes(self._buf))
            self._buf = bytearray()


def _text(raw: bytes) -> str:
    return raw.rstrip(b"\r").decode("utf-8", errors="replace")


def parse_event_line(line: str) -> Optional[TaskStatus]:
    """Decode one physical line. None means the line carries no status."""
    line = line.strip()
    if not line or line.startswith(COMMENT_PREFIX):
        return None
    if line.startswith(DATA_PREFIX):
        return decode_status(line[len(DATA_PREFIX):].strip())
    return None


class SSETaskStatusStream(TaskStatusStream):
    """Stream backed by an iterator of raw byte chunks.

    The stream owns ``token``: closing the stream cancels it. ``closer``
    releases the underlying connection; it runs once, either from
    ``close()`` or as soon as the token is cancelled, which also unblocks a
    read waiting on the network.
    """

    def __init__(
        self,
        task_id: str,
        chunks: Optional[Iterable[bytes]] = None,
        token: Optional[CancelToken] = None,
        closer: Optional[Callable[[], None]] = None,
    ):
        self.task_id = task_id
        self._chunks = iter(chunks) if chunks is not None else iter(())
        self._token = token or CancelToken()
        self._closer = closer
        self._buffer = LineBuffer()
        self._exhausted = False
        self._release_lock = threading.Lock()
        self._read_lock = threading.Lock()
        self.last_status: Optional[TaskStatus] = None
        self._token.add_callback(self._release)

    def attach(self, chunks: Iterable[bytes], closer: Optional[Callable[[], None]] = None) -> None:
        """Hand the stream a connection opened after construction."""
        self._chunks = iter(chunks)
        with self._release_lock:
            self._closer = closer
        if self._token.cancelled:
            self._release()

    def next(self) -> TaskStatus:
        if not self._read_lock.acquire(blocking=False):
            raise RuntimeError(f"concurrent next() on stream for task {self.task_id}")
        try:
            status = self._next_status()
        finally:
            self._read_lock.release()
        self.last_status = status
        return status

    def _next_status(self) -> TaskStatus:
        while True:
            self._token.raise_if_cancelled(self.last_status)
            line = self._buffer.pop_line()
            if line is None:
                if self._exhausted:
                    raise EndOfStream(status=self.last_status)
                self._read_more()
                continue
            try:
                status = parse_event_line(line)
            except DecodeError as e:
                logger.warning("task %s: dropping malformed frame", self.task_id)
                e.status = self.last_status
                raise
            if status is not None:
                logger.debug("task %s: stream event %s", self.task_id, status.status)
                return status

    def _read_more(self) -> None:
        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._exhausted = True
            self._buffer.finish()
            return
        except Exception as e:
            if self._token.cancelled:
                raise OperationCancelled(status=self.last_status) from e
            raise
        if chunk:
            self._buffer.feed(chunk)

    def _release(self) -> None:
        with self._release_lock:
            closer, self._closer = self._closer, None
        if closer is not None:
            closer()

    def close(self) -> None:
        self._token.cancel()
        self._token.detach()
        self._release()
