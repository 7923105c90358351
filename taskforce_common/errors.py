from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from taskforce_common.schemas import TaskStatus


class TaskForceError(Exception):
    """Base class for errors raised by the task client.

    ``status`` holds the best known task status when the failure happened, so
    callers can still look at warnings or the last seen state.
    """

    def __init__(self, message: str, status: Optional["TaskStatus"] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class InvalidArgumentError(TaskForceError, ValueError):
    pass


class APIError(TaskForceError):
    def __init__(self, message: str, status_code: int, body: str = "", status: Optional["TaskStatus"] = None):
        super().__init__(f"{message}: status {status_code}", status=status)
        self.status_code = status_code
        self.body = body


class DecodeError(TaskForceError):
    pass


class TaskFailedError(TaskForceError):
    def __init__(self, message: str, status: Optional["TaskStatus"] = None):
        super().__init__(f"task failed: {message}", status=status)
        self.reason = message


class PollTimeoutError(TaskForceError):
    def __init__(self, attempts: int, status: Optional["TaskStatus"] = None):
        super().__init__(f"task timed out after {attempts} attempts", status=status)
        self.attempts = attempts


class OperationCancelled(TaskForceError):
    def __init__(self, message: str = "operation cancelled", status: Optional["TaskStatus"] = None):
        super().__init__(message, status=status)


class EndOfStream(TaskForceError):
    """The event stream finished normally. Not a failure."""

    def __init__(self, message: str = "end of stream", status: Optional["TaskStatus"] = None):
        super().__init__(message, status=status)
