from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from taskforce_client.cancellation import CancelToken
from taskforce_client.config import DEFAULT_MAX_POLL_ATTEMPTS, DEFAULT_POLL_INTERVAL
from taskforce_common.errors import (
    InvalidArgumentError,
    OperationCancelled,
    PollTimeoutError,
    TaskFailedError,
    TaskForceError,
)
from taskforce_common.schemas import TaskStatus

logger = logging.getLogger(__name__)

StatusCallback = Callable[[TaskStatus], None]


class PollState(str, Enum):
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    ERRORED = "errored"


class TaskPoller:
    """Fetches a task's status at a fixed interval until it settles.

    ``fetch`` is called at most ``max_attempts`` times. Its errors end the
    poll right away; there is no retry. ``on_update`` sees every fetched
    status, the terminal one included, before it is evaluated. Between
    fetches the poller waits on ``token`` so cancelling it ends the wait at
    once; a fetch already in flight is not interrupted.
    """

    def __init__(
        self,
        fetch: Callable[[str], TaskStatus],
        *,
        interval: float = 0,
        max_attempts: int = 0,
        on_update: Optional[StatusCallback] = None,
        token: Optional[CancelToken] = None,
    ):
        if interval < 0:
            raise InvalidArgumentError(f"poll interval must not be negative, got {interval}")
        if max_attempts < 0:
            raise InvalidArgumentError(f"max_attempts must not be negative, got {max_attempts}")
        self.fetch = fetch
        self.interval = interval or DEFAULT_POLL_INTERVAL
        self.max_attempts = max_attempts or DEFAULT_MAX_POLL_ATTEMPTS
        self.on_update = on_update
        self.token = token or CancelToken()

        self.state = PollState.POLLING
        self.attempts = 0
        self.last_status: Optional[TaskStatus] = None

    def wait(self, task_id: str) -> TaskStatus:
        if self.token.cancelled:
            raise self._cancelled()

        while self.attempts < self.max_attempts:
            self.attempts += 1
            try:
                status = self.fetch(task_id)
            except TaskForceError as e:
                self.state = PollState.CANCELLED if isinstance(e, OperationCancelled) else PollState.ERRORED
                if e.status is None:
                    e.status = self.last_status
                raise
            except Exception:
                self.state = PollState.ERRORED
                raise
            self.last_status = status
            logger.debug("task %s: attempt %d/%d status=%s", task_id, self.attempts, self.max_attempts, status.status)

            if self.on_update is not None:
                self.on_update(status)

            if status.is_completed:
                self.state = PollState.COMPLETED
                logger.info("task %s completed after %d attempts", task_id, self.attempts)
                return status
            if status.is_failed:
                self.state = PollState.FAILED
                raise TaskFailedError(status.error or "no error message reported", status=status)

            if self.token.cancelled:
                raise self._cancelled()
            if self.attempts >= self.max_attempts:
                break
            if self.token.wait(self.interval):
                raise self._cancelled()

        self.state = PollState.TIMED_OUT
        raise PollTimeoutError(self.attempts, status=self.last_status)

    def _cancelled(self) -> OperationCancelled:
        self.state = PollState.CANCELLED
        return OperationCancelled("polling cancelled", status=self.last_status)
