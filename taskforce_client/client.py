from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from taskforce_client.cancellation import CancelToken
from taskforce_client.config import ClientOptions
from taskforce_client.files import Files
from taskforce_client.polling import StatusCallback, TaskPoller
from taskforce_client.stream import SSETaskStatusStream, TaskStatusStream
from taskforce_client.threads import Threads
from taskforce_client.transport import Transport, decode_model, expect_status
from taskforce_common.errors import InvalidArgumentError
from taskforce_common.schemas import SubmitTaskResponse, TaskStatus, TaskSubmissionOptions

logger = logging.getLogger(__name__)

SUBMIT_OK = (200, 202)


class TaskForceClient:
    """Client for the task API: submit prompts, then poll or stream their status.

    Every blocking call takes an optional ``CancelToken``; cancelling it from
    another thread makes the call return with ``OperationCancelled``.
    """

    def __init__(self, options: Optional[ClientOptions] = None, *, http_client: Optional[httpx.Client] = None):
        self.options = options or ClientOptions()
        self.transport = Transport(self.options, http_client=http_client)
        self.threads = Threads(self.transport)
        self.files = Files(self.transport)

    def submit_task(
        self,
        prompt: str,
        options: Optional[TaskSubmissionOptions] = None,
        token: Optional[CancelToken] = None,
    ) -> str:
        if not prompt:
            raise InvalidArgumentError("prompt is required")

        if self.options.mock_mode:
            options = options.model_copy() if options else TaskSubmissionOptions()
            if options.mock is None:
                options.mock = True

        body = {"prompt": prompt}
        if options is not None:
            body["options"] = options.to_wire()

        resp = self.transport.request("POST", "/run", json=body, token=token)
        expect_status(resp, SUBMIT_OK, "submit task")
        task_id = decode_model(resp, SubmitTaskResponse).task_id
        logger.info("submitted task %s", task_id)
        return task_id

    def get_task_status(self, task_id: str, token: Optional[CancelToken] = None) -> TaskStatus:
        resp = self.transport.request("GET", f"/status/{_task_path(task_id)}", token=token)
        expect_status(resp, (200,), "get task status")
        return decode_model(resp, TaskStatus)

    def wait_for_completion(
        self,
        task_id: str,
        interval: float = 0,
        max_attempts: int = 0,
        on_update: Optional[StatusCallback] = None,
        token: Optional[CancelToken] = None,
    ) -> TaskStatus:
        """Poll until the task completes.

        Raises TaskFailedError, PollTimeoutError or OperationCancelled; each
        carries the last fetched status in ``.status``.
        """
        token = token or CancelToken()
        poller = TaskPoller(
            lambda tid: self.get_task_status(tid, token=token),
            interval=interval,
            max_attempts=max_attempts,
            on_update=on_update,
            token=token,
        )
        return poller.wait(task_id)

    def run_task(
        self,
        prompt: str,
        options: Optional[TaskSubmissionOptions] = None,
        interval: float = 0,
        max_attempts: int = 0,
        on_update: Optional[StatusCallback] = None,
        token: Optional[CancelToken] = None,
    ) -> TaskStatus:
        task_id = self.submit_task(prompt, options, token=token)
        return self.wait_for_completion(task_id, interval, max_attempts, on_update, token=token)

    def stream_task_status(self, task_id: str, token: Optional[CancelToken] = None) -> TaskStatusStream:
        """Open the event stream of a task. The caller must close the returned stream."""
        path = f"/stream/{_task_path(task_id)}"
        session_token = token.child() if token is not None else CancelToken()
        stream = SSETaskStatusStream(task_id, token=session_token)
        try:
            resp = self.transport.open_stream(path, token=session_token)
        except BaseException:
            stream.close()
            raise
        stream.attach(resp.iter_bytes(), resp.close)
        return stream

    def run_task_stream(
        self,
        prompt: str,
        options: Optional[TaskSubmissionOptions] = None,
        token: Optional[CancelToken] = None,
    ) -> TaskStatusStream:
        task_id = self.submit_task(prompt, options, token=token)
        return self.stream_task_status(task_id, token=token)

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "TaskForceClient":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _task_path(task_id: str) -> str:
    if not task_id:
        raise InvalidArgumentError("task id is required")
    return quote(task_id, safe="")
