from __future__ import annotations

import threading
import time

import httpx
import pytest

from taskforce_client.cancellation import CancelToken
from taskforce_client.config import DEFAULT_MAX_POLL_ATTEMPTS, DEFAULT_POLL_INTERVAL
from taskforce_client.polling import PollState, TaskPoller
from taskforce_common.errors import (
    APIError,
    InvalidArgumentError,
    OperationCancelled,
    PollTimeoutError,
    TaskFailedError,
)
from taskforce_common.schemas import TaskStatus

from conftest import Recorder, status_body


def st(status: str, **kw) -> TaskStatus:
    return TaskStatus(task_id="t", status=status, **kw)


class ScriptedFetch:
    def __init__(self, *statuses):
        self.statuses = list(statuses)
        self.calls = 0

    def __call__(self, task_id: str) -> TaskStatus:
        self.calls += 1
        nxt = self.statuses[0] if len(self.statuses) == 1 else self.statuses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


class TestTaskPoller:
    def test_defaults_for_zero_values(self):
        p = TaskPoller(ScriptedFetch(st("processing")))
        assert p.interval == DEFAULT_POLL_INTERVAL
        assert p.max_attempts == DEFAULT_MAX_POLL_ATTEMPTS

    @pytest.mark.parametrize("kw", [{"interval": -1}, {"max_attempts": -3}])
    def test_negative_values_rejected(self, kw):
        with pytest.raises(InvalidArgumentError):
            TaskPoller(ScriptedFetch(st("processing")), **kw)

    @pytest.mark.parametrize("n", [0, 1, 4])
    def test_completes_after_n_plus_one_fetches(self, n):
        fetch = ScriptedFetch(*[st("processing")] * n, st("completed", result="done"))
        seen = []
        p = TaskPoller(fetch, interval=0.001, max_attempts=10, on_update=seen.append)
        result = p.wait("t")
        assert result.result == "done"
        assert fetch.calls == n + 1
        assert [s.status for s in seen] == ["processing"] * n + ["completed"]
        assert p.state is PollState.COMPLETED

    def test_unknown_status_keeps_polling(self):
        fetch = ScriptedFetch(st("queued"), st("warming_up"), st("completed", result="ok"))
        assert TaskPoller(fetch, interval=0.001, max_attempts=5).wait("t").result == "ok"
        assert fetch.calls == 3

    def test_failed_status_raises_with_status(self):
        fetch = ScriptedFetch(st("processing"), st("failed", error="X", warnings=["w"]))
        seen = []
        p = TaskPoller(fetch, interval=0.001, max_attempts=5, on_update=seen.append)
        with pytest.raises(TaskFailedError) as exc:
            p.wait("t")
        assert "X" in str(exc.value)
        assert exc.value.status.is_failed
        assert exc.value.status.warnings == ["w"]
        assert len(seen) == 2
        assert p.state is PollState.FAILED

    def test_failed_without_message(self):
        with pytest.raises(TaskFailedError, match="task failed"):
            TaskPoller(ScriptedFetch(st("failed")), interval=0.001).wait("t")

    def test_timeout_after_max_attempts(self):
        fetch = ScriptedFetch(st("processing"))
        p = TaskPoller(fetch, interval=0.001, max_attempts=3)
        with pytest.raises(PollTimeoutError) as exc:
            p.wait("t")
        assert fetch.calls == 3
        assert exc.value.attempts == 3
        assert exc.value.status.status == "processing"
        assert p.state is PollState.TIMED_OUT

    def test_fetch_error_is_fatal(self):
        fetch = ScriptedFetch(st("processing"), APIError("failed to get task status", 500), st("completed", result="x"))
        p = TaskPoller(fetch, interval=0.001, max_attempts=5)
        with pytest.raises(APIError) as exc:
            p.wait("t")
        assert fetch.calls == 2
        assert exc.value.status.status == "processing"
        assert p.state is PollState.ERRORED

    def test_network_error_propagates_unchanged(self):
        err = httpx.ReadTimeout("slow")
        p = TaskPoller(ScriptedFetch(err), interval=0.001)
        with pytest.raises(httpx.ReadTimeout):
            p.wait("t")
        assert p.state is PollState.ERRORED

    def test_pre_cancelled_token_fetches_nothing(self):
        token = CancelToken()
        token.cancel()
        fetch = ScriptedFetch(st("processing"))
        p = TaskPoller(fetch, token=token)
        with pytest.raises(OperationCancelled):
            p.wait("t")
        assert fetch.calls == 0
        assert p.state is PollState.CANCELLED

    def test_cancel_during_wait_returns_promptly(self):
        token = CancelToken()
        fetch = ScriptedFetch(st("processing", warnings=["partial"]))
        p = TaskPoller(fetch, interval=5, max_attempts=3, token=token)
        threading.Timer(0.05, token.cancel).start()
        started = time.monotonic()
        with pytest.raises(OperationCancelled) as exc:
            p.wait("t")
        assert time.monotonic() - started < 2
        assert fetch.calls == 1
        assert exc.value.status.warnings == ["partial"]

    def test_cancel_during_fetch_is_not_preempted(self):
        token = CancelToken()
        seen = []

        def fetch(task_id):
            token.cancel()
            return st("processing")

        p = TaskPoller(fetch, interval=5, max_attempts=3, token=token, on_update=seen.append)
        with pytest.raises(OperationCancelled) as exc:
            p.wait("t")
        assert len(seen) == 1
        assert exc.value.status.status == "processing"

    def test_terminal_status_wins_over_cancel_during_fetch(self):
        token = CancelToken()

        def fetch(task_id):
            token.cancel()
            return st("completed", result="made it")

        assert TaskPoller(fetch, interval=5, token=token).wait("t").result == "made it"

    def test_cancel_during_last_fetch_reports_cancel(self):
        token = CancelToken()

        def fetch(task_id):
            token.cancel()
            return st("processing")

        p = TaskPoller(fetch, interval=0.001, max_attempts=1, token=token)
        with pytest.raises(OperationCancelled) as exc:
            p.wait("t")
        assert exc.value.status.status == "processing"
        assert p.state is PollState.CANCELLED


class TestWaitForCompletion:
    def test_polls_status_endpoint(self, make_client):
        rec = Recorder(
            httpx.Response(200, json=status_body("processing")),
            httpx.Response(200, json=status_body("completed", result="done")),
        )
        updates = []
        result = make_client(rec).wait_for_completion("task-1", 0.001, 5, updates.append)
        assert result.result == "done"
        assert [r.url.path for r in rec.requests] == ["/status/task-1", "/status/task-1"]
        assert [u.status for u in updates] == ["processing", "completed"]

    def test_run_task_submits_then_polls(self, make_client):
        def handler(request):
            if request.url.path == "/run":
                return httpx.Response(200, json={"taskId": "task-run-1"})
            return httpx.Response(200, json=status_body("completed", task_id="task-run-1", result="run-done"))

        result = make_client(handler).run_task("run me", interval=0.001, max_attempts=2)
        assert result.task_id == "task-run-1"
        assert result.result == "run-done"

    def test_run_task_submission_error(self, make_client):
        rec = Recorder(httpx.Response(400))
        with pytest.raises(APIError):
            make_client(rec).run_task("run me")
        assert len(rec.requests) == 1

    def test_failed_task(self, make_client):
        rec = Recorder(httpx.Response(200, json=status_body("failed", error="model exploded")))
        with pytest.raises(TaskFailedError, match="model exploded") as exc:
            make_client(rec).wait_for_completion("task-1", 0.001, 3)
        assert exc.value.status.error == "model exploded"

    def test_failed_status_with_result_still_fails(self, make_client):
        rec = Recorder(httpx.Response(200, json=status_body("failed", error="X", result="")))
        with pytest.raises(TaskFailedError, match="X") as exc:
            make_client(rec).wait_for_completion("task-1", 0.001, 3)
        assert exc.value.status.is_failed
        assert exc.value.status.result == ""
