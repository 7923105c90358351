from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from taskforce_common.schemas import TaskState, TaskStatus, TaskSubmissionOptions


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Task:
    task_id: str
    prompt: str
    options: TaskSubmissionOptions = field(default_factory=TaskSubmissionOptions)

    status: TaskState = TaskState.PROCESSING
    # observations still reported as processing before the task runs
    steps_left: int = 2

    created_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    result: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskState.COMPLETED, TaskState.FAILED)

    def mark_done(self, result: str) -> None:
        self.status = TaskState.COMPLETED
        self.finished_at = utcnow()
        self.result = result

    def mark_failed(self, error: str) -> None:
        self.status = TaskState.FAILED
        self.finished_at = utcnow()
        self.error = error

    def to_status(self) -> TaskStatus:
        return TaskStatus(
            task_id=self.task_id,
            status=self.status.value,
            result=self.result,
            error=self.error,
            warnings=list(self.warnings),
            metadata=dict(self.metadata),
        )
