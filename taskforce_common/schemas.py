from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from taskforce_common.errors import DecodeError


class TaskState(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(BaseModel):
    """One observation of a task.

    The server sets ``result`` only on completed tasks and ``error`` only on
    failed ones. Decoding does not enforce this; the outcome is read from
    ``status`` alone.
    """

    # unknown wire fields and unknown status strings are both tolerated
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    task_id: str = Field(alias="taskId")
    status: str
    result: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("warnings", "metadata", mode="before")
    @classmethod
    def _null_to_empty(cls, v: Any, info) -> Any:
        if v is None:
            return [] if info.field_name == "warnings" else {}
        return v

    @property
    def state(self) -> Optional[TaskState]:
        try:
            return TaskState(self.status)
        except ValueError:
            return None

    @property
    def is_completed(self) -> bool:
        return self.state is TaskState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.state is TaskState.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.is_completed or self.is_failed

    def to_wire(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        if not data.get("warnings"):
            data.pop("warnings", None)
        if not data.get("metadata"):
            data.pop("metadata", None)
        return data


def decode_status(raw: Union[str, bytes]) -> TaskStatus:
    """Parse one JSON document into a TaskStatus or raise DecodeError."""
    try:
        return TaskStatus.model_validate_json(raw)
    except ValidationError as e:
        raise DecodeError(f"invalid task status payload: {e.errors(include_url=False)}") from e


class TaskSubmissionOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, protected_namespaces=())

    model_id: Optional[str] = Field(default=None, alias="modelId")
    silent: Optional[bool] = None
    mock: Optional[bool] = None
    extra_key: Optional[str] = Field(default=None, alias="vercelAiKey")
    metadata: Optional[Dict[str, Any]] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SubmitTaskRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    prompt: str = Field(min_length=1)
    options: Optional[TaskSubmissionOptions] = None


class SubmitTaskResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    task_id: str = Field(alias="taskId", min_length=1)
