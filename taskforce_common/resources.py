from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ThreadMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int = 0
    thread_id: int = 0
    role: str
    content: str
    created_at: Optional[datetime] = None


class Thread(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ThreadListResponse(BaseModel):
    threads: List[Thread] = Field(default_factory=list)
    total: int = 0


class ThreadMessagesResponse(BaseModel):
    messages: List[ThreadMessage] = Field(default_factory=list)
    total: int = 0


class ThreadRunResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    task_id: str
    thread_id: int
    message_id: int


class File(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    filename: str
    purpose: str = ""
    bytes: int = 0
    created_at: Optional[datetime] = None
    mime_type: Optional[str] = None


class FileListResponse(BaseModel):
    files: List[File] = Field(default_factory=list)
    total: int = 0


def compact(body: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset and empty values, the way the API expects optional fields."""
    return {k: v for k, v in body.items() if v not in (None, "", [], {})}
