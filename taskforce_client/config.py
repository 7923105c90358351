from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

DEFAULT_BASE_URL = "https://taskforceai.chat/api/developer"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLL_ATTEMPTS = 60

ResponseHook = Callable[[int, Mapping[str, str]], None]

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class ClientOptions:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    response_hook: Optional[ResponseHook] = None
    mock_mode: bool = False

    def __post_init__(self) -> None:
        self.base_url = (self.base_url or DEFAULT_BASE_URL).rstrip("/")
        if not self.timeout or self.timeout <= 0:
            self.timeout = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls, **overrides) -> "ClientOptions":
        opts = dict(
            api_key=os.getenv("TASKFORCE_API_KEY") or None,
            base_url=os.getenv("TASKFORCE_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.getenv("TASKFORCE_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS))),
            mock_mode=os.getenv("TASKFORCE_MOCK_MODE", "").strip().lower() in _TRUTHY,
        )
        opts.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**opts)
