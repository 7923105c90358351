from __future__ import annotations

import os
from typing import Callable, Optional

from fastapi import Header, HTTPException, status

SERVER_API_KEY = os.getenv("TASKFORCE_SERVER_API_KEY") or None


def bearer_key_checker(api_key: Optional[str] = SERVER_API_KEY) -> Callable[..., None]:
    """Dependency that requires ``Authorization: Bearer <api_key>``; open access when no key is set."""

    def require_api_key(authorization: str | None = Header(default=None)) -> None:
        if api_key is None:
            return
        if not authorization or authorization != f"Bearer {api_key}":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    return require_api_key
