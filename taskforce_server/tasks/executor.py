from __future__ import annotations

from typing import Optional

DEFAULT_MODEL = "echo"
MOCK_RESULT = "This is a mock response."


def execute(prompt: str, model_id: Optional[str] = None) -> str:
    model = model_id or DEFAULT_MODEL

    if model == "echo":
        return prompt

    if model == "upper":
        return prompt.upper()

    if model == "reverse":
        return prompt[::-1]

    # Unknown model
    raise ValueError(f"Unknown model: {model}")
