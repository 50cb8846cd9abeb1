from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """A single request was rejected; the process keeps serving."""

    def __init__(self, field: str, constraint: str, value: Any = None) -> None:
        self.field = field
        self.constraint = constraint
        self.value = value
        message = f"{field}: {constraint}"
        if value is not None:
            message += f" (got {value!r})"
        super().__init__(message)


class ArtifactLoadError(RuntimeError):
    """A load-once artifact is missing or malformed; nothing may be served."""
