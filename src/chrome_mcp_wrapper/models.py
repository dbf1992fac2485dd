from dataclasses import dataclass
from datetime import datetime
from typing import Any, List

from .errors import ToolExecutionError


@dataclass
class ToolCallResult:
    """Normalized outcome of one MCP tool call.

    ``data`` holds the joined text segments of a successful call (or the raw
    content list when there are none). ``content`` always keeps the raw
    content items so non-text payloads such as screenshots stay reachable.
    """

    success: bool
    data: Any = None
    error: str | None = None
    content: List[Any] | None = None

    @classmethod
    def ok(cls, data: Any, content: List[Any] | None = None) -> "ToolCallResult":
        return cls(success=True, data=data, content=content)

    @classmethod
    def fail(cls, error: str) -> "ToolCallResult":
        return cls(success=False, error=error or "Unknown error")

    def unwrap(self) -> Any:
        """Return data on success, raise ToolExecutionError otherwise."""
        if not self.success:
            raise ToolExecutionError(self.error)
        return self.data


@dataclass(frozen=True)
class Coordinate:
    """Viewport position in CSS pixels."""

    x: int
    y: int


@dataclass(frozen=True)
class DialogDetectionResult:
    """Event passed to the dialog detection callback."""

    detected: bool
    timestamp: datetime
    screenshot_path: str | None = None
