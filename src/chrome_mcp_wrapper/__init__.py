"""Concurrent Claude in Chrome sessions with OS dialog detection.

Sessions share one MCP client; a SessionManager hands them out by name and
runs tasks on them in parallel. A DialogDetector watches screenshots for
native dialogs that page-level tools cannot see.
"""

from .errors import (
    ArityMismatchError,
    CaptureError,
    ChromeWrapperError,
    DuplicateSessionError,
    MCPConnectionError,
    ToolExecutionError,
    ValidationError,
)
from .models import Coordinate, DialogDetectionResult, ToolCallResult
from .services.dialog_detector import DialogDetector
from .services.mcp_client import ChromeMCPClient, get_mcp_client
from .session import ChromeSession, SessionManager
from .tools import ChromeTool, ComputerAction, ToolCall

__all__ = [
    "ArityMismatchError",
    "CaptureError",
    "ChromeMCPClient",
    "ChromeSession",
    "ChromeTool",
    "ChromeWrapperError",
    "ComputerAction",
    "Coordinate",
    "DialogDetectionResult",
    "DialogDetector",
    "DuplicateSessionError",
    "MCPConnectionError",
    "SessionManager",
    "ToolCall",
    "ToolCallResult",
    "ToolExecutionError",
    "ValidationError",
    "get_mcp_client",
]
