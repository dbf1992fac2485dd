"""Exceptions raised by the Chrome MCP wrapper."""


class ChromeWrapperError(Exception):
    """Base class for wrapper errors."""


class DuplicateSessionError(ChromeWrapperError, ValueError):
    """A session with the requested name is already registered."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f'Session "{session_id}" already exists')
        self.session_id = session_id


class ArityMismatchError(ChromeWrapperError, ValueError):
    """Session names and tasks passed to a parallel run differ in length."""

    def __init__(self, sessions: int, tasks: int) -> None:
        super().__init__(
            f"Number of sessions ({sessions}) must match number of tasks ({tasks})"
        )
        self.sessions = sessions
        self.tasks = tasks


class MCPConnectionError(ChromeWrapperError, ConnectionError):
    """The MCP server could not be reached."""


class ToolExecutionError(ChromeWrapperError):
    """The MCP server ran a tool and reported a failure."""


class ValidationError(ChromeWrapperError, ValueError):
    """A configuration value is out of range."""


class CaptureError(ChromeWrapperError):
    """A screenshot could not be captured or compared."""
