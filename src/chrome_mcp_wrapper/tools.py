"""Claude in Chrome tool identifiers and call builders.

Every logical browser operation maps to exactly one wire tool plus its
arguments. Operations that share a wire tool (click and screenshot both go
through ``computer``) are told apart by an explicit ``action`` argument, so
a caller can only build valid combinations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Literal

from .models import Coordinate

ReadPageFilter = Literal["interactive", "all"]


class ChromeTool(str, Enum):
    """Tools exposed by the Claude in Chrome MCP server (unprefixed)."""

    TABS_CONTEXT = "tabs_context_mcp"
    TABS_CREATE = "tabs_create_mcp"
    NAVIGATE = "navigate"
    COMPUTER = "computer"
    FORM_INPUT = "form_input"
    READ_PAGE = "read_page"
    GET_PAGE_TEXT = "get_page_text"
    FIND = "find"
    JAVASCRIPT_TOOL = "javascript_tool"
    RESIZE_WINDOW = "resize_window"
    READ_CONSOLE_MESSAGES = "read_console_messages"
    READ_NETWORK_REQUESTS = "read_network_requests"
    SHORTCUTS_LIST = "shortcuts_list"
    SHORTCUTS_EXECUTE = "shortcuts_execute"
    GIF_CREATOR = "gif_creator"
    UPLOAD_IMAGE = "upload_image"

    def wire_name(self, prefix: str = "") -> str:
        return f"{prefix}{self.value}"


class ComputerAction(str, Enum):
    """Actions understood by the ``computer`` tool."""

    LEFT_CLICK = "left_click"
    SCREENSHOT = "screenshot"


def _compact(arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset optional arguments."""
    return {k: v for k, v in arguments.items() if v is not None}


@dataclass(frozen=True)
class ToolCall:
    """A tool identifier bound to its arguments."""

    tool: ChromeTool
    arguments: Dict[str, Any] = field(default_factory=dict)


def tabs_context() -> ToolCall:
    return ToolCall(ChromeTool.TABS_CONTEXT)


def tabs_create() -> ToolCall:
    return ToolCall(ChromeTool.TABS_CREATE)


def navigate(url: str, tab_id: int | None = None) -> ToolCall:
    return ToolCall(ChromeTool.NAVIGATE, _compact({"url": url, "tabId": tab_id}))


def click(tab_id: int | None, target: str | Coordinate) -> ToolCall:
    """Click an element reference (e.g. ``ref_12``) or a viewport coordinate."""
    arguments: Dict[str, Any] = {
        "action": ComputerAction.LEFT_CLICK.value,
        "tabId": tab_id,
    }
    if isinstance(target, Coordinate):
        arguments["coordinate"] = [target.x, target.y]
    else:
        arguments["ref"] = target
    return ToolCall(ChromeTool.COMPUTER, _compact(arguments))


def screenshot(tab_id: int | None, full_page: bool | None = None) -> ToolCall:
    return ToolCall(
        ChromeTool.COMPUTER,
        _compact(
            {
                "action": ComputerAction.SCREENSHOT.value,
                "tabId": tab_id,
                "fullPage": full_page,
            }
        ),
    )


def form_input(tab_id: int | None, ref: str, value: Any) -> ToolCall:
    return ToolCall(
        ChromeTool.FORM_INPUT, _compact({"tabId": tab_id, "ref": ref, "value": value})
    )


def javascript(tab_id: int | None, code: str) -> ToolCall:
    return ToolCall(ChromeTool.JAVASCRIPT_TOOL, _compact({"tabId": tab_id, "text": code}))


def read_page(tab_id: int | None, filter: ReadPageFilter | None = None) -> ToolCall:
    if filter is not None and filter not in ("interactive", "all"):
        raise ValueError(f"Unknown read_page filter: {filter!r}")
    return ToolCall(ChromeTool.READ_PAGE, _compact({"tabId": tab_id, "filter": filter}))


def get_page_text(tab_id: int | None) -> ToolCall:
    return ToolCall(ChromeTool.GET_PAGE_TEXT, _compact({"tabId": tab_id}))


def find(tab_id: int | None, query: str) -> ToolCall:
    return ToolCall(ChromeTool.FIND, _compact({"tabId": tab_id, "query": query}))


def resize_window(tab_id: int | None, width: int, height: int) -> ToolCall:
    return ToolCall(
        ChromeTool.RESIZE_WINDOW,
        _compact({"tabId": tab_id, "width": width, "height": height}),
    )


def read_console_messages(tab_id: int | None, pattern: str | None = None) -> ToolCall:
    return ToolCall(
        ChromeTool.READ_CONSOLE_MESSAGES, _compact({"tabId": tab_id, "pattern": pattern})
    )


def read_network_requests(
    tab_id: int | None, url_pattern: str | None = None
) -> ToolCall:
    return ToolCall(
        ChromeTool.READ_NETWORK_REQUESTS,
        _compact({"tabId": tab_id, "urlPattern": url_pattern}),
    )
