import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from chrome_mcp_wrapper.models import ToolCallResult  # noqa: E402
from chrome_mcp_wrapper.services.mcp_client import ChromeMCPClient  # noqa: E402

_CLIENT_METHODS = (
    "call_tool",
    "execute",
    "navigate",
    "click",
    "fill",
    "screenshot",
    "evaluate",
    "read_page",
    "get_page_text",
    "get_tabs_context",
    "create_tab",
    "find",
    "resize_window",
    "read_console_messages",
    "read_network_requests",
)


@pytest.fixture
def mock_client() -> MagicMock:
    """ChromeMCPClient double whose tool methods all succeed with data 'ok'."""
    m = MagicMock(spec=ChromeMCPClient)
    for name in _CLIENT_METHODS:
        setattr(m, name, AsyncMock(return_value=ToolCallResult.ok("ok")))
    return m
