import asyncio
import json
import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Dict

import anyio
import httpx
from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, Implementation

from .. import tools
from ..errors import MCPConnectionError
from ..models import Coordinate, ToolCallResult
from ..settings import get_settings
from ..tools import ChromeTool, ReadPageFilter, ToolCall

logger = logging.getLogger(__name__)

_CALL_ERRORS = (
    MCPConnectionError,
    McpError,
    httpx.HTTPError,
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    OSError,
    TimeoutError,
)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ChromeMCPClient:
    """Async client for the Claude in Chrome MCP server (streamable HTTP).

    The connection is opened lazily on the first tool call and reused until
    ``close()``. It is owned by a background task so the transport's context
    managers are entered and exited from the same task, whichever coroutine
    triggered the connect or the close.
    """

    def __init__(
        self,
        server_url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        tool_name_prefix: str | None = None,
    ) -> None:
        settings = get_settings()
        self.server_url = server_url or settings.server_url
        self.timeout_seconds = (
            settings.tool_call_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.tool_name_prefix = (
            settings.tool_name_prefix if tool_name_prefix is None else tool_name_prefix
        )
        self._client_info = Implementation(
            name=settings.client_name, version=settings.client_version
        )
        self._state = ConnectionState.DISCONNECTED
        self._session: ClientSession | None = None
        self._connect_lock = asyncio.Lock()
        self._runner: asyncio.Task[None] | None = None
        self._closing: asyncio.Event | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    async def __aenter__(self) -> "ChromeMCPClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Connect to the MCP server. Idempotent and safe under concurrent first use."""
        if self.is_connected:
            return
        async with self._connect_lock:
            if self.is_connected:
                return
            self._state = ConnectionState.CONNECTING
            ready: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            closing = asyncio.Event()
            self._closing = closing
            self._runner = asyncio.create_task(
                self._hold_connection(ready, closing), name="chrome-mcp-connection"
            )
            try:
                await ready
            except MCPConnectionError as e:
                logger.error("Failed to connect to MCP server: %s", e)
                self._runner = None
                self._closing = None
                self._state = ConnectionState.DISCONNECTED
                raise
            except asyncio.CancelledError:
                closing.set()
                self._runner = None
                self._closing = None
                self._state = ConnectionState.DISCONNECTED
                raise
            if self._closing is not closing:
                raise MCPConnectionError("Connection closed while connecting")
            self._state = ConnectionState.CONNECTED
            logger.info("Connected to MCP server at %s", self.server_url)

    async def _hold_connection(
        self, ready: "asyncio.Future[None]", closing: asyncio.Event
    ) -> None:
        """Open the transport and session, then keep them open until closing is set."""
        held: ClientSession | None = None
        try:
            async with streamablehttp_client(self.server_url) as (read_stream, write_stream, _):
                async with ClientSession(
                    read_stream, write_stream, client_info=self._client_info
                ) as session:
                    await session.initialize()
                    # A runner abandoned by a cancelled connect must not
                    # replace the session of a newer connection.
                    if self._closing is closing:
                        held = session
                        self._session = session
                    if not ready.done():
                        ready.set_result(None)
                    await closing.wait()
        except Exception as e:
            if not ready.done():
                error = MCPConnectionError(
                    f"Failed to connect to MCP server at {self.server_url}: {e}"
                )
                error.__cause__ = e
                ready.set_exception(error)
            else:
                logger.warning("MCP connection to %s dropped: %s", self.server_url, e)
        finally:
            if held is not None and self._closing is closing and self._session is held:
                self._session = None
            if not ready.done():
                ready.set_exception(MCPConnectionError("Connection closed before it was ready"))
            if self._closing is closing:
                self._state = ConnectionState.DISCONNECTED
                self._runner = None
                self._closing = None

    async def close(self) -> None:
        """Close the MCP connection. Idempotent."""
        runner, closing = self._runner, self._closing
        if runner is None or closing is None:
            return
        self._runner = None
        self._closing = None
        self._session = None
        self._state = ConnectionState.DISCONNECTED
        closing.set()
        await runner
        logger.info("Disconnected from MCP server")

    async def call_tool(
        self, tool: ChromeTool | str, arguments: Dict[str, Any] | None = None
    ) -> ToolCallResult:
        """Call an MCP tool and normalize the outcome.

        Args:
            tool: A ChromeTool (prefixed on the wire) or a raw tool name.
            arguments: Tool arguments.

        Returns:
            ToolCallResult: failures of any kind are returned, only cancellation
                propagates.
        """
        name = tool.wire_name(self.tool_name_prefix) if isinstance(tool, ChromeTool) else tool
        arguments = arguments or {}
        try:
            await self.connect()
            session = self._session
            if session is None:
                raise MCPConnectionError("MCP client is not initialized")

            logger.debug("Calling MCP tool: %s with params: %s", name, arguments)
            result = await session.call_tool(
                name,
                arguments,
                read_timeout_seconds=timedelta(seconds=self.timeout_seconds),
            )
            return self._normalize(result)
        except _CALL_ERRORS as e:
            logger.error("Error calling MCP tool %s: %s", name, e)
            return ToolCallResult.fail(self._error_message(e))
        except Exception as e:
            logger.exception("Unexpected error calling MCP tool %s", name)
            return ToolCallResult.fail(self._error_message(e))

    async def execute(self, call: ToolCall) -> ToolCallResult:
        return await self.call_tool(call.tool, call.arguments)

    def _error_message(self, error: BaseException) -> str:
        if isinstance(error, TimeoutError):
            return f"Tool call timed out after {self.timeout_seconds:g}s"
        return str(error) or type(error).__name__

    @staticmethod
    def _normalize(result: CallToolResult) -> ToolCallResult:
        if result.isError:
            payload = json.dumps(
                [item.model_dump(mode="json", exclude_none=True) for item in result.content]
            )
            return ToolCallResult.fail(f"Tool execution failed: {payload}")

        texts = [item.text for item in result.content if item.type == "text"]
        data: Any = "\n".join(texts) if texts else result.content
        return ToolCallResult.ok(data, content=list(result.content))

    async def navigate(self, url: str, tab_id: int | None = None) -> ToolCallResult:
        return await self.execute(tools.navigate(url, tab_id))

    async def click(self, tab_id: int | None, target: str | Coordinate) -> ToolCallResult:
        return await self.execute(tools.click(tab_id, target))

    async def fill(self, tab_id: int | None, ref: str, value: Any) -> ToolCallResult:
        return await self.execute(tools.form_input(tab_id, ref, value))

    async def screenshot(
        self, tab_id: int | None, full_page: bool | None = None
    ) -> ToolCallResult:
        return await self.execute(tools.screenshot(tab_id, full_page))

    async def evaluate(self, tab_id: int | None, code: str) -> ToolCallResult:
        return await self.execute(tools.javascript(tab_id, code))

    async def read_page(
        self, tab_id: int | None, filter: ReadPageFilter | None = None
    ) -> ToolCallResult:
        return await self.execute(tools.read_page(tab_id, filter))

    async def get_page_text(self, tab_id: int | None) -> ToolCallResult:
        return await self.execute(tools.get_page_text(tab_id))

    async def get_tabs_context(self) -> ToolCallResult:
        return await self.execute(tools.tabs_context())

    async def create_tab(self) -> ToolCallResult:
        return await self.execute(tools.tabs_create())

    async def find(self, tab_id: int | None, query: str) -> ToolCallResult:
        return await self.execute(tools.find(tab_id, query))

    async def resize_window(
        self, tab_id: int | None, width: int, height: int
    ) -> ToolCallResult:
        return await self.execute(tools.resize_window(tab_id, width, height))

    async def read_console_messages(
        self, tab_id: int | None, pattern: str | None = None
    ) -> ToolCallResult:
        return await self.execute(tools.read_console_messages(tab_id, pattern))

    async def read_network_requests(
        self, tab_id: int | None, url_pattern: str | None = None
    ) -> ToolCallResult:
        return await self.execute(tools.read_network_requests(tab_id, url_pattern))


_default_client: ChromeMCPClient | None = None


def get_mcp_client() -> ChromeMCPClient:
    """Return the process-wide client built from settings."""
    global _default_client
    if _default_client is None:
        _default_client = ChromeMCPClient()
    return _default_client
