import base64
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from ..errors import CaptureError
from ..models import Coordinate, DialogDetectionResult, ToolCallResult
from ..tools import ReadPageFilter

if TYPE_CHECKING:
    from ..services.dialog_detector import DetectionCallback, DialogDetector
    from ..services.mcp_client import ChromeMCPClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChromeSession:
    """One logical task bound to one browser tab.

    Every operation forwards to the shared MCP client with this session's
    tab id. The tab id is written only by whoever holds the session.
    """

    def __init__(self, session_id: str, client: "ChromeMCPClient") -> None:
        self._session_id = session_id
        self._client = client
        self.tab_id: int | None = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def client(self) -> "ChromeMCPClient":
        return self._client

    def get_session_id(self) -> str:
        return self._session_id

    def get_tab_id(self) -> int | None:
        return self.tab_id

    def set_tab_id(self, tab_id: int) -> None:
        self.tab_id = tab_id

    def __repr__(self) -> str:
        return f"ChromeSession(session_id={self._session_id!r}, tab_id={self.tab_id!r})"

    async def navigate(self, url: str) -> ToolCallResult:
        logger.info("[%s] Navigate to: %s", self._session_id, url)
        return await self._client.navigate(url, self.tab_id)

    async def click(self, target: str | Coordinate) -> ToolCallResult:
        """Click an element reference or a viewport coordinate."""
        if isinstance(target, Coordinate):
            logger.info("[%s] Click at: (%d, %d)", self._session_id, target.x, target.y)
        else:
            logger.info("[%s] Click: %s", self._session_id, target)
        return await self._client.click(self.tab_id, target)

    async def fill(self, ref: str, value: Any) -> ToolCallResult:
        logger.info("[%s] Fill %s", self._session_id, ref)
        return await self._client.fill(self.tab_id, ref, value)

    async def screenshot(self, full_page: bool | None = None) -> ToolCallResult:
        logger.debug("[%s] Screenshot (full_page=%s)", self._session_id, full_page)
        return await self._client.screenshot(self.tab_id, full_page)

    async def evaluate(self, code: str) -> ToolCallResult:
        logger.debug("[%s] Evaluate: %s", self._session_id, code)
        return await self._client.evaluate(self.tab_id, code)

    async def read_page(self, filter: ReadPageFilter | None = None) -> ToolCallResult:
        logger.debug("[%s] Read page with filter: %s", self._session_id, filter)
        return await self._client.read_page(self.tab_id, filter)

    async def find(self, query: str) -> ToolCallResult:
        logger.debug("[%s] Find: %s", self._session_id, query)
        return await self._client.find(self.tab_id, query)

    async def get_page_text(self) -> ToolCallResult:
        logger.debug("[%s] Get page text", self._session_id)
        return await self._client.get_page_text(self.tab_id)

    async def resize_window(self, width: int, height: int) -> ToolCallResult:
        logger.info("[%s] Resize window to: %dx%d", self._session_id, width, height)
        return await self._client.resize_window(self.tab_id, width, height)

    async def read_console_messages(self, pattern: str | None = None) -> ToolCallResult:
        logger.debug("[%s] Read console messages with pattern: %s", self._session_id, pattern)
        return await self._client.read_console_messages(self.tab_id, pattern)

    async def read_network_requests(
        self, url_pattern: str | None = None
    ) -> ToolCallResult:
        logger.debug(
            "[%s] Read network requests with pattern: %s", self._session_id, url_pattern
        )
        return await self._client.read_network_requests(self.tab_id, url_pattern)

    async def capture(self) -> bytes:
        """Screenshot this tab and return the decoded image bytes.

        Usable as the capture source of a DialogDetector.

        Raises:
            CaptureError: the call failed or returned no image content.
        """
        result = await self.screenshot()
        if not result.success:
            raise CaptureError(f"[{self._session_id}] Screenshot failed: {result.error}")
        for item in result.content or []:
            if getattr(item, "type", None) == "image":
                return base64.b64decode(item.data)
        raise CaptureError(f"[{self._session_id}] Screenshot returned no image content")

    async def with_dialog_detection(
        self,
        fn: Callable[[], Awaitable[T]],
        detector: "DialogDetector | None" = None,
        on_dialog: "DetectionCallback | None" = None,
    ) -> T:
        """Run ``fn`` while a dialog detector watches the screen.

        An idle detector is started for the duration of the call and stopped
        afterwards; a running one is left as it is. The result or exception
        of ``fn`` is passed through unchanged.
        """
        logger.info("[%s] Starting dialog detection...", self._session_id)
        started = False
        if detector is not None and not detector.is_monitoring():
            await detector.start_monitoring(on_dialog or self._log_dialog)
            started = True
        try:
            return await fn()
        finally:
            if started:
                await detector.stop_monitoring()
            logger.info("[%s] Dialog detection completed.", self._session_id)

    def _log_dialog(self, result: DialogDetectionResult) -> None:
        logger.warning(
            "[%s] OS dialog suspected at %s (%s)",
            self._session_id,
            result.timestamp.isoformat(),
            result.screenshot_path,
        )
