"""OS dialog detection by periodic screenshot comparison.

Native dialogs (print, file pickers, auth prompts) live outside the page, so
page-level tools cannot see them; they only show up as a sudden change in
the captured screen.
"""

import asyncio
import inspect
import logging
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Union

from ..errors import CaptureError, ValidationError
from ..models import DialogDetectionResult
from ..settings import get_settings
from .artifacts import ArtifactStore, FileArtifactStore
from .image_diff import PixelRatioDiff

logger = logging.getLogger(__name__)

CaptureSource = Callable[[], Awaitable[bytes]]
DiffStrategy = Callable[[bytes, bytes], Union[float, Awaitable[float]]]
DetectionCallback = Callable[[DialogDetectionResult], Any]


def _check_threshold(threshold: float) -> float:
    if not 0 <= threshold <= 1:
        raise ValidationError("Threshold must be between 0 and 1")
    return threshold


def _check_interval(interval: float) -> float:
    if interval <= 0:
        raise ValidationError("Screenshot interval must be positive")
    return interval


class DialogDetector:
    """Polls a capture source and reports sudden screen changes.

    States are idle and monitoring. While monitoring, a timer task starts a
    check every ``screenshot_interval`` seconds. Checks never overlap: a tick
    that fires while the previous check is still running is skipped.
    """

    def __init__(
        self,
        capture: CaptureSource,
        *,
        screenshot_interval: float | None = None,
        diff_threshold: float | None = None,
        diff: DiffStrategy | None = None,
        artifact_store: ArtifactStore | None = None,
    ) -> None:
        settings = get_settings()
        self._capture = capture
        self._screenshot_interval = _check_interval(
            settings.screenshot_interval_seconds
            if screenshot_interval is None
            else screenshot_interval
        )
        self._diff_threshold = _check_threshold(
            settings.diff_threshold if diff_threshold is None else diff_threshold
        )
        self._diff = diff or PixelRatioDiff(settings.pixel_tolerance)
        self._store = artifact_store or FileArtifactStore(settings.screenshot_dir)

        self._monitoring = False
        self._previous_screenshot: bytes | None = None
        self._detection_callback: DetectionCallback | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._check_task: asyncio.Task[Any] | None = None
        self._check_generation = 0
        self._generation = 0

    @property
    def screenshot_interval(self) -> float:
        return self._screenshot_interval

    @property
    def diff_threshold(self) -> float:
        return self._diff_threshold

    @property
    def check_in_flight(self) -> bool:
        """True while a check started by the current monitoring run is still running."""
        return (
            self._check_task is not None
            and not self._check_task.done()
            and self._check_generation == self._generation
        )

    def is_monitoring(self) -> bool:
        return self._monitoring

    async def start_monitoring(self, callback: DetectionCallback) -> None:
        """Capture a baseline and start polling.

        Raises:
            CaptureError: the baseline screenshot failed; the detector stays idle.
        """
        if self._monitoring:
            logger.warning("Dialog detection monitoring is already running")
            return

        baseline = await self._take_screenshot()
        if self._monitoring:
            logger.warning("Dialog detection monitoring is already running")
            return

        self._previous_screenshot = baseline
        self._detection_callback = callback
        self._monitoring = True
        self._generation += 1
        self._monitor_task = asyncio.create_task(
            self._monitor_loop(self._generation), name="dialog-monitor"
        )
        logger.info(
            "Dialog detection monitoring started (interval: %gs)",
            self._screenshot_interval,
        )

    async def stop_monitoring(self) -> None:
        """Stop polling. A check already in flight finishes but its result is dropped."""
        if not self._monitoring:
            logger.warning("Dialog detection monitoring is not running")
            return

        self._monitoring = False
        self._generation += 1
        task, self._monitor_task = self._monitor_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        self._previous_screenshot = None
        self._detection_callback = None
        logger.info("Dialog detection monitoring stopped")

    async def set_screenshot_interval(self, interval: float) -> None:
        """Change the polling interval; a running monitor restarts with the same callback."""
        self._screenshot_interval = _check_interval(interval)
        callback = self._detection_callback
        if self._monitoring and callback is not None:
            await self.stop_monitoring()
            await self.start_monitoring(callback)

    def set_diff_threshold(self, threshold: float) -> None:
        self._diff_threshold = _check_threshold(threshold)

    async def check_for_dialog(self) -> DialogDetectionResult | None:
        """Run one check cycle now. Returns the detection event, if any."""
        return await self._check(self._generation)

    async def _monitor_loop(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self._screenshot_interval)
            if self.check_in_flight:
                logger.debug("Previous dialog check still running; skipping tick")
                continue
            self._check_generation = generation
            self._check_task = asyncio.create_task(
                self._check(generation), name="dialog-check"
            )

    def _is_current(self, generation: int) -> bool:
        return self._monitoring and generation == self._generation

    async def _check(self, generation: int) -> DialogDetectionResult | None:
        try:
            current = await self._take_screenshot()
            if not self._is_current(generation):
                logger.debug("Monitoring stopped during check; screenshot discarded")
                return None

            previous = self._previous_screenshot
            score: float | None = None
            if previous is not None:
                score = await self._divergence(previous, current)
                if not self._is_current(generation):
                    return None
            self._previous_screenshot = current

            if score is None or score <= self._diff_threshold:
                return None

            logger.info("Screen diff detected: %.1f%%", score * 100)
            timestamp = datetime.now(timezone.utc)
            screenshot_path = await self._store.save(current, timestamp)
            result = DialogDetectionResult(
                detected=True, timestamp=timestamp, screenshot_path=screenshot_path
            )
            logger.warning("Dialog detected! Screenshot saved: %s", screenshot_path)

            callback = self._detection_callback
            if callback is not None and self._is_current(generation):
                callback(result)
            return result
        except Exception:
            logger.exception("Error during dialog detection")
            return None

    async def _take_screenshot(self) -> bytes:
        logger.debug("Taking screenshot...")
        try:
            return await self._capture()
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Screenshot capture failed: {e}") from e

    async def _divergence(self, previous: bytes, current: bytes) -> float:
        score = self._diff(previous, current)
        if inspect.isawaitable(score):
            score = await score
        return float(score)
