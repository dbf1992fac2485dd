import asyncio
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from chrome_mcp_wrapper.errors import CaptureError, ValidationError
from chrome_mcp_wrapper.models import DialogDetectionResult
from chrome_mcp_wrapper.services.dialog_detector import DialogDetector
from chrome_mcp_wrapper.services.image_diff import size_ratio_diff


class FrameCapture:
    """Capture source replaying frames; the last frame repeats."""

    def __init__(self, *frames: bytes) -> None:
        self.frames = list(frames)
        self.calls = 0

    async def __call__(self) -> bytes:
        self.calls += 1
        if len(self.frames) > 1:
            return self.frames.pop(0)
        return self.frames[0]


@pytest.fixture
def store() -> MagicMock:
    m = MagicMock()
    m.save = AsyncMock(return_value="screenshots/dialog-detected-x.png")
    return m


def make_detector(capture, store: MagicMock, interval: float = 60.0) -> DialogDetector:
    return DialogDetector(
        capture,
        screenshot_interval=interval,
        diff_threshold=0.1,
        diff=size_ratio_diff,
        artifact_store=store,
    )


@pytest.mark.asyncio
async def test_start_and_stop_monitoring(store: MagicMock) -> None:
    capture = FrameCapture(b"a" * 100)
    detector = make_detector(capture, store)
    callback = MagicMock()

    assert detector.is_monitoring() is False
    await detector.start_monitoring(callback)

    assert detector.is_monitoring() is True
    assert detector._previous_screenshot == b"a" * 100
    assert detector._detection_callback is callback
    assert capture.calls == 1

    await detector.stop_monitoring()

    assert detector.is_monitoring() is False
    assert detector._previous_screenshot is None
    assert detector._detection_callback is None


@pytest.mark.asyncio
async def test_second_start_is_a_noop(
    store: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    capture = FrameCapture(b"a")
    detector = make_detector(capture, store)
    first, second = MagicMock(), MagicMock()

    await detector.start_monitoring(first)
    await detector.start_monitoring(second)

    assert detector.is_monitoring() is True
    assert detector._detection_callback is first
    assert capture.calls == 1
    assert "already running" in caplog.text
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_stop_when_idle_warns(store: MagicMock, caplog: pytest.LogCaptureFixture) -> None:
    detector = make_detector(FrameCapture(b"a"), store)
    await detector.stop_monitoring()
    assert detector.is_monitoring() is False
    assert "not running" in caplog.text


@pytest.mark.asyncio
async def test_failed_baseline_keeps_detector_idle(store: MagicMock) -> None:
    capture = AsyncMock(side_effect=RuntimeError("display unavailable"))
    detector = make_detector(capture, store)

    with pytest.raises(CaptureError, match="display unavailable"):
        await detector.start_monitoring(MagicMock())
    assert detector.is_monitoring() is False


def test_set_diff_threshold_validates(store: MagicMock) -> None:
    detector = make_detector(FrameCapture(b"a"), store)

    with pytest.raises(ValidationError):
        detector.set_diff_threshold(1.5)
    with pytest.raises(ValidationError):
        detector.set_diff_threshold(-0.1)
    assert detector.diff_threshold == 0.1

    detector.set_diff_threshold(0.25)
    assert detector.diff_threshold == 0.25


def test_constructor_rejects_bad_threshold(store: MagicMock) -> None:
    with pytest.raises(ValidationError):
        DialogDetector(FrameCapture(b"a"), diff_threshold=2, artifact_store=store)


@pytest.mark.asyncio
async def test_divergence_equal_to_threshold_is_not_detected(store: MagicMock) -> None:
    """0.1 divergence against a 0.1 threshold stays below detection."""
    detector = make_detector(FrameCapture(b"a" * 100, b"a" * 90), store)
    callback = MagicMock()
    await detector.start_monitoring(callback)

    assert await detector.check_for_dialog() is None
    callback.assert_not_called()
    store.save.assert_not_awaited()
    assert detector._previous_screenshot == b"a" * 90
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_divergence_above_threshold_is_detected(store: MagicMock) -> None:
    detector = make_detector(FrameCapture(b"a" * 100, b"a" * 89), store)
    events: List[DialogDetectionResult] = []
    await detector.start_monitoring(events.append)

    result = await detector.check_for_dialog()

    assert result is not None
    assert events == [result]
    assert result.detected is True
    assert result.screenshot_path == "screenshots/dialog-detected-x.png"
    assert result.timestamp.tzinfo is not None
    store.save.assert_awaited_once()
    assert store.save.await_args.args[0] == b"a" * 89
    assert detector._previous_screenshot == b"a" * 89
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_capture_error_does_not_stop_monitoring(store: MagicMock) -> None:
    calls = {"n": 0}

    async def flaky() -> bytes:
        calls["n"] += 1
        if calls["n"] == 2:
            raise OSError("capture tool crashed")
        return b"a" * 100

    detector = make_detector(flaky, store)
    await detector.start_monitoring(MagicMock())

    assert await detector.check_for_dialog() is None
    assert detector.is_monitoring() is True
    assert detector._previous_screenshot == b"a" * 100
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_callback_error_is_logged_and_baseline_advances(
    store: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    detector = make_detector(FrameCapture(b"a" * 100, b"a" * 10), store)
    await detector.start_monitoring(MagicMock(side_effect=RuntimeError("sink down")))

    assert await detector.check_for_dialog() is None
    assert detector.is_monitoring() is True
    assert detector._previous_screenshot == b"a" * 10
    assert "Error during dialog detection" in caplog.text
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_async_diff_strategy(store: MagicMock) -> None:
    async def always_changed(previous: bytes, current: bytes) -> float:
        return 1.0

    detector = DialogDetector(
        FrameCapture(b"a"),
        screenshot_interval=60,
        diff_threshold=0.5,
        diff=always_changed,
        artifact_store=store,
    )
    callback = MagicMock()
    await detector.start_monitoring(callback)

    assert await detector.check_for_dialog() is not None
    callback.assert_called_once()
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_timer_runs_checks(store: MagicMock) -> None:
    capture = FrameCapture(b"a" * 100, b"a" * 10)
    detector = make_detector(capture, store, interval=0.01)
    events: List[DialogDetectionResult] = []

    await detector.start_monitoring(events.append)
    await asyncio.sleep(0.2)
    await detector.stop_monitoring()

    assert capture.calls > 2
    assert len(events) == 1


@pytest.mark.asyncio
async def test_ticks_skip_while_check_in_flight(store: MagicMock) -> None:
    """A slow check is never overlapped, and its result is dropped after stop."""
    release = asyncio.Event()
    calls = {"n": 0}

    async def slow_capture() -> bytes:
        calls["n"] += 1
        if calls["n"] > 1:
            await release.wait()
            return b"a" * 10
        return b"a" * 100

    detector = make_detector(slow_capture, store, interval=0.01)
    callback = MagicMock()
    await detector.start_monitoring(callback)
    await asyncio.sleep(0.1)

    assert calls["n"] == 2
    assert detector.check_in_flight is True

    await detector.stop_monitoring()
    in_flight = detector._check_task
    release.set()
    assert await in_flight is None

    callback.assert_not_called()
    assert detector._previous_screenshot is None


@pytest.mark.asyncio
async def test_restart_does_not_wait_for_discarded_check(store: MagicMock) -> None:
    release = asyncio.Event()
    calls = {"n": 0}

    async def capture() -> bytes:
        calls["n"] += 1
        if calls["n"] == 2:
            await release.wait()
            return b"a" * 10
        return b"a" * 100

    detector = make_detector(capture, store, interval=0.01)
    callback = MagicMock()
    await detector.start_monitoring(callback)
    await asyncio.sleep(0.05)
    stale = detector._check_task
    assert detector.check_in_flight is True

    await detector.stop_monitoring()
    assert detector.check_in_flight is False
    await detector.start_monitoring(callback)
    await asyncio.sleep(0.1)

    assert calls["n"] > 3
    assert detector.is_monitoring() is True

    release.set()
    await detector.stop_monitoring()
    assert await stale is None
    callback.assert_not_called()


@pytest.mark.asyncio
async def test_set_screenshot_interval_restarts_monitoring(store: MagicMock) -> None:
    capture = FrameCapture(b"a")
    detector = make_detector(capture, store)
    callback = MagicMock()
    await detector.start_monitoring(callback)

    await detector.set_screenshot_interval(30)

    assert detector.screenshot_interval == 30
    assert detector.is_monitoring() is True
    assert detector._detection_callback is callback
    assert capture.calls == 2
    await detector.stop_monitoring()


@pytest.mark.asyncio
async def test_set_screenshot_interval_when_idle(store: MagicMock) -> None:
    capture = FrameCapture(b"a")
    detector = make_detector(capture, store)

    await detector.set_screenshot_interval(2.5)

    assert detector.screenshot_interval == 2.5
    assert detector.is_monitoring() is False
    assert capture.calls == 0
    with pytest.raises(ValidationError):
        await detector.set_screenshot_interval(0)
