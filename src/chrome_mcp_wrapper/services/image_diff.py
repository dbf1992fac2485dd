"""Screenshot divergence strategies.

A strategy takes the previous and current screenshot bytes and returns a
score in [0, 1]; the detector flags a dialog when the score is strictly
greater than its threshold.
"""

from io import BytesIO

from PIL import Image, ImageChops

from ..errors import CaptureError


def size_ratio_diff(previous: bytes, current: bytes) -> float:
    """Relative difference of the encoded sizes.

    Cheap, but only a proxy: compressed size moves with content, not with
    where the content changed.
    """
    largest = max(len(previous), len(current))
    if largest == 0:
        return 0.0
    return abs(len(previous) - len(current)) / largest


class PixelRatioDiff:
    """Fraction of greyscale pixels that changed by more than ``tolerance``.

    The current image is resized to the previous one's dimensions first.
    """

    def __init__(self, tolerance: int = 16) -> None:
        if not 0 <= tolerance <= 255:
            raise ValueError("tolerance must be between 0 and 255")
        self.tolerance = tolerance

    def __call__(self, previous: bytes, current: bytes) -> float:
        if previous == current:
            return 0.0
        before = _load_greyscale(previous)
        after = _load_greyscale(current)
        if after.size != before.size:
            after = after.resize(before.size)

        histogram = ImageChops.difference(before, after).histogram()
        total = sum(histogram)
        if total == 0:
            return 0.0
        return sum(histogram[self.tolerance + 1 :]) / total


def _load_greyscale(data: bytes) -> Image.Image:
    try:
        with Image.open(BytesIO(data)) as img:
            return img.convert("L")
    except (OSError, ValueError) as e:
        raise CaptureError(f"Cannot decode screenshot: {e}") from e
