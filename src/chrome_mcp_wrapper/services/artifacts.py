import asyncio
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "dialog-detected-"


class ArtifactStore(Protocol):
    async def save(self, data: bytes, timestamp: datetime) -> str: ...


def artifact_filename(timestamp: datetime) -> str:
    """Build ``dialog-detected-<ISO 8601 UTC, ':' and '.' as '-'>.png``."""
    utc = timestamp.astimezone(timezone.utc)
    iso = utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"
    return f"{ARTIFACT_PREFIX}{re.sub(r'[:.]', '-', iso)}.png"


class FileArtifactStore:
    """Writes detection screenshots into a directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    async def save(self, data: bytes, timestamp: datetime) -> str:
        path = self.directory / artifact_filename(timestamp)
        await asyncio.to_thread(self._write, path, data)
        logger.info("Screenshot saved to: %s", path)
        return str(path)

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
