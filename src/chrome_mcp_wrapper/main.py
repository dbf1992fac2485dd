import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler

from .services.mcp_client import ChromeMCPClient
from .settings import get_settings


def setup_logging() -> logging.Logger:
    """Configure and return the package logger."""
    settings = get_settings()
    settings.log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("chrome_mcp_wrapper")
    if logger.handlers:
        return logger

    logger.setLevel(settings.log_level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(
        settings.log_dir / "chrome_mcp_wrapper.log", maxBytes=5_000_000, backupCount=3
    )
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logger


async def check_connection() -> bool:
    """Connect to the configured MCP server and print the tab context."""
    logger = logging.getLogger("chrome_mcp_wrapper.main")
    async with ChromeMCPClient() as client:
        logger.info("Checking MCP server at %s", client.server_url)
        result = await client.get_tabs_context()
    if not result.success:
        logger.error("Tab context request failed: %s", result.error)
        return False
    print(result.data)
    return True


def main() -> int:
    setup_logging()
    return 0 if asyncio.run(check_connection()) else 1


if __name__ == "__main__":
    sys.exit(main())
