from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Wrapper configuration."""

    server_url: str = "http://127.0.0.1:12306/mcp"
    tool_name_prefix: str = "mcp__claude-in-chrome__"
    tool_call_timeout_seconds: float = 120.0
    client_name: str = "chrome-mcp-wrapper"
    client_version: str = "1.0.0"

    screenshot_interval_seconds: float = Field(default=5.0, gt=0)
    diff_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    pixel_tolerance: int = Field(default=16, ge=0, le=255)
    screenshot_dir: Path = Path("screenshots")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: Path = Path("logs")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHROME_MCP_",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Return the settings singleton (loaded from env / .env)."""
    global _SETTINGS
    try:
        return _SETTINGS
    except NameError:
        _SETTINGS = Settings()
        return _SETTINGS
