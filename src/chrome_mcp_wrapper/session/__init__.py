from .chrome_session import ChromeSession
from .manager import SessionManager

__all__ = ["ChromeSession", "SessionManager"]
