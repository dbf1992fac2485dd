import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Sequence, TypeVar

from ..errors import ArityMismatchError, DuplicateSessionError
from ..services.mcp_client import ChromeMCPClient, get_mcp_client
from .chrome_session import ChromeSession

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionTask = Callable[[ChromeSession], Awaitable[T]]

AUTO_NAME_PREFIX = "session-"


class SessionManager:
    """Registry of named ChromeSessions sharing one MCP client.

    The name map is guarded by a lock; everything else about a session
    belongs to whoever holds it.
    """

    def __init__(self, client: ChromeMCPClient | None = None) -> None:
        self._client = client or get_mcp_client()
        self._sessions: Dict[str, ChromeSession] = {}
        self._session_counter = 0
        self._lock = threading.Lock()

    @property
    def client(self) -> ChromeMCPClient:
        return self._client

    def create_session(self, name: str | None = None) -> ChromeSession:
        """Create and register a session.

        Args:
            name: Session name; generated as ``session-<n>`` when omitted.

        Raises:
            DuplicateSessionError: a session named ``name`` already exists.
        """
        with self._lock:
            if name is None:
                session_id = self._next_auto_name()
            else:
                session_id = name
                if session_id in self._sessions:
                    raise DuplicateSessionError(session_id)
            session = ChromeSession(session_id, self._client)
            self._sessions[session_id] = session

        logger.info('Session "%s" created', session_id)
        return session

    def _next_auto_name(self) -> str:
        # Caller holds the lock. Skips names taken explicitly by callers.
        while True:
            session_id = f"{AUTO_NAME_PREFIX}{self._session_counter}"
            self._session_counter += 1
            if session_id not in self._sessions:
                return session_id

    def get_session(self, name: str) -> ChromeSession | None:
        with self._lock:
            return self._sessions.get(name)

    def _get_or_create(self, name: str) -> ChromeSession:
        with self._lock:
            session = self._sessions.get(name)
            if session is not None:
                return session
            session = ChromeSession(name, self._client)
            self._sessions[name] = session
        logger.info('Session "%s" created', name)
        return session

    def remove_session(self, name: str) -> bool:
        """Remove a session. Returns False (and logs a warning) when it does not exist."""
        with self._lock:
            removed = self._sessions.pop(name, None) is not None
        if removed:
            logger.info('Session "%s" removed', name)
        else:
            logger.warning('Session "%s" not found', name)
        return removed

    def get_all_sessions(self) -> Dict[str, ChromeSession]:
        """Return a copy of the name -> session map."""
        with self._lock:
            return dict(self._sessions)

    def get_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear_all(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._session_counter = 0
        logger.info("All sessions cleared")

    @asynccontextmanager
    async def session_scope(self, name: str | None = None) -> AsyncIterator[ChromeSession]:
        """Create a session for the duration of the block and always remove it."""
        session = self.create_session(name)
        try:
            yield session
        finally:
            self.remove_session(session.session_id)

    async def run_parallel(
        self, tasks: Sequence[SessionTask[T]], *, return_exceptions: bool = False
    ) -> List[Any]:
        """Run tasks concurrently, each with its own temporary session.

        Every temporary session is removed when its task finishes, whether it
        succeeded or not.

        Args:
            tasks: Coroutine functions taking a ChromeSession.
            return_exceptions: Return exceptions in place of results instead
                of raising the first one.

        Returns:
            List of results in the order of ``tasks``.
        """
        logger.info("Running %d tasks in parallel...", len(tasks))

        async def run_ephemeral(task: SessionTask[T]) -> T:
            async with self.session_scope() as session:
                return await task(session)

        results = await self._gather([run_ephemeral(task) for task in tasks], return_exceptions)
        logger.info("All parallel tasks completed")
        return results

    async def run_parallel_with_sessions(
        self,
        session_names: Sequence[str],
        tasks: Sequence[SessionTask[T]],
        *,
        return_exceptions: bool = False,
    ) -> List[Any]:
        """Run tasks concurrently on named sessions, creating missing ones.

        Sessions used here persist after the call.

        Raises:
            ArityMismatchError: ``session_names`` and ``tasks`` differ in length.
        """
        if len(session_names) != len(tasks):
            raise ArityMismatchError(len(session_names), len(tasks))

        logger.info("Running %d tasks in parallel with specified sessions...", len(tasks))

        async def run_named(name: str, task: SessionTask[T]) -> T:
            return await task(self._get_or_create(name))

        results = await self._gather(
            [run_named(name, task) for name, task in zip(session_names, tasks)],
            return_exceptions,
        )
        logger.info("All parallel tasks completed")
        return results

    @staticmethod
    async def _gather(
        coros: List[Awaitable[T]], return_exceptions: bool
    ) -> List[Any]:
        # Waits for every task before raising so per-task cleanup has run.
        outcomes = await asyncio.gather(*coros, return_exceptions=True)
        if return_exceptions:
            return list(outcomes)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(outcomes)
