"""
State Manager Base

A state manager mirrors one remote collection for the current session.

DESIGN DECISION: Published state is an immutable snapshot. Every change is
a reducer applied to whatever state is current at the moment of the
change, never to a snapshot captured before an await. Interleaved async
callbacks (a reload finishing while a local patch is applied) therefore
cannot resurrect stale lists.

Remote change notifications invalidate the whole collection. Bursts of
notifications are coalesced into one reload.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel

from moneytrack.audit import AuditLogger
from moneytrack.config import get_settings
from moneytrack.models.ledger import User
from moneytrack.repositories.base import StoreRepository
from moneytrack.services.session import SessionContext
from moneytrack.services.storage.interface import ChangeEvent, Subscription


logger = structlog.get_logger(__name__)

S = TypeVar("S", bound=BaseModel)

StateListener = Callable[[BaseModel], None]


class LoadStatus(str, Enum):
    """Lifecycle of a mirrored collection."""
    IDLE = "idle"        # No user in session
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ReloadCoalescer:
    """
    Collapses reload requests that arrive close together into one reload.

    A request that arrives while a reload is already running schedules
    exactly one more reload after it, so the last notification is never
    lost. A request made with no running event loop is deferred until the
    next request() or flush() on the loop.
    """

    def __init__(self, reload: Callable[[], Awaitable[None]], window: float = 0.0):
        self._reload = reload
        self._window = window
        self._task: Optional[asyncio.Task] = None
        self._dirty = False
        self.reload_count = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def request(self) -> None:
        if self.pending:
            self._dirty = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Sync caller such as an auth callback: the next request() or
            # flush() made on the loop runs it
            logger.debug("reload_deferred_without_event_loop")
            self._dirty = True
            return
        self._dirty = False
        self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        while True:
            if self._window > 0:
                await asyncio.sleep(self._window)
            self._dirty = False
            self.reload_count += 1
            try:
                await self._reload()
            except Exception as e:
                # Background task: nobody awaits it, so log instead of raising
                logger.error("coalesced_reload_failed", error=str(e))
            if not self._dirty:
                return

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None
        self._dirty = False

    async def flush(self) -> None:
        """Wait until no reload is scheduled or running."""
        if self._dirty and not self.pending:
            self.request()
        while self.pending:
            task = self._task
            try:
                await task
            except asyncio.CancelledError:
                if task is self._task:
                    raise


class StateManager(Generic[S]):
    """
    Common lifecycle for the account and expense state managers.

    Subclasses provide `_initial_state()` and `load()`.
    """

    def __init__(
        self,
        repository: StoreRepository,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
        coalesce_window: Optional[float] = None,
    ):
        if coalesce_window is None:
            coalesce_window = get_settings().app.reload_coalesce_seconds

        self._repo = repository
        self._session = session
        self._audit = audit_logger or AuditLogger()
        self._state: S = self._initial_state()
        self._listeners: list[StateListener] = []
        self._coalescer = ReloadCoalescer(self.load, coalesce_window)
        self._feed: Optional[Subscription] = None
        self._session_unsubscribe: Optional[Callable[[], None]] = None

    def _initial_state(self) -> S:
        raise NotImplementedError

    async def load(self) -> None:
        raise NotImplementedError

    @property
    def state(self) -> S:
        return self._state

    @property
    def reload_count(self) -> int:
        """Reloads triggered by change notifications so far."""
        return self._coalescer.reload_count

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Observe published state.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, reducer: Callable[[S], S]) -> S:
        self._state = reducer(self._state)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Bind to the session and, while a user is present, to the change feed.

        Schedules an initial load when a user is already signed in.
        """
        if self._session_unsubscribe is None:
            self._session_unsubscribe = self._session.on_session_change(
                self._on_session_change
            )
        self._on_session_change(self._session.current_user())

    def close(self) -> None:
        if self._session_unsubscribe is not None:
            self._session_unsubscribe()
            self._session_unsubscribe = None
        self._unbind_feed()
        self._coalescer.cancel()

    async def flush(self) -> None:
        """Wait for scheduled reloads to finish."""
        await self._coalescer.flush()

    def _on_session_change(self, user: Optional[User]) -> None:
        if user is None:
            self._unbind_feed()
            self._coalescer.cancel()
            self._publish(lambda _: self._initial_state())
            return

        if self._feed is None:
            self._feed = self._repo.subscribe(self._on_remote_change)
        self._coalescer.request()

    def _on_remote_change(self, event: ChangeEvent) -> None:
        logger.debug(
            "remote_change",
            collection=event.collection,
            change_type=event.change_type.value,
            row_id=event.row_id,
        )
        self._coalescer.request()

    def _unbind_feed(self) -> None:
        if self._feed is not None:
            self._feed.unsubscribe()
            self._feed = None

    def _is_current(self, user_id: str) -> bool:
        # A load that finishes after the user changed must not publish
        return self._session.user_id == user_id
