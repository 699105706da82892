"""
Session Context

The auth provider is an external collaborator. The ledger only needs to
know who the current user is and when that changes.

DESIGN DECISION: The session is passed explicitly to every state manager
instead of being looked up from ambient global state. Lifecycle and
teardown are then visible at the call site and easy to drive in tests.
"""

from typing import Callable, Optional

import structlog

from moneytrack.models.ledger import User


logger = structlog.get_logger(__name__)


SessionListener = Callable[[Optional[User]], None]


class SessionContext:
    """
    Holds the current user and notifies listeners when it changes.

    The embedding application calls sign_in()/sign_out() from its auth
    provider's callbacks.
    """

    def __init__(self, user: Optional[User] = None):
        self._user = user
        self._listeners: list[SessionListener] = []

    def current_user(self) -> Optional[User]:
        return self._user

    @property
    def user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called with the new user (or None).

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def sign_in(self, user: User) -> None:
        if self._user is not None and self._user.id == user.id:
            self._user = user
            return
        self._user = user
        logger.info("session_started", user_id=user.id)
        self._notify()

    def sign_out(self) -> None:
        if self._user is None:
            return
        logger.info("session_ended", user_id=self._user.id)
        self._user = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._user)
