"""Tri-state authentication session.

``Session`` is the single owner of the auth flag.  It starts ``unknown`` when
the application starts and only moves through the transitions below:

* unknown -> authenticated | unauthenticated   (verify, login, refused call)
* authenticated -> unauthenticated             (logout, refused call)
* unauthenticated -> authenticated             (login only)

``SessionManager`` performs the remote calls and drives those transitions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List

from .errors import AuthFailed, ClinicQueueError, ValidationError
from .models import AuthState, Gate

if TYPE_CHECKING:
    from .api import ClinicQueueAPI

logger = logging.getLogger(__name__)

Listener = Callable[[AuthState], None]


class Session:
    def __init__(self) -> None:
        self._state = AuthState.unknown
        self._listeners: List[Listener] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is AuthState.authenticated

    def gate(self) -> Gate:
        """Decide what a protected view shows: a spinner, itself, or the login form."""
        if self._state is AuthState.unknown:
            return Gate.checking
        if self._state is AuthState.authenticated:
            return Gate.allow
        return Gate.login_required

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for state changes.  Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, new_state: AuthState, reason: str) -> None:
        if new_state is self._state:
            return
        logger.info(f"🔐 Session {self._state.value} -> {new_state.value} ({reason})")
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    def apply_status(self, is_authenticated: bool) -> None:
        """Apply the result of a status check."""
        if not is_authenticated:
            self._set(AuthState.unauthenticated, "status check")
        elif self._state is AuthState.unauthenticated:
            # Only a login may lift an unauthenticated session
            logger.info("Status check reported a session, ignoring until login")
        else:
            self._set(AuthState.authenticated, "status check")

    def login_succeeded(self) -> None:
        self._set(AuthState.authenticated, "login")

    def force_logout(self, reason: str = "logout") -> None:
        self._set(AuthState.unauthenticated, reason)


class SessionManager:
    def __init__(self, api: "ClinicQueueAPI", session: Session):
        self.api = api
        self.session = session

    @property
    def state(self) -> AuthState:
        return self.session.state

    async def verify(self) -> AuthState:
        """Ask the service whether our cookie is still good.  Never raises."""
        try:
            status = await self.api.check_auth_status()
        except ClinicQueueError as e:
            logger.warning(f"Auth check failed: {e.message}")
            self.session.force_logout("status check failed")
        else:
            self.session.apply_status(status.is_authenticated)
        return self.session.state

    async def login(self, username: str, password: str) -> str:
        if not username or not password:
            raise ValidationError("Please enter both username and password.")
        try:
            result = await self.api.login_admin(username, password)
        except AuthFailed:
            raise
        except ClinicQueueError as e:
            raise AuthFailed(e.message) from e
        self.session.login_succeeded()
        return result.message

    async def logout(self) -> None:
        """Best-effort remote logout; locally always ends unauthenticated."""
        try:
            await self.api.logout_admin()
        except ClinicQueueError as e:
            logger.warning(f"Logout API failed, proceeding client-side: {e.message}")
        finally:
            self.session.force_logout("logout")

    def force_logout(self, reason: str) -> None:
        self.session.force_logout(reason)
