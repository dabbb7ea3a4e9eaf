from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List

from chatshared.log import get_logger

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTH_PENDING = "auth_pending"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Session:
    """Read-only snapshot handed to the rendering layer."""
    token: str
    username: str
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    authenticated: bool = False


SessionListener = Callable[[Session], None]


@dataclass
class SessionState:
    """
    Mutable session owned by one ClientSession.

    `authenticated` is true only between an auth_success and the next
    transport close; every close resets it no matter where the handshake was.
    """
    token: str
    username: str
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    authenticated: bool = False
    _listeners: List[SessionListener] = field(default_factory=list, repr=False)

    def snapshot(self) -> Session:
        return Session(
            token=self.token,
            username=self.username,
            connection_state=self.connection_state,
            authenticated=self.authenticated,
        )

    def subscribe(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def mark_connecting(self) -> None:
        self.authenticated = False
        self._set(ConnectionState.CONNECTING)

    def mark_auth_pending(self) -> None:
        self._set(ConnectionState.AUTH_PENDING)

    def mark_authenticated(self) -> None:
        self.authenticated = True
        self._set(ConnectionState.AUTHENTICATED)

    def mark_disconnected(self) -> None:
        self.authenticated = False
        self._set(ConnectionState.DISCONNECTED)

    def _set(self, new_state: ConnectionState) -> None:
        old_state = self.connection_state
        self.connection_state = new_state
        logger.debug("Session %s -> %s", old_state.value, new_state.value,
                     extra={"username": self.username})
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener failed")
