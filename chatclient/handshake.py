from __future__ import annotations
from typing import Awaitable, Callable

from chatclient.state import ConnectionState, SessionState
from chatshared.envelope import Envelope, create_auth
from chatshared.log import get_logger

logger = get_logger(__name__)

Transmit = Callable[[Envelope], Awaitable[None]]


class AuthHandshake:
    """
    One token exchange per connection.

    The auth frame goes out once, right after the transport opens. Only an
    auth_success authenticates the session; there is no timeout, so a server
    that never answers leaves the session AuthPending until the socket closes.
    """

    def __init__(self, state: SessionState) -> None:
        self.state = state
        self.sent = False

    def reset(self) -> None:
        """Arm the handshake for a fresh connection"""
        self.sent = False

    async def start(self, transmit: Transmit) -> None:
        if self.sent:
            logger.warning("Auth already sent on this connection; not resending",
                           extra={"username": self.state.username})
            return
        self.sent = True
        await transmit(create_auth(self.state.token))
        self.state.mark_auth_pending()
        logger.debug("Auth sent, awaiting auth_success", extra={"username": self.state.username})

    def on_auth_success(self) -> None:
        if self.state.connection_state is ConnectionState.DISCONNECTED:
            logger.warning("Ignoring auth_success on a closed connection")
            return
        self.state.mark_authenticated()
        logger.info("Authenticated as %s", self.state.username)

    def on_error(self, message: str) -> None:
        """Server error frames are logged only; session state is left alone."""
        if self.state.connection_state is ConnectionState.AUTH_PENDING:
            logger.error("Authentication rejected: %s", message,
                         extra={"username": self.state.username, "msg_type": "error"})
        else:
            logger.error("Server error: %s", message,
                         extra={"username": self.state.username, "msg_type": "error"})
