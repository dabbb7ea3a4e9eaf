from __future__ import annotations
from typing import Callable, Dict

from chatclient.handshake import AuthHandshake
from chatclient.transcript import SystemNotice, TranscriptStore
from chatshared.envelope import (
    Envelope,
    ErrorEnvelope,
    HistoryEnvelope,
    MessageEnvelope,
    UserJoinedEnvelope,
    UserLeftEnvelope,
)
from chatshared.log import get_logger, log_envelope
from chatshared.MessageTypes import MessageType

logger = get_logger(__name__)

Route = Callable[[Envelope], None]


class EventDispatcher:
    """
    Routes each inbound envelope to the handshake or the transcript.

    Every kind has a defined effect; anything without a route is a no-op.
    """

    def __init__(self, handshake: AuthHandshake, transcript: TranscriptStore) -> None:
        self.handshake = handshake
        self.transcript = transcript
        self.history_count = 0
        self.live_entries = 0
        self.routes: Dict[MessageType, Route] = {
            MessageType.AUTH_SUCCESS: self._on_auth_success,
            MessageType.HISTORY: self._on_history,
            MessageType.MESSAGE: self._on_message,
            MessageType.USER_JOINED: self._on_user_joined,
            MessageType.USER_LEFT: self._on_user_left,
            MessageType.ERROR: self._on_error,
        }

    def reset(self) -> None:
        """New connection: history may be replayed again"""
        self.history_count = 0
        self.live_entries = 0

    def dispatch(self, envelope: Envelope) -> None:
        route = self.routes.get(envelope.kind) if envelope.kind is not None else None
        if route is None or not isinstance(envelope, _ROUTED_TYPES[envelope.kind]):
            log_envelope(logger, "debug", "Ignoring unroutable envelope", envelope=envelope)
            return
        route(envelope)

    def _on_auth_success(self, envelope: Envelope) -> None:
        self.handshake.on_auth_success()

    def _on_history(self, envelope: HistoryEnvelope) -> None:
        # A repeated or late history still overwrites; flag it for diagnosis
        if self.history_count or self.live_entries:
            logger.warning("history received after %d replay(s) and %d live entries; overwriting transcript",
                           self.history_count, self.live_entries, extra={"msg_type": "history"})
        self.history_count += 1
        self.live_entries = 0
        self.transcript.replace_all(envelope.messages)
        logger.debug("Replayed %d history messages", len(envelope.messages))

    def _on_message(self, envelope: MessageEnvelope) -> None:
        self._append(envelope.message)

    def _on_user_joined(self, envelope: UserJoinedEnvelope) -> None:
        self._append(SystemNotice.joined(envelope.username))

    def _on_user_left(self, envelope: UserLeftEnvelope) -> None:
        self._append(SystemNotice.left(envelope.username))

    def _on_error(self, envelope: ErrorEnvelope) -> None:
        self.handshake.on_error(envelope.message)

    def _append(self, entry) -> None:
        self.live_entries += 1
        self.transcript.append(entry)


# An outbound-shaped 'message' echoed back carries no ChatMessage to append
_ROUTED_TYPES = {
    MessageType.AUTH_SUCCESS: Envelope,
    MessageType.HISTORY: HistoryEnvelope,
    MessageType.MESSAGE: MessageEnvelope,
    MessageType.USER_JOINED: UserJoinedEnvelope,
    MessageType.USER_LEFT: UserLeftEnvelope,
    MessageType.ERROR: ErrorEnvelope,
}
