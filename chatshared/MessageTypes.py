from __future__ import annotations

from enum import Enum
from typing import Set


class MessageType(str, Enum):
    """Live chat wire message types."""

    # Client-to-Server
    AUTH = "auth"                    # Session token, first frame after open
    MESSAGE = "message"              # Chat text (outbound) / ChatMessage (inbound)

    # Server-to-Client
    AUTH_SUCCESS = "auth_success"    # Token accepted
    HISTORY = "history"              # Prior ChatMessages, replayed once
    USER_JOINED = "user_joined"      # Presence: someone entered
    USER_LEFT = "user_left"          # Presence: someone left
    ERROR = "error"                  # Free-text server error

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Check if string is a valid message type."""
        try:
            cls(value)
            return True
        except ValueError:
            return False


# Kinds the client ever writes to the socket
CLIENT_MESSAGES: Set[MessageType] = {
    MessageType.AUTH,
    MessageType.MESSAGE,
}

# Kinds the server sends
SERVER_MESSAGES: Set[MessageType] = {
    MessageType.AUTH_SUCCESS,
    MessageType.HISTORY,
    MessageType.MESSAGE,
    MessageType.USER_JOINED,
    MessageType.USER_LEFT,
    MessageType.ERROR,
}
