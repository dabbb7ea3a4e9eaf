from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union
import json

from chatshared.MessageTypes import CLIENT_MESSAGES, MessageType


class ProtocolDecodeError(ValueError):
    """Raised when an inbound frame cannot be turned into an Envelope."""
    pass
class TransportError(ConnectionError):
    """Raised when the socket cannot be opened."""
    pass


@dataclass(frozen=True)
class ChatMessage:
    """
    One chat line as the server issues it:
    {
    "username":  "STRING",
    "text":      "STRING",
    "createdAt": "ISO-8601 STRING"
    }
    """
    username: str
    text: str
    created_at: str

    @classmethod
    def from_dict(cls, data: Any) -> 'ChatMessage':
        """Create ChatMessage from a wire object, validating field types"""
        if not isinstance(data, dict):
            raise ProtocolDecodeError("ChatMessage must be an object")
        for key in ('username', 'text', 'createdAt'):
            if not isinstance(data.get(key), str):
                raise ProtocolDecodeError(f"ChatMessage '{key}' must be a string")
        return cls(username=data['username'], text=data['text'], created_at=data['createdAt'])

    def to_dict(self) -> Dict[str, Any]:
        return {'username': self.username, 'text': self.text, 'createdAt': self.created_at}


@dataclass(frozen=True)
class Envelope:
    """Base of the tagged union; `kind` is the tag, None for unroutable types."""
    kind: ClassVar[Optional[MessageType]] = None

    @property
    def type(self) -> str:
        assert self.kind is not None
        return self.kind.value

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> 'Envelope':
        return decode(raw)

    def to_dict(self) -> Dict[str, Any]:
        raise TypeError(f"'{self.type}' envelopes are never sent by the client")

    def to_json(self) -> str:
        return encode(self)


@dataclass(frozen=True)
class AuthEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.AUTH
    token: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'token': self.token}


@dataclass(frozen=True)
class OutgoingMessage(Envelope):
    """Chat text typed by the local user; the server stamps username and time."""
    kind: ClassVar[Optional[MessageType]] = MessageType.MESSAGE
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'text': self.text}


@dataclass(frozen=True)
class AuthSuccessEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.AUTH_SUCCESS


@dataclass(frozen=True)
class HistoryEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.HISTORY
    messages: Tuple[ChatMessage, ...] = ()


@dataclass(frozen=True)
class MessageEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.MESSAGE
    message: ChatMessage


@dataclass(frozen=True)
class UserJoinedEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.USER_JOINED
    username: str


@dataclass(frozen=True)
class UserLeftEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.USER_LEFT
    username: str


@dataclass(frozen=True)
class ErrorEnvelope(Envelope):
    kind: ClassVar[Optional[MessageType]] = MessageType.ERROR
    message: str


@dataclass(frozen=True)
class UnknownEnvelope(Envelope):
    """Well-formed frame whose type this client does not know; never routed."""
    type_name: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return self.type_name


# ========================================
#           DECODING
# ========================================

def _payload_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    payload = data.get('payload')
    if not isinstance(payload, dict):
        raise ProtocolDecodeError(f"'{data['type']}' payload must be an object")
    return payload


def _username(data: Dict[str, Any]) -> str:
    username = _payload_dict(data).get('username')
    if not isinstance(username, str):
        raise ProtocolDecodeError(f"'{data['type']}' payload.username must be a string")
    return username


def _decode_auth(data: Dict[str, Any]) -> Envelope:
    if not isinstance(data.get('token'), str):
        raise ProtocolDecodeError("'auth' token must be a string")
    return AuthEnvelope(token=data['token'])


def _decode_history(data: Dict[str, Any]) -> Envelope:
    payload = data.get('payload')
    if not isinstance(payload, list):
        raise ProtocolDecodeError("'history' payload must be an array")
    return HistoryEnvelope(messages=tuple(ChatMessage.from_dict(item) for item in payload))


def _decode_message(data: Dict[str, Any]) -> Envelope:
    # Outbound shape carries bare text, inbound carries a full ChatMessage
    if 'payload' not in data and isinstance(data.get('text'), str):
        return OutgoingMessage(text=data['text'])
    return MessageEnvelope(message=ChatMessage.from_dict(data.get('payload')))


def _decode_error(data: Dict[str, Any]) -> Envelope:
    if not isinstance(data.get('message'), str):
        raise ProtocolDecodeError("'error' message must be a string")
    return ErrorEnvelope(message=data['message'])


_DECODERS: Dict[MessageType, Callable[[Dict[str, Any]], Envelope]] = {
    MessageType.AUTH: _decode_auth,
    MessageType.AUTH_SUCCESS: lambda data: AuthSuccessEnvelope(),
    MessageType.HISTORY: _decode_history,
    MessageType.MESSAGE: _decode_message,
    MessageType.USER_JOINED: lambda data: UserJoinedEnvelope(username=_username(data)),
    MessageType.USER_LEFT: lambda data: UserLeftEnvelope(username=_username(data)),
    MessageType.ERROR: _decode_error,
}


def decode(raw: Union[str, bytes]) -> Envelope:
    """
    Parse one JSON text frame into its Envelope.

    Unknown `type` values come back as UnknownEnvelope; anything that is not
    a JSON object with a string `type`, or a known type with the wrong
    payload shape, raises ProtocolDecodeError.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ProtocolDecodeError(f"Frame is not UTF-8: {e}") from e
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the parser can follow
        raise ProtocolDecodeError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolDecodeError("Frame must be a JSON object")
    msg_type = data.get('type')
    if not isinstance(msg_type, str):
        raise ProtocolDecodeError("'type' must be a string")
    if not MessageType.is_valid(msg_type):
        return UnknownEnvelope(type_name=msg_type, data=data)

    return _DECODERS[MessageType(msg_type)](data)


# ========================================
#           ENCODING
# ========================================

def encode(envelope: Envelope) -> str:
    """Serialize one of the outbound kinds (auth, message) to a JSON text frame"""
    if envelope.kind not in CLIENT_MESSAGES or isinstance(envelope, MessageEnvelope):
        raise TypeError(f"Cannot encode inbound-only envelope '{envelope.type}'")
    return json.dumps(envelope.to_dict(), separators=(',', ':'))


def create_auth(token: str) -> AuthEnvelope:
    return AuthEnvelope(token=token)


def create_message(text: str) -> OutgoingMessage:
    return OutgoingMessage(text=text)
