from __future__ import annotations
import asyncio
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI
from websockets.protocol import State

from chatclient.dispatcher import EventDispatcher
from chatclient.handshake import AuthHandshake
from chatclient.state import ConnectionState, Session, SessionListener, SessionState
from chatclient.transcript import TranscriptStore
from chatshared.envelope import (
    Envelope,
    ProtocolDecodeError,
    TransportError,
    create_message,
    decode,
    encode,
)
from chatshared.log import get_logger, log_envelope

logger = get_logger(__name__)

Connector = Callable[[str], Awaitable[Any]]

# End-of-stream marker on the inbound queue
_CLOSED = None


class ClientSession:
    """
    Live chat client session: owns one WebSocket and its state transitions.

    A reader task decodes frames into a bounded queue; run() is the single
    consumer applying them in arrival order. Use as an async context manager
    so the socket is closed on every exit path.
    """

    def __init__(
        self,
        server_ws_url: str,
        token: str,
        username: str,
        *,
        queue_size: int = 256,
        ping_interval: Optional[float] = 15,
        ping_timeout: Optional[float] = 45,
        connector: Optional[Connector] = None,
    ) -> None:
        self.server_ws_url = server_ws_url
        self.queue_size = queue_size
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self._connector = connector or self._default_connector
        self._state = SessionState(token=token, username=username)
        self.transcript = TranscriptStore()
        self.handshake = AuthHandshake(self._state)
        self.dispatcher = EventDispatcher(self.handshake, self.transcript)
        self.websocket: Optional[Any] = None
        self._inbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._reader: Optional[asyncio.Task] = None

    @property
    def session(self) -> Session:
        return self._state.snapshot()

    def on_session_change(self, listener: SessionListener) -> None:
        self._state.subscribe(listener)

    async def _default_connector(self, url: str) -> Any:
        return await websockets.connect(url, ping_interval=self.ping_interval, ping_timeout=self.ping_timeout)

    # ========================================
    #           LIFECYCLE
    # ========================================

    async def connect(self, token: Optional[str] = None) -> Session:
        """Open the socket, send the auth frame and return the AuthPending session"""
        if self.websocket is not None:
            raise RuntimeError("Session already has an open connection")
        if token is not None:
            self._state.token = token

        self._state.mark_connecting()
        try:
            self.websocket = await self._connector(self.server_ws_url)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            self._state.mark_disconnected()
            logger.error("Cannot connect to %s: %s", self.server_ws_url, e)
            raise TransportError(f"Cannot connect to {self.server_ws_url}: {e}") from e

        logger.info("WebSocket connected to %s", self.server_ws_url)
        self._inbound = asyncio.Queue(maxsize=self.queue_size)
        self.dispatcher.reset()
        self.handshake.reset()
        try:
            try:
                await self.handshake.start(self._transmit)
            except ConnectionClosed as e:
                # Closed between open and the auth write; reported like any other close
                logger.warning("Connection closed before auth could be sent: %s", e)
            self._reader = asyncio.create_task(self._pump(self.websocket, self._inbound))
        except BaseException:
            # __aexit__ never runs when __aenter__ fails, so the socket is closed here
            await self.close()
            raise
        return self.session

    async def close(self) -> None:
        """Close the socket, stop reading and reset the session"""
        websocket, self.websocket = self.websocket, None
        if websocket is None:
            return
        try:
            await websocket.close(code=1000)
        finally:
            if self._reader is not None:
                self._reader.cancel()
                with suppress(asyncio.CancelledError):
                    await self._reader
                self._reader = None
            self._discard_inbound()
            self._on_transport_closed()

    async def __aenter__(self) -> ClientSession:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ========================================
    #           OUTBOUND
    # ========================================

    def is_open(self) -> bool:
        return self.websocket is not None and self.websocket.state is State.OPEN

    async def send(self, envelope: Envelope) -> bool:
        """
        Fire-and-forget write. When the transport is not open the envelope is
        dropped: no queueing, no retry, no exception. Returns whether it was written.
        """
        if not self.is_open():
            log_envelope(logger, "debug", "Transport not open; dropping outbound envelope",
                         envelope=envelope, conn_state=self._state.connection_state.value)
            return False
        try:
            await self._transmit(envelope)
        except ConnectionClosed as e:
            log_envelope(logger, "debug", f"Connection closed while sending: {e}", envelope=envelope)
            return False
        return True

    async def send_message(self, text: str) -> bool:
        """Send chat text typed by the user; blank input is never sent"""
        if not text.strip():
            return False
        return await self.send(create_message(text))

    async def _transmit(self, envelope: Envelope) -> None:
        assert self.websocket is not None
        await self.websocket.send(encode(envelope))
        log_envelope(logger, "debug", "Sent envelope", envelope=envelope)

    # ========================================
    #           INBOUND
    # ========================================

    async def _pump(self, websocket: Any, inbound: asyncio.Queue) -> None:
        """Decode frames into the inbound queue until the transport closes"""
        try:
            async for raw in websocket:
                try:
                    envelope = decode(raw)
                except ProtocolDecodeError as e:
                    logger.warning("Dropping malformed frame: %s", e)
                    continue
                await inbound.put(envelope)
        except ConnectionClosedError as e:
            logger.warning("WebSocket closed abnormally: %s", e)
        except asyncio.CancelledError:
            # close() ends the stream itself
            raise
        except Exception as e:
            logger.exception("Reader failed, closing connection: %s", e)
            try:
                await websocket.close(code=1011)
            except Exception as close_error:
                logger.error("Error closing connection: %s", close_error)
        await inbound.put(_CLOSED)

    async def run(self) -> None:
        """
        Apply inbound envelopes in arrival order until the transport closes.
        A handler failure is logged and the loop keeps going.
        """
        if self.websocket is None:
            raise RuntimeError("run() needs a connected session; call connect() first")
        inbound = self._inbound
        while True:
            envelope: Union[Envelope, None] = await inbound.get()
            if envelope is _CLOSED:
                self.websocket = None
                self._on_transport_closed()
                return
            try:
                self.dispatcher.dispatch(envelope)
            except Exception as e:
                logger.exception("Failed to process inbound %s: %s", envelope.type, e)

    def _discard_inbound(self) -> None:
        while not self._inbound.empty():
            self._inbound.get_nowait()
        self._inbound.put_nowait(_CLOSED)

    def _on_transport_closed(self) -> None:
        if self._state.connection_state is ConnectionState.DISCONNECTED:
            return
        self._state.mark_disconnected()
        logger.info("WebSocket disconnected", extra={"username": self._state.username})
