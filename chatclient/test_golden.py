#!/usr/bin/env python3
"""
Golden connect -> auth -> history -> message -> user_left transcript, frame for frame.
"""

from __future__ import annotations
import asyncio
import json

from chatshared.envelope import Envelope, decode, encode
from .dispatcher import EventDispatcher
from .handshake import AuthHandshake
from .state import ConnectionState, SessionState
from .transcript import TranscriptStore


def test_golden_session():
    state = SessionState(token="t1", username="bob")
    transcript = TranscriptStore()
    handshake = AuthHandshake(state)
    dispatcher = EventDispatcher(handshake, transcript)
    wire: list[str] = []

    async def transmit(envelope: Envelope) -> None:
        wire.append(encode(envelope))

    # Transport opens
    state.mark_connecting()
    asyncio.run(handshake.start(transmit))
    if [json.loads(f) for f in wire] != [{"type": "auth", "token": "t1"}]:
        raise AssertionError(f"Unexpected auth frames: {wire}")
    if state.connection_state is not ConnectionState.AUTH_PENDING:
        raise AssertionError(f"Expected auth_pending, got {state.connection_state}")

    dispatcher.dispatch(decode('{"type":"auth_success"}'))
    if not state.authenticated:
        raise AssertionError("auth_success did not authenticate the session")

    dispatcher.dispatch(decode(
        '{"type":"history","payload":[{"username":"alice","text":"hi","createdAt":"2024-01-01T00:00:00Z"}]}'
    ))
    dispatcher.dispatch(decode(
        '{"type":"message","payload":{"username":"bob","text":"yo","createdAt":"2024-01-01T00:00:05Z"}}'
    ))
    dispatcher.dispatch(decode('{"type":"user_left","payload":{"username":"alice"}}'))

    lines = [f"{e.username}:{e.text}" for e in transcript]
    expected = ["alice:hi", "bob:yo", "System:alice left the chat."]
    if lines != expected:
        raise AssertionError(f"Transcript mismatch: expected {expected}, got {lines}")

    print("✅ Golden session test passed")
    for line in lines:
        print(f"   {line}")


if __name__ == "__main__":
    test_golden_session()
