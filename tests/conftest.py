import asyncio
import json

import pytest
from websockets.protocol import State


class FakeWebSocket:
    """In-memory stand-in for a websockets ClientConnection."""

    def __init__(self) -> None:
        self.sent_messages: list[str] = []
        self.state = State.OPEN
        self.close_code: int | None = None
        self.send_error: Exception | None = None
        self.send_gate: asyncio.Event | None = None
        self._frames: asyncio.Queue = asyncio.Queue()

    def feed(self, frame) -> None:
        """Queue a server frame; dicts are JSON-encoded."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._frames.put_nowait(frame)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._frames.put_nowait(None)

    def sent(self) -> list[dict]:
        return [json.loads(m) for m in self.sent_messages]

    async def send(self, data: str) -> None:
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.send_error is not None:
            raise self.send_error
        self.sent_messages.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code
        self.state = State.CLOSED
        self._frames.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._frames.get()
        if frame is None:
            self.state = State.CLOSED
            raise StopAsyncIteration
        return frame


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def connector(fake_ws):
    urls = []

    async def connect(url: str):
        urls.append(url)
        return fake_ws

    connect.urls = urls
    return connect


async def settle(predicate, timeout: float = 2.0) -> bool:
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return False


@pytest.fixture
def wait_for():
    return settle
