import asyncio

import pytest
from rich.console import Console
from typer.testing import CliRunner

from chatclient import chat_cli
from chatclient.auth_api import AuthApiError, LoginResult
from chatclient.credentials import CredentialStore
from chatclient.state import ConnectionState, Session
from chatclient.transcript import SystemNotice
from chatclient.ws_client import ClientSession
from chatshared.envelope import ChatMessage

runner = CliRunner()


@pytest.fixture
def creds_path(tmp_path, monkeypatch):
    path = tmp_path / "credentials.json"
    monkeypatch.setenv("LIVECHAT_CREDENTIALS", str(path))
    monkeypatch.setenv("LIVECHAT_CONFIG", str(tmp_path / "none.yaml"))
    return path


class FakeAuthApi:
    calls = []

    def __init__(self, base_url, timeout=10.0):
        self.base_url = base_url

    def login(self, email, password):
        self.calls.append(("login", email))
        if password == "wrongpw":
            raise AuthApiError("Login failed")
        return LoginResult(token="t1", username="bob", message="Welcome")

    def register(self, email, username, password):
        self.calls.append(("register", username))
        return "User registered"


@pytest.fixture(autouse=True)
def fake_api(monkeypatch):
    FakeAuthApi.calls = []
    monkeypatch.setattr(chat_cli, "AuthApiClient", FakeAuthApi)


def test_login_stores_credentials(creds_path):
    result = runner.invoke(chat_cli.app, ["login", "--email", "bob@example.com", "--password", "secret1"])
    assert result.exit_code == 0, result.output
    assert "Welcome" in result.output
    stored = CredentialStore(creds_path).get()
    assert stored.token == "t1" and stored.username == "bob"


def test_login_failure_leaves_store_empty(creds_path):
    result = runner.invoke(chat_cli.app, ["login", "--email", "bob@example.com", "--password", "wrongpw"])
    assert result.exit_code == 1
    assert "Login failed" in result.output
    assert CredentialStore(creds_path).get() is None


def test_invalid_form_never_reaches_api(creds_path):
    result = runner.invoke(chat_cli.app, ["register", "--email", "bob@example.com",
                                          "--username", "bo", "--password", "secret1"])
    assert result.exit_code == 1
    assert "at least 4" in result.output
    assert FakeAuthApi.calls == []


def test_register(creds_path):
    result = runner.invoke(chat_cli.app, ["register", "--email", "carol@example.com",
                                          "--username", "carol", "--password", "secret1"])
    assert result.exit_code == 0
    assert "User registered" in result.output
    assert FakeAuthApi.calls == [("register", "carol")]


def test_logout_clears_credentials(creds_path):
    CredentialStore(creds_path).set("t1", "bob")
    result = runner.invoke(chat_cli.app, ["logout"])
    assert result.exit_code == 0
    assert CredentialStore(creds_path).get() is None


def test_chat_requires_login(creds_path):
    result = runner.invoke(chat_cli.app, ["chat"])
    assert result.exit_code == 1
    assert "Not logged in" in result.output


def test_renderer_formats_entries():
    console = Console(record=True, width=120)
    renderer = chat_cli.TranscriptRenderer(console, "bob")

    renderer("replace", (ChatMessage("alice", "hi [there]", "2024-01-01T00:00:00Z"),))
    renderer("append", (ChatMessage("bob", "yo", "2024-01-01T00:00:05Z"),))
    renderer("append", (SystemNotice.left("alice"),))
    renderer.status(Session(token="t1", username="bob",
                            connection_state=ConnectionState.AUTHENTICATED, authenticated=True))

    text = console.export_text()
    assert "alice: hi [there]" in text
    assert "bob: yo" in text
    assert "System: alice left the chat." in text
    assert "Welcome bob" in text


def _never_answers():
    blocked = asyncio.Event()

    async def read_line(prompt):
        await blocked.wait()
        return ""

    return read_line


def _scripted(*lines):
    pending = list(lines)

    async def read_line(prompt):
        if pending:
            return pending.pop(0)
        await asyncio.Event().wait()

    return read_line


@pytest.mark.asyncio
async def test_chat_loop_returns_when_server_closes(fake_ws, connector, creds_path):
    client = ClientSession("ws://chat.test:8000", token="t1", username="bob", connector=connector)
    await client.connect()
    loop = asyncio.create_task(chat_cli.chat_loop(client, CredentialStore(creds_path), read_line=_never_answers()))

    await asyncio.sleep(0.02)
    fake_ws.drop()
    await asyncio.wait_for(loop, timeout=2)

    assert client.session.connection_state is ConnectionState.DISCONNECTED
    assert client.websocket is None


@pytest.mark.asyncio
async def test_chat_loop_sends_lines_until_quit(fake_ws, connector, creds_path):
    client = ClientSession("ws://chat.test:8000", token="t1", username="bob", connector=connector)
    await client.connect()

    await asyncio.wait_for(
        chat_cli.chat_loop(client, CredentialStore(creds_path), read_line=_scripted("hello", "  ", "/quit")),
        timeout=2,
    )

    assert fake_ws.sent()[1:] == [{"type": "message", "text": "hello"}]
    assert client.is_open()
    await client.close()


@pytest.mark.asyncio
async def test_chat_loop_logout_forgets_token(fake_ws, connector, creds_path):
    store = CredentialStore(creds_path)
    store.set("t1", "bob")
    client = ClientSession("ws://chat.test:8000", token="t1", username="bob", connector=connector)
    await client.connect()

    await asyncio.wait_for(chat_cli.chat_loop(client, store, read_line=_scripted("/logout")), timeout=2)

    assert store.get() is None
    await client.close()
