#!/usr/bin/env python3

from __future__ import annotations
import asyncio
from contextlib import suppress
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

import aioconsole
import typer
from rich.console import Console
from rich.markup import escape

from chatshared.config import ClientConfig, ConfigError, load_config
from chatshared.envelope import TransportError
from chatshared.log import get_logger
from chatshared.utils import CredentialError, local_clock, validate_credentials
from .auth_api import AuthApiClient, AuthApiError
from .credentials import CredentialStore
from .state import ConnectionState, Session
from .transcript import SYSTEM_USERNAME, TranscriptEntry
from .ws_client import ClientSession

app = typer.Typer(help="Live chat client")
console = Console()
logger = get_logger(__name__)

HELP_TEXT = "/help, /logout, /quit - anything else is sent to the room"


def _config(config_file: Optional[Path], **overrides) -> ClientConfig:
    try:
        return load_config(config_file).with_overrides(**overrides)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=2)


class TranscriptRenderer:
    """Prints transcript changes; history redraws everything, appends print one line."""

    def __init__(self, console: Console, username: str) -> None:
        self.console = console
        self.username = username

    def __call__(self, kind: str, entries: Tuple[TranscriptEntry, ...]) -> None:
        if kind == "replace":
            self.console.rule("history")
        for entry in entries:
            self.console.print(self.format(entry))

    def format(self, entry: TranscriptEntry) -> str:
        clock = local_clock(entry.created_at)
        line = f"[dim]{clock}[/] [bold]{escape(entry.username)}:[/] {escape(entry.text)}"
        if entry.username == SYSTEM_USERNAME:
            return f"[dim]{line}[/]"
        if entry.username == self.username:
            return f"[green]{line}[/]"
        return line

    def status(self, session: Session) -> None:
        if session.connection_state is ConnectionState.AUTHENTICATED:
            self.console.print(f"[bold green]Welcome {escape(session.username)}[/]")
        elif session.connection_state is ConnectionState.DISCONNECTED:
            self.console.print("[yellow]Disconnected[/]")


async def chat_loop(
    client: ClientSession,
    store: CredentialStore,
    read_line: Callable[[str], Awaitable[str]] = aioconsole.ainput,
) -> None:
    """
    Read input lines until the user quits or the connection drops.

    Input is raced against the session's processing loop so a server-side
    close leaves the chat view without waiting for another keystroke.
    """
    consumer = asyncio.create_task(client.run())
    reader: Optional[asyncio.Task] = None
    try:
        while True:
            reader = asyncio.ensure_future(read_line(""))
            done, _ = await asyncio.wait({reader, consumer}, return_when=asyncio.FIRST_COMPLETED)
            if reader not in done:
                break
            line = reader.result().strip()
            reader = None
            if not line:
                continue
            if line in {"/quit", "/exit"}:
                break
            if line == "/logout":
                store.logout()
                break
            if line == "/help":
                console.print(HELP_TEXT)
                continue
            await client.send_message(line)
    finally:
        for task in (reader, consumer):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task


@app.command()
def register(
    email: str = typer.Option(..., prompt=True),
    username: str = typer.Option(..., prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    api_url: Optional[str] = typer.Option(None, help="Base URL of the auth API"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Create an account."""
    config = _config(config_file, api_url=api_url)
    try:
        validate_credentials(email, password, username=username, registering=True)
        message = AuthApiClient(config.api_url, timeout=config.http_timeout).register(email, username, password)
    except (CredentialError, AuthApiError) as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=1)
    console.print(f"[green]{escape(message or 'Registered')}[/]")


@app.command()
def login(
    email: str = typer.Option(..., prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    api_url: Optional[str] = typer.Option(None, help="Base URL of the auth API"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Log in and store the session token."""
    config = _config(config_file, api_url=api_url)
    try:
        validate_credentials(email, password)
        result = AuthApiClient(config.api_url, timeout=config.http_timeout).login(email, password)
    except (CredentialError, AuthApiError) as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=1)
    CredentialStore(config.credentials_path).set(result.token, result.username)
    console.print(f"[green]{escape(result.message or 'Logged in')}[/] as {escape(result.username)}")


@app.command()
def logout(
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Forget the stored session token."""
    config = _config(config_file)
    CredentialStore(config.credentials_path).logout()
    console.print("Logged out")


@app.command()
def chat(
    server: Optional[str] = typer.Option(None, help="WebSocket URL of the chat server"),
    config_file: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Join the room with the stored token."""
    config = _config(config_file, server_ws_url=server)
    store = CredentialStore(config.credentials_path)
    creds = store.get()
    if creds is None:
        console.print("[red]Not logged in.[/] Run `livechat login` first.")
        raise typer.Exit(code=1)

    async def main_loop() -> None:
        client = ClientSession(
            config.server_ws_url,
            token=creds.token,
            username=creds.username,
            queue_size=config.inbound_queue_size,
            ping_interval=config.ping_interval,
            ping_timeout=config.ping_timeout,
        )
        renderer = TranscriptRenderer(console, creds.username)
        client.transcript.subscribe(renderer)
        client.on_session_change(renderer.status)

        async with client:
            console.print(f"[bold green]Live chat[/] on {escape(config.server_ws_url)} - {HELP_TEXT}")
            await chat_loop(client, store)

    try:
        asyncio.run(main_loop())
    except TransportError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(code=1)
    except (KeyboardInterrupt, EOFError):
        pass


def main() -> None:
    app()


if __name__ == "__main__":
    main()
