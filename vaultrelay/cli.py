# vaultrelay/cli.py

"""Command line entry points: keygen, relay, chat."""

import logging

import click
from rich.console import Console
from rich.markup import escape

from vaultrelay.core import config
from vaultrelay.core.errors import KeyFormatError
from vaultrelay.core.key import Key
from vaultrelay.utils.logger import setup_logger

console = Console()
logger = logging.getLogger(__name__)


def _parse_room_key(ctx, param, value: str) -> Key:
    try:
        return Key.from_hex(value)
    except KeyFormatError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.option("--log-level", default=config.LOG_LEVEL, show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(log_level: str):
    """VaultRelay: shared-key chat rooms over an untrusted relay."""
    setup_logger(log_level)


@main.command()
def keygen():
    """Print a fresh room key (64 hex characters).

    Hand it to every room member out of band.
    """
    click.echo(Key.generate().hex())


@main.command()
@click.option("--host", default=config.RELAY_HOST, show_default=True)
@click.option("--port", default=config.RELAY_PORT, show_default=True, type=int)
@click.option("--store", default=config.STORE, show_default=True,
              type=click.Choice(["memory", "sql"]), help="Backing store for the log.")
@click.option("--database-url", default=config.DATABASE_URL, show_default=True,
              help="SQLAlchemy URL used with --store sql.")
def relay(host: str, port: int, store: str, database_url: str):
    """Run the relay HTTP service (GET /fetch/{index}, POST /submit)."""
    import uvicorn

    from vaultrelay.infra.database import build_engine, check_connection
    from vaultrelay.main import app
    from vaultrelay.services.relay_log import InMemoryRelayLog, SqlRelayLog
    from vaultrelay.services.relay_service import get_relay_log

    if store == "sql":
        engine = build_engine(database_url)
        if not check_connection(engine):
            raise click.ClickException(f"cannot reach database at {database_url}")
        relay_log = SqlRelayLog.from_engine(engine)
    else:
        relay_log = InMemoryRelayLog()
    app.dependency_overrides[get_relay_log] = lambda: relay_log

    logger.info("Relay store: %s (%d entries)", store, len(relay_log))
    uvicorn.run(app, host=host, port=port, log_config=None)


@main.command()
@click.argument("room", callback=_parse_room_key)
@click.argument("name")
@click.option("--relay-url", default=config.RELAY_URL, show_default=True,
              help="Relay base URL (fetch and submit).")
@click.option("--tor/--no-tor", default=config.USE_TOR, show_default=True,
              help="Route traffic through the Tor SOCKS proxy.")
@click.option("--delays/--no-delays", default=True, show_default=True,
              help="Random delay before each submission.")
@click.option("--interval", default=config.FETCH_INTERVAL, show_default=True, type=float,
              help="Seconds between fetches.")
@click.option("--padded-size", default=config.PADDED_MESSAGE_SIZE, show_default=True,
              type=click.IntRange(min=0), help="Pad plaintexts to multiples of this size.")
def chat(room: Key, name: str, relay_url: str, tor: bool, delays: bool,
         interval: float, padded_size: int):
    """Join the room defined by ROOM (hex key) as NAME.

    Type a line and press enter to send it. /quit leaves.
    """
    from vaultrelay.clients.fetcher import HttpRelayFetcher
    from vaultrelay.clients.sync_client import SyncClient
    from vaultrelay.clients.transport import TorHttpTransport
    from vaultrelay.core.crypto import CryptoCodec
    from vaultrelay.ui.console import ConsoleUI

    transport = TorHttpTransport(use_tor=tor, enable_delays=delays)
    fetcher = HttpRelayFetcher(relay_url, session=transport.session)

    client = None
    ui = ConsoleUI(outgoing=lambda text: client.submit(text), console=console)
    client = SyncClient(
        key=room,
        name=name,
        transport=transport,
        fetcher=fetcher,
        destination=relay_url,
        on_message=ui.on_message,
        codec=CryptoCodec(padded_size=padded_size),
        fetch_interval=interval,
        on_send_error=lambda body, e: ui.notice(f"not sent: {e}"),
    )

    console.print(f"[green]Joined[/] as [cyan]{escape(name)}[/] via {escape(relay_url)}. /quit to leave.")
    with client:
        ui.run()
