"""
Command line entry point for the tracker node.

    tracker-node run [--log-level INFO] [--cycles N]
    tracker-node networks
"""
import logging
from typing import Annotated, Optional

import typer

from .credentials import LocalCredentialStore
from .runner import TrackerNode
from .settings import NodeSettings

LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)-7s %(module)s %(message)s'
LOG_DATE_FORMAT = '%Y%m%d-%H:%M:%S'

app = typer.Typer(
    help="GPS tracker node: report position to the hub and keep WiFi up.",
    add_completion=False,
    no_args_is_help=True,
)


@app.command()
def run(
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Logging level")] = "INFO",
    cycles: Annotated[Optional[int], typer.Option(help="Stop after this many cycles (default: run forever)")] = None,
) -> None:
    """Run the acquisition, connectivity and reporting loop."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        typer.echo(f"Unknown log level: {log_level}", err=True)
        raise typer.Exit(code=2)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    settings = NodeSettings.from_env()
    if not settings.api_key:
        logging.getLogger(__name__).warning("API_KEY is not set; the hub will reject every packet")

    node = TrackerNode.from_settings(settings)
    try:
        node.run(max_cycles=cycles)
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@app.command()
def networks() -> None:
    """List the SSIDs of the cached WiFi networks."""
    settings = NodeSettings.from_env()
    saved = LocalCredentialStore(settings.credentials_file).load()
    if not saved:
        typer.echo("No saved networks.")
        return
    for index, network in enumerate(saved, start=1):
        typer.echo(f"{index}. {network.ssid}")


if __name__ == '__main__':
    app()
