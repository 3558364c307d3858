"""CLI commands for qixclient.

One entry point that registers the engine commands (sheets, objects, layout,
data, eval, select) and the config commands (config-show, config-init).
Every engine command opens one document, does its work and disconnects.
"""

from pathlib import Path

import typer
from rich.console import Console

from qixclient import __logo__, __version__
from qixclient.cli.command_groups.config_commands import register_config_commands
from qixclient.cli.command_groups.engine_commands import register_engine_commands
from qixclient.cli.shared.engine_utils import CliState
from qixclient.cli.shared.logging_utils import configure_cli_logging

app = typer.Typer(
    name="qixclient",
    help=f"{__logo__} qixclient - Qlik engine explorer",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} qixclient v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Config file (default ~/.qixclient/config.json)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
) -> None:
    """qixclient - explore Qlik documents over the engine websocket API."""
    configure_cli_logging(verbose)
    ctx.obj = CliState(config_path=config.expanduser() if config else None, verbose=verbose)


register_engine_commands(app, console)
register_config_commands(app, console)


if __name__ == "__main__":
    app()
