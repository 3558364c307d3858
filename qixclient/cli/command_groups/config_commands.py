"""config-show / config-init commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qixclient.cli.shared.engine_utils import cli_state, format_cli_error, load_cli_config
from qixclient.config.loader import get_config_path, save_config
from qixclient.utils.exceptions import QixClientError


def mask_secret(value: str) -> str:
    """Keep the last four characters of a credential."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def register_config_commands(app: typer.Typer, console: Console) -> None:
    """Register config-show and config-init."""

    @app.command("config-show")
    def config_show(ctx: typer.Context) -> None:
        """Show the effective configuration (file, then QLIK_* environment)."""
        path = cli_state(ctx).config_path or get_config_path()
        try:
            cfg = load_cli_config(ctx)
        except (QixClientError, ValueError) as exc:
            console.print(f"[red]{escape(format_cli_error(exc))}[/red]")
            raise typer.Exit(1)

        console.print(f"Config: {escape(str(path))} {'[green]✓[/green]' if path.exists() else '[dim](not found)[/dim]'}")
        table = Table(show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        table.add_row("apiKey", mask_secret(cfg.api_key) or "[dim]not set[/dim]")
        table.add_row("tenantUrl", escape(cfg.tenant_url) or "[dim]not set[/dim]")
        table.add_row("connectionId", escape(cfg.connection_id or "") or "[dim]not set[/dim]")
        for name, value in cfg.engine.model_dump().items():
            table.add_row(f"engine.{name}", escape(str(value)))
        console.print(table)

    @app.command("config-init")
    def config_init(
        ctx: typer.Context,
        api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True, help="Qlik API key"),
        tenant_url: str = typer.Option(..., "--tenant-url", prompt=True, help="Tenant URL, e.g. https://tenant.eu.qlikcloud.com"),
    ) -> None:
        """Write API key and tenant URL to the config file."""
        path = cli_state(ctx).config_path or get_config_path()
        try:
            cfg = load_cli_config(ctx).merge(api_key=api_key.strip(), tenant_url=tenant_url.strip())
            cfg.validate_settings()
        except (QixClientError, ValueError) as exc:
            console.print(f"[red]{escape(format_cli_error(exc))}[/red]")
            raise typer.Exit(1)
        save_config(cfg, path)
        console.print(f"[green]✓[/green] Saved config to {escape(str(path))}")
