"""Helpers shared by the engine commands: config resolution, error output, JSON rendering."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from qixclient.cli.shared.logging_utils import ensure_rotating_log_file
from qixclient.config.access import get_config
from qixclient.config.schema import Config
from qixclient.utils.exceptions import QixClientError, classify_exception, sanitize_error_message

T = TypeVar("T")


@dataclass
class CliState:
    """Global options, stored on the typer context by the root callback."""

    config_path: Path | None = None
    verbose: bool = False


def cli_state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    return state if isinstance(state, CliState) else CliState()


def format_cli_error(exc: BaseException) -> str:
    """``CODE: message`` with credentials scrubbed."""
    code, _, _ = classify_exception(exc)
    message = exc.message if isinstance(exc, QixClientError) else (str(exc) or type(exc).__name__)
    return f"{code}: {sanitize_error_message(message)}"


def load_cli_config(ctx: typer.Context) -> Config:
    return get_config(config_path=cli_state(ctx).config_path)


def run_engine_command(
    ctx: typer.Context,
    console: Console,
    name: str,
    action: Callable[[Config], Awaitable[T]],
) -> T:
    """Load config, run ``action`` on a fresh event loop, exit 1 on failure."""
    ensure_rotating_log_file(name)
    try:
        config = load_cli_config(ctx)
        return asyncio.run(action(config))
    except (QixClientError, ValueError, OSError) as exc:
        detail = format_cli_error(exc)
        logger.error(f"{name} failed: {detail}")
        console.print(f"[red]{escape(detail)}[/red]", highlight=False)
        raise typer.Exit(1)


def print_json(console: Console, value: Any) -> None:
    console.print(
        json.dumps(value, indent=2, ensure_ascii=False, default=str),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )
