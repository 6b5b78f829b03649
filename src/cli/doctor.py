"""Doctor command for environment diagnostics."""

from __future__ import annotations

from typing import Optional

import httpx
import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from adapters.http_client import build_client
from cli.ui_components import build_settings_table
from core.config import AppSettings, get_user_env_file, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console(stderr=True)


def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        with build_client(settings) as client:
            response = client.get(url)
        return True, f"HTTP {response.status_code}"
    except httpx.HTTPError as exc:
        return False, str(exc)


@app.command()
def run(
    url: Optional[str] = typer.Option(None, "--url", help="Also check that this URL can be fetched."),
) -> None:
    """Show the effective configuration and optional connectivity."""

    settings = AppSettings()
    table = build_settings_table(settings, env_file=str(get_user_env_file()))

    if url:
        ok_http, detail_http = _check_http(url, settings)
        table.add_row("HTTP connectivity", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)


@app.command(name="set")
def set_values(
    pairs: list[str] = typer.Argument(..., help="NAME=VALUE pairs, e.g. indent=4 or MAPKIT_LOG_LEVEL=DEBUG."),
) -> None:
    """Persist settings in the user config .env."""

    fields = AppSettings.model_fields
    updates: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise typer.BadParameter(f"expected NAME=VALUE, got {pair!r}")
        name, value = pair.split("=", 1)
        name = name.strip().lower().removeprefix("mapkit_")
        if name not in fields:
            raise typer.BadParameter(f"unknown setting {name!r} (known: {', '.join(sorted(fields))})")
        updates[name] = value.strip()

    try:
        AppSettings(**updates)
    except PydanticValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    env_path = write_user_env_vars({f"MAPKIT_{k.upper()}": v for k, v in updates.items()})
    _console.print(f"[green]Saved config to:[/green] {env_path}")
