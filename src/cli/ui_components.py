"""Componentes de UI para CLI (Rich).

Reglas:
- Los comandos no construyen tablas/paneles directamente.
- Nada de esto escribe en stdout: los documentos se imprimen aparte.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from core.config import AppSettings, DocumentFormat
from core.services.edit_pipeline import EditResult
from core.services.functions import UpdateFunction


def build_document_view(text: str, fmt: DocumentFormat) -> Syntax:
    """Resaltado de sintaxis para documentos impresos en terminal."""

    return Syntax(text.rstrip("\n"), fmt.value, theme="ansi_dark", word_wrap=True)


def build_functions_table(functions: list[UpdateFunction]) -> Table:
    table = Table(title="Update functions")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Arguments", style="magenta")
    table.add_column("Description", style="white")
    for fn in functions:
        table.add_row(fn.name, fn.arity or "-", fn.help)
    return table


def build_result_panel(result: EditResult, *, target: str) -> Panel:
    """Resumen de un `apply` (ediciones aplicadas / omitidas)."""

    body = Text()
    body.append(f"Applied: {result.applied}\n", style="green")
    body.append(f"Skipped: {result.failed}", style="yellow" if result.failed else "dim")
    return Panel(body, title=Text(target, style="bold cyan"), border_style="cyan")


def build_settings_table(settings: AppSettings, *, env_file: str) -> Table:
    table = Table(title="mapkit doctor")
    table.add_column("Setting", style="bright_green", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_column("Details", style="dim")

    fields: dict[str, Any] = settings.model_dump(mode="json")
    for name, value in fields.items():
        description = type(settings).model_fields[name].description or ""
        table.add_row(f"MAPKIT_{name.upper()}", str(value), description)
    table.add_row("user .env", env_file, "Persisted with `mapkit doctor set`")
    return table


def print_error(console: Console, message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)
