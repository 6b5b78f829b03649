"""CLI de mapkit (Typer).

Reglas:
- Los comandos solo parsean argumentos, delegan en `core.services` y
  presentan el resultado.
- stdout recibe únicamente el documento resultante; mensajes y logs van a
  stderr para poder encadenar comandos con pipes.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape

from adapters.documents import detect_format, dump_document, load_document, write_document
from adapters.edit_scripts import load_edit_script
from adapters.http_client import is_url
from cli import doctor
from cli.ui_components import (
    build_document_view,
    build_functions_table,
    build_result_panel,
    print_error,
)
from core.config import DocumentFormat, get_settings
from core.domain.models import Edit, EditOp, KeyPath
from core.errors import MapkitError
from core.log import configure_logging
from core.services import maps
from core.services.edit_pipeline import EditRequest, PipelineHooks, apply_edits, parse_path
from core.services.functions import list_functions

app = typer.Typer(
    no_args_is_help=True,
    help="Non-destructive edits of JSON/YAML documents: assoc, dissoc, assoc-in, update-in.",
)
app.add_typer(doctor.app, name="doctor")

_out = Console()
_err = Console(stderr=True)

_MISSING = object()


def _source_arg() -> Any:
    return typer.Argument(..., help="Document path or http(s) URL.")


def _output_opt() -> Any:
    return typer.Option(None, "--output", "-o", help="Write the result to this file instead of stdout.")


def _in_place_opt() -> Any:
    return typer.Option(False, "--in-place", "-i", help="Rewrite SOURCE with the result.")


def _format_opt() -> Any:
    return typer.Option(None, "--format", "-f", help="Force the document format (json/yaml).")


def _raw_opt() -> Any:
    return typer.Option(False, "--raw", help="Treat values as plain strings instead of JSON literals.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr."),
) -> None:
    settings = get_settings()
    if verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(settings, force=verbose)


def parse_value(text: str, *, raw: bool = False) -> Any:
    """Interpreta `text` como literal JSON; si no lo es, como string."""

    if raw:
        return text
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _key_path(text: str) -> KeyPath:
    try:
        return parse_path(text)
    except MapkitError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load(source: str, fmt: Optional[DocumentFormat]) -> Any:
    return load_document(source, fmt)


def _emit(
    document: Any,
    *,
    source: str,
    output: Optional[Path],
    in_place: bool,
    fmt: Optional[DocumentFormat],
) -> None:
    settings = get_settings()
    if in_place and output is not None:
        raise typer.BadParameter("use either --in-place or --output, not both")
    if in_place:
        if is_url(source):
            raise typer.BadParameter("--in-place needs a local file, not a URL")
        write_document(document, Path(source), fmt or detect_format(source))
        _err.print(f"[green]Updated:[/green] {source}", highlight=False)
        return
    if output is not None:
        write_document(document, output, fmt)
        _err.print(f"[green]Saved:[/green] {output}", highlight=False)
        return

    out_fmt = fmt or detect_format(source)
    text = dump_document(document, out_fmt, indent=settings.indent)
    if sys.stdout.isatty():
        _out.print(build_document_view(text, out_fmt))
    else:
        typer.echo(text, nl=not text.endswith("\n"))


def _run_edits(
    edits: list[Edit],
    *,
    source: str,
    output: Optional[Path],
    in_place: bool,
    fmt: Optional[DocumentFormat],
) -> None:
    try:
        document = _load(source, fmt)
        result = apply_edits(EditRequest(document=document, edits=edits, strict=True))
        _emit(result.document, source=source, output=output, in_place=in_place, fmt=fmt)
    except (MapkitError, TypeError, ValueError) as exc:
        print_error(_err, str(exc))
        raise typer.Exit(code=1) from exc


@app.command()
def get(
    source: str = _source_arg(),
    path: str = typer.Argument(..., help="Key path, e.g. a.b.0.c"),
    default: Optional[str] = typer.Option(None, "--default", "-d", help="Value printed when PATH is absent."),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Print the value stored at PATH."""

    try:
        document = _load(source, fmt)
        value = maps.get_in(document, parse_path(path), _MISSING)
    except MapkitError as exc:
        print_error(_err, str(exc))
        raise typer.Exit(code=1) from exc

    if value is _MISSING:
        if default is None:
            print_error(_err, f"nothing stored at {path!r}")
            raise typer.Exit(code=1)
        value = parse_value(default)
    typer.echo(dump_document(value, DocumentFormat.JSON, indent=get_settings().indent), nl=False)


@app.command()
def assoc(
    source: str = _source_arg(),
    pairs: list[str] = typer.Argument(..., help="KEY=VALUE pairs for top-level keys."),
    raw: bool = _raw_opt(),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Set top-level keys, leaving the others untouched."""

    edits: list[Edit] = []
    for pair in pairs:
        if "=" not in pair:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}")
        key, value = pair.split("=", 1)
        path = _key_path(key)
        if len(path.keys) != 1:
            raise typer.BadParameter(f"assoc takes top-level keys, got path {key!r}; use assoc-in")
        edits.append(Edit(op=EditOp.ASSOC, path=[path.leaf], value=parse_value(value, raw=raw)))
    _run_edits(edits, source=source, output=output, in_place=in_place, fmt=fmt)


@app.command()
def dissoc(
    source: str = _source_arg(),
    keys: list[str] = typer.Argument(..., help="Top-level keys to remove."),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Remove top-level keys."""

    edit = Edit(op=EditOp.DISSOC, keys=list(keys))
    _run_edits([edit], source=source, output=output, in_place=in_place, fmt=fmt)


@app.command(name="assoc-in")
def assoc_in(
    source: str = _source_arg(),
    path: str = typer.Argument(..., help="Key path, e.g. a.b.0.c"),
    value: str = typer.Argument(..., help="JSON literal (or string with --raw)."),
    raw: bool = _raw_opt(),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Set a nested value, creating missing levels."""

    edit = Edit(op=EditOp.ASSOC_IN, path=list(_key_path(path).keys), value=parse_value(value, raw=raw))
    _run_edits([edit], source=source, output=output, in_place=in_place, fmt=fmt)


@app.command(name="update-in")
def update_in(
    source: str = _source_arg(),
    path: str = typer.Argument(..., help="Key path, e.g. counters.visits"),
    fn: str = typer.Argument(..., help="Update function name (see `mapkit functions`)."),
    args: Optional[list[str]] = typer.Argument(None, help="Extra arguments for the function."),
    raw: bool = _raw_opt(),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Replace a nested value with FN(old, ARGS...)."""

    edit = Edit(
        op=EditOp.UPDATE_IN,
        path=list(_key_path(path).keys),
        fn=fn,
        args=[parse_value(a, raw=raw) for a in args or []],
    )
    _run_edits([edit], source=source, output=output, in_place=in_place, fmt=fmt)


@app.command(name="dissoc-in")
def dissoc_in(
    source: str = _source_arg(),
    path: str = typer.Argument(..., help="Key path of the value to remove."),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Remove a nested value."""

    edit = Edit(op=EditOp.DISSOC_IN, path=list(_key_path(path).keys))
    _run_edits([edit], source=source, output=output, in_place=in_place, fmt=fmt)


@app.command()
def merge(
    source: str = _source_arg(),
    others: list[str] = typer.Argument(..., help="Documents merged on top of SOURCE, left to right."),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Shallow-merge other documents into SOURCE (later keys win)."""

    try:
        edits = [Edit(op=EditOp.MERGE, value=load_document(other)) for other in others]
    except MapkitError as exc:
        print_error(_err, str(exc))
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        print_error(_err, f"merge needs mapping documents: {exc}")
        raise typer.Exit(code=1) from exc
    _run_edits(edits, source=source, output=output, in_place=in_place, fmt=fmt)


@app.command()
def apply(
    source: str = _source_arg(),
    script: Path = typer.Argument(..., help="Edit script (JSON/YAML) with an `edits` list."),
    lenient: bool = typer.Option(False, "--lenient", help="Skip failing edits instead of aborting."),
    output: Optional[Path] = _output_opt(),
    in_place: bool = _in_place_opt(),
    fmt: Optional[DocumentFormat] = _format_opt(),
) -> None:
    """Apply every edit of SCRIPT in order."""

    hooks = PipelineHooks(warning=lambda message: _err.print(f"[yellow]Warning:[/yellow] {escape(message)}"))
    try:
        edit_script = load_edit_script(script)
        document = _load(source, fmt)
        result = apply_edits(
            EditRequest(document=document, edits=edit_script.edits, strict=not lenient),
            hooks=hooks,
        )
        _emit(result.document, source=source, output=output, in_place=in_place, fmt=fmt)
    except (MapkitError, TypeError, ValueError) as exc:
        print_error(_err, str(exc))
        raise typer.Exit(code=1) from exc

    if result.failed:
        _err.print(build_result_panel(result, target=str(script)))


@app.command()
def functions() -> None:
    """List the update functions usable with update-in and edit scripts."""

    _out.print(build_functions_table(list_functions()))


def run() -> None:
    app()
