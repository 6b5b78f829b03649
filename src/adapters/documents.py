"""Lectura y escritura de documentos JSON/YAML.

Reglas:
- El formato sale del argumento explícito, luego de la extensión (o del
  content-type en URLs) y por último de `AppSettings.default_format`.
- Cualquier fallo de I/O o de parseo se reporta como `DocumentError`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import yaml

from adapters.http_client import fetch_text, is_url
from core.config import AppSettings, DocumentFormat, get_settings
from core.errors import DocumentError
from core.log import get_logger

logger = get_logger(__name__)


def detect_format(
    source: str | Path,
    fmt: DocumentFormat | str | None = None,
    *,
    content_type: str | None = None,
    settings: AppSettings | None = None,
) -> DocumentFormat:
    if fmt is not None:
        return DocumentFormat(fmt)
    settings = settings or get_settings()
    if content_type and "yaml" in content_type.lower():
        return DocumentFormat.YAML
    if content_type and "json" in content_type.lower():
        return DocumentFormat.JSON
    suffix = Path(str(source).split("?", 1)[0]).suffix
    return DocumentFormat.from_suffix(suffix, default=settings.default_format)


def parse_document(text: str, fmt: DocumentFormat | str) -> Any:
    """Parsea `text` en el formato indicado."""

    fmt = DocumentFormat(fmt)
    try:
        if fmt == DocumentFormat.YAML:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise DocumentError(f"invalid {fmt.value} document: {exc}") from exc


def load_document(
    source: str | Path,
    fmt: DocumentFormat | str | None = None,
    *,
    settings: AppSettings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Any:
    """Carga un documento desde un path local o una URL http(s)."""

    settings = settings or get_settings()
    if isinstance(source, str) and is_url(source):
        logger.debug("document_fetch", url=source)
        try:
            text, content_type = fetch_text(source, settings=settings, transport=transport)
        except httpx.HTTPError as exc:
            raise DocumentError(f"could not fetch {source}: {exc}") from exc
        return parse_document(text, detect_format(source, fmt, content_type=content_type, settings=settings))

    path = Path(source)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DocumentError(f"could not read {path}: {exc.strerror or exc}") from exc
    return parse_document(text, detect_format(path, fmt, settings=settings))


def dump_document(data: Any, fmt: DocumentFormat | str = DocumentFormat.JSON, *, indent: int = 2) -> str:
    """Serializa `data` con formato estable (UTF-8, orden de inserción)."""

    fmt = DocumentFormat(fmt)
    try:
        if fmt == DocumentFormat.YAML:
            return yaml.safe_dump(
                data,
                allow_unicode=True,
                sort_keys=False,
                indent=max(indent, 2),
                default_flow_style=False,
            )
        return json.dumps(data, ensure_ascii=False, indent=indent or None) + "\n"
    except (TypeError, ValueError, yaml.YAMLError) as exc:
        raise DocumentError(f"cannot serialize document as {fmt.value}: {exc}") from exc


def write_document(
    data: Any,
    output_path: Path,
    fmt: DocumentFormat | str | None = None,
    *,
    settings: AppSettings | None = None,
) -> Path:
    """Escribe el documento en UTF-8 creando directorios intermedios."""

    settings = settings or get_settings()
    fmt = detect_format(output_path, fmt, settings=settings)
    text = dump_document(data, fmt, indent=settings.indent)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise DocumentError(f"could not write {output_path}: {exc.strerror or exc}") from exc
    logger.debug("document_written", path=str(output_path), format=fmt.value)
    return output_path
