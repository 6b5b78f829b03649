"""Carga de scripts de edición (JSON/YAML).

Formato:
- `{"edits": [{"op": "assoc_in", "path": "a.b", "value": 1}, ...]}`
- Una lista plana `[...]` se acepta como atajo de `{"edits": [...]}`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from adapters.documents import load_document
from core.config import DocumentFormat
from core.domain.models import EditScript
from core.errors import DocumentError


def load_edit_script(path: Path | str, fmt: DocumentFormat | str | None = None) -> EditScript:
    data = load_document(path, fmt)
    if isinstance(data, list):
        data = {"edits": data}
    try:
        return EditScript.model_validate(data)
    except PydanticValidationError as exc:
        raise DocumentError(f"invalid edit script {path}: {exc}") from exc
