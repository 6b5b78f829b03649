"""Modelos del dominio (Pydantic v2).

Nota:
- Estos modelos describen *qué* edición se pide sobre un documento, no *cómo*
  se aplica. La semántica vive en `core.services.maps`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict

Key = Union[int, str]


class KeyPath(BaseModel):
    """Secuencia ordenada de claves que direcciona un valor anidado.

    Forma textual (CLI / scripts):
    - Segmentos separados por `separator` (por defecto `.`): `a.b.0.c`.
    - Un segmento formado solo por dígitos ASCII es un índice `int`.
    - `\\.` escapa el separador; `\\\\` es una barra literal.
    """

    model_config = ConfigDict(frozen=True)

    keys: tuple[Key, ...] = Field(
        ...,
        min_length=1,
        description="Claves en orden de recorrido (raíz primero).",
    )

    @classmethod
    def parse(cls, text: str, *, separator: str = ".") -> "KeyPath":
        """Parsea la forma textual de un key path."""

        if not text:
            raise ValueError("key path must not be empty")

        segments: list[str] = []
        current: list[str] = []
        i = 0
        while i < len(text):
            ch = text[i]
            if ch == "\\" and i + 1 < len(text):
                nxt = text[i + 1]
                if text.startswith(separator, i + 1):
                    current.append(separator)
                    i += 1 + len(separator)
                    continue
                if nxt == "\\":
                    current.append("\\")
                    i += 2
                    continue
            if text.startswith(separator, i):
                segments.append("".join(current))
                current = []
                i += len(separator)
                continue
            current.append(ch)
            i += 1
        segments.append("".join(current))

        return cls(keys=tuple(_coerce_segment(s) for s in segments))

    @classmethod
    def of(cls, value: "KeyPath | str | int | list[Key] | tuple[Key, ...]", *, separator: str = ".") -> "KeyPath":
        """Normaliza cualquier representación aceptada a `KeyPath`."""

        if isinstance(value, KeyPath):
            return value
        if isinstance(value, str):
            return cls.parse(value, separator=separator)
        if isinstance(value, int):
            return cls(keys=(value,))
        return cls(keys=tuple(value))

    def format(self, *, separator: str = ".") -> str:
        """Inverso de `parse` para claves representables como texto."""

        out: list[str] = []
        for key in self.keys:
            text = str(key).replace("\\", "\\\\").replace(separator, "\\" + separator)
            out.append(text)
        return separator.join(out)

    @property
    def parent(self) -> tuple[Key, ...]:
        return self.keys[:-1]

    @property
    def leaf(self) -> Key:
        return self.keys[-1]

    def __str__(self) -> str:
        return self.format()


def _coerce_segment(segment: str) -> Key:
    if segment.isdigit() and segment.isascii():
        return int(segment)
    return segment


class EditOp(str, Enum):
    """Operaciones admitidas en un script de edición."""

    ASSOC = "assoc"
    DISSOC = "dissoc"
    ASSOC_IN = "assoc_in"
    UPDATE_IN = "update_in"
    DISSOC_IN = "dissoc_in"
    MERGE = "merge"


class Edit(BaseModel):
    """Una operación de edición sobre un documento.

    Campos requeridos según `op`:
    - assoc: `path` de una sola clave + `value`
    - dissoc: `keys` (claves de primer nivel)
    - assoc_in: `path` + `value`
    - update_in: `path` + `fn` (+ `args`)
    - dissoc_in: `path`
    - merge: `value` (mapping)
    """

    model_config = ConfigDict(extra="forbid")

    op: EditOp = Field(..., description="Operación a aplicar.")
    path: str | list[Key] | None = Field(
        default=None,
        description="Key path textual (`a.b.0`) o lista de claves.",
    )
    keys: list[Key] = Field(
        default_factory=list,
        description="Claves a eliminar (solo `dissoc`).",
    )
    value: Any = Field(
        default=None,
        description="Valor a asociar o mapping a fusionar.",
    )
    fn: str | None = Field(
        default=None,
        min_length=1,
        description="Nombre de la función registrada para `update_in`.",
    )
    args: list[Any] = Field(
        default_factory=list,
        description="Argumentos extra para `fn`.",
    )

    @field_validator("path")
    @classmethod
    def _path_not_empty(cls, value: str | list[Key] | None) -> str | list[Key] | None:
        if value is not None and len(value) == 0:
            raise ValueError("path must not be empty")
        return value

    @model_validator(mode="after")
    def _check_required_fields(self) -> "Edit":
        op = self.op
        if op in (EditOp.ASSOC, EditOp.ASSOC_IN, EditOp.UPDATE_IN, EditOp.DISSOC_IN) and self.path is None:
            raise ValueError(f"'{op.value}' requires 'path'")
        if op == EditOp.UPDATE_IN and not self.fn:
            raise ValueError("'update_in' requires 'fn'")
        if op == EditOp.DISSOC and not self.keys:
            raise ValueError("'dissoc' requires 'keys'")
        if op == EditOp.MERGE and not isinstance(self.value, dict):
            raise ValueError("'merge' requires a mapping 'value'")
        return self

    def key_path(self, *, separator: str = ".") -> KeyPath:
        if self.path is None:
            raise ValueError(f"'{self.op.value}' edit has no path")
        return KeyPath.of(self.path, separator=separator)

    def describe(self) -> str:
        """Etiqueta corta para warnings y tablas."""

        if self.op == EditOp.DISSOC:
            return f"{self.op.value} {', '.join(str(k) for k in self.keys)}"
        if self.path is not None:
            target = self.path if isinstance(self.path, str) else ".".join(str(k) for k in self.path)
            return f"{self.op.value} {target}"
        return self.op.value


class EditScript(BaseModel):
    """Lista ordenada de ediciones (fichero JSON/YAML `{"edits": [...]}`)."""

    model_config = ConfigDict(extra="ignore")

    description: str | None = Field(
        default=None,
        description="Texto libre opcional.",
    )
    edits: list[Edit] = Field(
        default_factory=list,
        description="Ediciones aplicadas en orden.",
    )
