"""Errores del Core.

Reglas:
- Todas las excepciones propias heredan de `MapkitError` para que la CLI
  pueda capturarlas en un único punto.
- Cada error hereda también de la excepción estándar más cercana
  (`TypeError`, `LookupError`, `ValueError`), así el código cliente que ya
  captura esas excepciones sigue funcionando.
"""

from __future__ import annotations

from typing import Any


class MapkitError(Exception):
    """Base de todos los errores de mapkit."""


class ArityError(MapkitError, TypeError):
    """Número de argumentos inválido (p.ej. pares clave/valor incompletos)."""


class PathError(MapkitError, LookupError):
    """Un key path no se puede recorrer o está vacío."""

    def __init__(self, message: str, *, path: tuple[Any, ...] = (), depth: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.depth = depth


class ValidationError(MapkitError, ValueError):
    """Un validador rechazó el nuevo estado de una referencia."""


class TransactionError(MapkitError):
    """Operación de `Ref` fuera de una transacción o transacción inválida."""


class RetryLimitExceeded(TransactionError):
    """Una transacción superó el número máximo de reintentos."""


class AgentError(MapkitError):
    """Un agente está en estado de error y no acepta acciones."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class DocumentError(MapkitError):
    """No se pudo leer, parsear o escribir un documento JSON/YAML."""


class UnknownFunctionError(MapkitError, LookupError):
    """Nombre de función de actualización no registrado."""
