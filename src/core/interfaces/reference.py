"""Contratos de referencias mutables.

Una referencia da identidad estable a un valor inmutable que se reemplaza
con el tiempo. `Atom`, `Ref` y `Agent` cumplen ambos contratos.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable, Protocol, runtime_checkable

WatchFn = Callable[[Hashable, Any, Any, Any], None]


@runtime_checkable
class Derefable(Protocol):
    """Contrato mínimo: leer el valor actual."""

    def deref(self) -> Any:
        """Devuelve el valor actual (dentro de una transacción, el valor de la transacción)."""

        ...


@runtime_checkable
class Watchable(Protocol):
    """Referencias que notifican cambios a observadores.

    Reglas de diseño:
    - `fn(key, ref, old, new)` se invoca después de cada cambio.
    - `key` identifica al observador; registrar la misma clave lo reemplaza.
    """

    def add_watch(self, key: Hashable, fn: WatchFn) -> Any:
        ...

    def remove_watch(self, key: Hashable) -> Any:
        ...
