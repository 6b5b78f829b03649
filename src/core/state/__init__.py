"""Celdas de estado mutable sobre valores inmutables.

- `Atom`: cambios síncronos e independientes (compare-and-set).
- `Ref` + `dosync`: cambios coordinados en transacciones.
- `Agent`: cambios asíncronos encolados.
"""

from typing import Any

from core.interfaces.reference import Derefable
from core.state.agent import Agent, await_for, current_agent, shutdown_agents
from core.state.atom import Atom
from core.state.base import Reference
from core.state.ref import Ref, current_transaction, dosync, in_transaction


def deref(value: Any) -> Any:
    """Valor actual de una referencia; cualquier otro objeto se devuelve tal cual."""

    if isinstance(value, Derefable):
        return value.deref()
    return value


__all__ = [
    "Agent",
    "Atom",
    "Ref",
    "Reference",
    "await_for",
    "current_agent",
    "current_transaction",
    "deref",
    "dosync",
    "in_transaction",
    "shutdown_agents",
]
