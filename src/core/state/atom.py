"""Atom: independent, synchronous, uncoordinated state."""

from __future__ import annotations

import threading
from typing import Any, Callable

from core.state.base import Reference, Validator


class Atom(Reference):
    """A cell changed through compare-and-set.

    ``swap`` may call its function more than once when other threads change
    the atom concurrently, so the function must be free of side effects.
    """

    def __init__(self, value: Any = None, *, validator: Validator | None = None) -> None:
        self._lock = threading.Lock()
        super().__init__(value, validator=validator)

    def compare_and_set(self, old: Any, new: Any) -> bool:
        """Set ``new`` only if the current value *is* ``old`` (identity)."""

        self._validate(new)
        with self._lock:
            if self._value is not old:
                return False
            self._value = new
        self._notify_watches(old, new)
        return True

    def swap_vals(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> tuple[Any, Any]:
        while True:
            old = self._value
            new = fn(old, *args, **kwargs)
            if self.compare_and_set(old, new):
                return old, new

    def swap(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Atomically replace the value with ``fn(current, *args, **kwargs)``."""

        return self.swap_vals(fn, *args, **kwargs)[1]

    def reset_vals(self, new: Any) -> tuple[Any, Any]:
        self._validate(new)
        with self._lock:
            old = self._value
            self._value = new
        self._notify_watches(old, new)
        return old, new

    def reset(self, new: Any) -> Any:
        return self.reset_vals(new)[1]
