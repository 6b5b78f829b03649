"""Common behaviour of the mutable reference cells.

Validators and watches work the same for every cell type, so they live
here. Subclasses decide how a new value is published.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Hashable

from core.errors import ValidationError
from core.interfaces.reference import WatchFn
from core.log import get_logger

logger = get_logger(__name__)

Validator = Callable[[Any], Any]


class Reference:
    """Stable identity around a value that is replaced over time."""

    def __init__(self, value: Any = None, *, validator: Validator | None = None) -> None:
        self._value = value
        self._validator: Validator | None = None
        self._watches: dict[Hashable, WatchFn] = {}
        self._watch_lock = threading.Lock()
        if validator is not None:
            self.set_validator(validator)

    def deref(self) -> Any:
        return self._value

    @property
    def value(self) -> Any:
        return self.deref()

    def _validate(self, new: Any) -> None:
        validator = self._validator
        if validator is None:
            return
        try:
            ok = validator(new)
        except Exception as exc:
            raise ValidationError(f"validator rejected {new!r}: {exc}") from exc
        if not ok:
            raise ValidationError(f"invalid reference state: {new!r}")

    def set_validator(self, fn: Validator | None) -> None:
        """Install ``fn`` as validator; it must accept the current value."""

        if fn is not None:
            previous, self._validator = self._validator, fn
            try:
                self._validate(self._value)
            except ValidationError:
                self._validator = previous
                raise
        else:
            self._validator = None

    def get_validator(self) -> Validator | None:
        return self._validator

    def add_watch(self, key: Hashable, fn: WatchFn) -> "Reference":
        with self._watch_lock:
            # Copy-on-write: notifications iterate a stable snapshot.
            watches = dict(self._watches)
            watches[key] = fn
            self._watches = watches
        return self

    def remove_watch(self, key: Hashable) -> "Reference":
        with self._watch_lock:
            if key in self._watches:
                watches = dict(self._watches)
                del watches[key]
                self._watches = watches
        return self

    def get_watches(self) -> dict[Hashable, WatchFn]:
        return dict(self._watches)

    def _notify_watches(self, old: Any, new: Any) -> None:
        for key, fn in self._watches.items():
            try:
                fn(key, self, old, new)
            except Exception:
                logger.exception("watch_failed", watch=repr(key), reference=type(self).__name__)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._value!r}>"
