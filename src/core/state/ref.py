"""Ref: coordinated state changed inside transactions.

A transaction reads a consistent snapshot: every ref it touches must not
have been committed after the transaction started, otherwise the attempt is
abandoned and retried. At commit time all touched refs are locked in
creation order, their versions are checked against the ones first seen, and
new values are published under a single commit stamp.

Functions passed to ``dosync`` may run several times. Agent sends issued
inside a transaction are held back and dispatched once, after commit.
"""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable

from core.config import get_settings
from core.errors import RetryLimitExceeded, TransactionError
from core.log import get_logger
from core.state.base import Reference, Validator

logger = get_logger(__name__)

_ref_ids = itertools.count(1)
_local = threading.local()

_clock_lock = threading.Lock()
_clock = 0


def _now() -> int:
    return _clock


def _tick() -> int:
    global _clock
    with _clock_lock:
        _clock += 1
        return _clock


class _Retry(Exception):
    """Internal signal: the current attempt saw a conflicting commit."""


def current_transaction() -> "Transaction | None":
    return getattr(_local, "transaction", None)


def in_transaction() -> bool:
    return current_transaction() is not None


def _require_transaction(operation: str) -> "Transaction":
    tx = current_transaction()
    if tx is None:
        raise TransactionError(f"{operation} requires a running transaction (use dosync)")
    return tx


class Ref(Reference):
    """A cell whose changes are coordinated by :func:`dosync`."""

    def __init__(self, value: Any = None, *, validator: Validator | None = None) -> None:
        self._id = next(_ref_ids)
        self._version = 0
        self._lock = threading.RLock()
        super().__init__(value, validator=validator)

    def _read_committed(self) -> tuple[Any, int]:
        with self._lock:
            return self._value, self._version

    def deref(self) -> Any:
        tx = current_transaction()
        if tx is None:
            return self._value
        return tx.get(self)

    def ref_set(self, value: Any) -> Any:
        return _require_transaction("ref_set").set(self, value)

    def alter(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        tx = _require_transaction("alter")
        return tx.set(self, fn(tx.get(self), *args, **kwargs))

    def commute(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Apply a commutative change; ``fn`` is re-run on the latest value at commit."""

        return _require_transaction("commute").commute(self, fn, args, kwargs)

    def ensure(self) -> Any:
        """Protect the ref from concurrent change until the transaction commits."""

        return _require_transaction("ensure").ensure(self)

    def __repr__(self) -> str:
        return f"<Ref#{self._id} v{self._version} {self._value!r}>"


class Transaction:
    """Bookkeeping for one attempt of a ``dosync`` block."""

    def __init__(self, attempt: int = 1) -> None:
        self.attempt = attempt
        self.read_point = _now()
        self.values: dict[Ref, Any] = {}
        self.versions: dict[Ref, int] = {}
        self.sets: set[Ref] = set()
        self.ensures: set[Ref] = set()
        self.commutes: dict[Ref, list[tuple[Callable[..., Any], tuple, dict]]] = {}
        self.sends: list[Callable[[], Any]] = []
        self._notifications: list[tuple[Ref, Any, Any]] = []

    def _touch(self, ref: Ref) -> None:
        if ref in self.versions:
            return
        value, version = ref._read_committed()
        if version > self.read_point:
            raise _Retry()
        self.versions[ref] = version
        self.values.setdefault(ref, value)

    def get(self, ref: Ref) -> Any:
        if ref not in self.values:
            self._touch(ref)
        return self.values[ref]

    def set(self, ref: Ref, value: Any) -> Any:
        if ref in self.commutes:
            raise TransactionError("cannot set a ref after commute in the same transaction")
        self._touch(ref)
        self.values[ref] = value
        self.sets.add(ref)
        return value

    def ensure(self, ref: Ref) -> Any:
        self._touch(ref)
        self.ensures.add(ref)
        return self.values[ref]

    def commute(self, ref: Ref, fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        if ref not in self.values:
            self.values[ref] = ref._read_committed()[0]
        value = fn(self.values[ref], *args, **kwargs)
        self.values[ref] = value
        self.commutes.setdefault(ref, []).append((fn, args, kwargs))
        return value

    def defer(self, dispatch: Callable[[], Any]) -> None:
        self.sends.append(dispatch)

    def commit(self) -> None:
        touched = sorted(set(self.versions) | set(self.commutes), key=lambda r: r._id)
        locked: list[Ref] = []
        try:
            for ref in touched:
                ref._lock.acquire()
                locked.append(ref)

            for ref, version in self.versions.items():
                if ref._version != version:
                    raise _Retry()

            for ref, ops in self.commutes.items():
                if ref in self.sets:
                    # already holds the in-transaction value with its commutes applied
                    continue
                value = ref._value
                for fn, args, kwargs in ops:
                    value = fn(value, *args, **kwargs)
                self.values[ref] = value

            changed = [ref for ref in touched if ref in self.sets or ref in self.commutes]
            for ref in changed:
                ref._validate(self.values[ref])

            if changed:
                stamp = _tick()
                for ref in changed:
                    old = ref._value
                    ref._value = self.values[ref]
                    ref._version = stamp
                    self._notifications.append((ref, old, ref._value))
        finally:
            for ref in reversed(locked):
                ref._lock.release()

    def after_commit(self) -> None:
        """Notify watches and release held agent sends.

        The commit is already published, so a failure here is logged and the
        remaining notifications and sends still run.
        """

        for ref, old, new in self._notifications:
            ref._notify_watches(old, new)
        for dispatch in self.sends:
            try:
                dispatch()
            except Exception:
                logger.exception("deferred_send_failed", attempt=self.attempt)


def dosync(fn: Callable[..., Any], *args: Any, max_retries: int | None = None, **kwargs: Any) -> Any:
    """Run ``fn(*args, **kwargs)`` in a transaction and return its result.

    A call made while a transaction is already running joins it.
    """

    if in_transaction():
        return fn(*args, **kwargs)

    limit = max_retries if max_retries is not None else get_settings().ref_max_retries
    for attempt in range(1, limit + 1):
        tx = Transaction(attempt)
        _local.transaction = tx
        try:
            result = fn(*args, **kwargs)
            tx.commit()
        except _Retry:
            logger.debug("transaction_retry", attempt=attempt)
            continue
        finally:
            _local.transaction = None
        tx.after_commit()
        return result

    logger.warning("transaction_retry_limit", retries=limit)
    raise RetryLimitExceeded(f"transaction retried {limit} times without committing")
