"""Agent: independent state updated asynchronously.

Actions sent to one agent run one at a time, in the order they were sent,
on a shared worker pool (``send``) or on a larger pool meant for blocking
work (``send_off``). The new state is whatever the action returns.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from core.config import get_settings
from core.errors import AgentError
from core.log import get_logger
from core.state.base import Reference, Validator
from core.state.ref import current_transaction

logger = get_logger(__name__)

ErrorMode = Literal["fail", "continue"]
ErrorHandler = Callable[["Agent", BaseException], Any]

_pools_lock = threading.Lock()
_send_pool: ThreadPoolExecutor | None = None
_send_off_pool: ThreadPoolExecutor | None = None
_local = threading.local()


def _get_send_pool() -> ThreadPoolExecutor:
    global _send_pool
    with _pools_lock:
        if _send_pool is None:
            _send_pool = ThreadPoolExecutor(
                max_workers=get_settings().agent_pool_size,
                thread_name_prefix="mapkit-agent-send",
            )
        return _send_pool


def _get_send_off_pool() -> ThreadPoolExecutor:
    global _send_off_pool
    with _pools_lock:
        if _send_off_pool is None:
            _send_off_pool = ThreadPoolExecutor(
                max_workers=max(32, get_settings().agent_pool_size * 8),
                thread_name_prefix="mapkit-agent-send-off",
            )
        return _send_off_pool


def shutdown_agents(wait: bool = True) -> None:
    """Stop both worker pools. Later sends start fresh pools."""

    global _send_pool, _send_off_pool
    with _pools_lock:
        pools = [p for p in (_send_pool, _send_off_pool) if p is not None]
        _send_pool = None
        _send_off_pool = None
    for pool in pools:
        pool.shutdown(wait=wait)


def current_agent() -> "Agent | None":
    """The agent whose action is running on this thread, if any."""

    return getattr(_local, "agent", None)


@dataclass
class _Action:
    fn: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    blocking: bool = False

    def executor(self) -> ThreadPoolExecutor:
        return _get_send_off_pool() if self.blocking else _get_send_pool()


class Agent(Reference):
    """A cell whose value changes by queued, asynchronous actions."""

    def __init__(
        self,
        value: Any = None,
        *,
        validator: Validator | None = None,
        error_mode: ErrorMode | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._queue: deque[_Action] = deque()
        self._running = False
        self._error: BaseException | None = None
        self._sent = 0
        self._done = 0
        self._error_handler = error_handler
        if error_mode is None:
            error_mode = "continue" if error_handler is not None else "fail"
        self._error_mode: ErrorMode = error_mode
        super().__init__(value, validator=validator)

    # -- sending ---------------------------------------------------------

    def send(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> "Agent":
        """Queue ``fn(state, *args, **kwargs)`` on the shared pool."""

        return self._dispatch(_Action(fn, args, kwargs, blocking=False))

    def send_off(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> "Agent":
        """Like :meth:`send`, for actions that may block on I/O."""

        return self._dispatch(_Action(fn, args, kwargs, blocking=True))

    def _dispatch(self, action: _Action) -> "Agent":
        tx = current_transaction()
        if tx is not None:
            tx.defer(lambda: self._enqueue(action))
            return self
        return self._enqueue(action)

    def _enqueue(self, action: _Action) -> "Agent":
        with self._lock:
            if self._error is not None:
                raise AgentError("agent is failed, needs restart", cause=self._error)
            self._queue.append(action)
            self._sent += 1
            if self._running:
                return self
            self._running = True
        action.executor().submit(self._run_next)
        return self

    def _run_next(self) -> None:
        with self._lock:
            action = self._queue.popleft()

        old = self._value
        failure: Exception | None = None
        _local.agent = self
        try:
            new = action.fn(old, *action.args, **action.kwargs)
            self._validate(new)
        except Exception as exc:
            failure = exc
        else:
            self._value = new
            self._notify_watches(old, new)
        finally:
            _local.agent = None

        if failure is not None:
            self._handle_failure(failure)

        follow_up: _Action | None = None
        with self._lock:
            self._done += 1
            if self._error is None and self._queue:
                follow_up = self._queue[0]
            else:
                self._running = False
            self._changed.notify_all()
        if follow_up is not None:
            follow_up.executor().submit(self._run_next)

    def _handle_failure(self, exc: Exception) -> None:
        logger.warning(
            "agent_action_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            mode=self._error_mode,
        )
        if self._error_handler is not None:
            try:
                self._error_handler(self, exc)
            except Exception:
                logger.exception("agent_error_handler_failed")
        if self._error_mode == "fail":
            with self._lock:
                self._error = exc

    # -- errors ----------------------------------------------------------

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def error_mode(self) -> ErrorMode:
        return self._error_mode

    def set_error_mode(self, mode: ErrorMode) -> None:
        if mode not in ("fail", "continue"):
            raise ValueError(f"unknown error mode {mode!r}")
        self._error_mode = mode

    def set_error_handler(self, handler: ErrorHandler | None) -> None:
        self._error_handler = handler

    def restart(self, value: Any, *, clear_actions: bool = False) -> Any:
        """Leave the failed state with ``value`` and resume queued actions."""

        self._validate(value)
        resume: _Action | None = None
        with self._lock:
            if self._error is None:
                raise AgentError("agent does not need a restart")
            self._value = value
            self._error = None
            if clear_actions:
                self._done += len(self._queue)
                self._queue.clear()
            if self._queue and not self._running:
                self._running = True
                resume = self._queue[0]
            self._changed.notify_all()
        if resume is not None:
            resume.executor().submit(self._run_next)
        return value

    # -- waiting ---------------------------------------------------------

    def await_(self, timeout: float | None = None) -> bool:
        """Block until every action sent so far has run.

        Returns ``False`` when ``timeout`` expires first.
        """

        if current_agent() is not None:
            raise AgentError("cannot await inside an agent action")
        if current_transaction() is not None:
            raise AgentError("cannot await inside a transaction")

        with self._lock:
            target = self._sent
            done = self._changed.wait_for(
                lambda: self._done >= target or self._error is not None,
                timeout=timeout,
            )
            if self._error is not None:
                raise AgentError("agent is failed, needs restart", cause=self._error)
        return bool(done)


def await_for(timeout: float | None, *agents: Agent) -> bool:
    """Wait for several agents; ``False`` if any did not finish in time."""

    deadline = None if timeout is None else time.monotonic() + timeout
    for agent in agents:
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        if not agent.await_(remaining):
            return False
    return True
