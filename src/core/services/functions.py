"""Named update functions for ``update_in`` driven from text.

The CLI and edit scripts cannot pass Python callables, so they refer to the
functions below by name. Each one takes the old value (``None`` when absent)
followed by the extra arguments of the edit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from core.errors import UnknownFunctionError


@dataclass(frozen=True)
class UpdateFunction:
    """A registered update function and its help text."""

    name: str
    fn: Callable[..., Any]
    help: str
    arity: str = ""

    def __call__(self, old: Any, *args: Any) -> Any:
        return self.fn(old, *args)


def _num(value: Any) -> Any:
    return 0 if value is None else value


def _inc(old: Any, step: Any = 1) -> Any:
    return _num(old) + step


def _dec(old: Any, step: Any = 1) -> Any:
    return _num(old) - step


def _add(old: Any, *values: Any) -> Any:
    total = _num(old)
    for value in values:
        total = total + value
    return total


def _sub(old: Any, *values: Any) -> Any:
    total = _num(old)
    for value in values:
        total = total - value
    return total


def _mul(old: Any, *values: Any) -> Any:
    total = 1 if old is None else old
    for value in values:
        total = total * value
    return total


def _as_list(old: Any) -> list:
    if old is None:
        return []
    if isinstance(old, (list, tuple)):
        return list(old)
    return [old]


def _append(old: Any, *values: Any) -> list:
    return [*_as_list(old), *values]


def _extend(old: Any, *iterables: Any) -> list:
    out = _as_list(old)
    for items in iterables:
        out.extend(items)
    return out


def _remove(old: Any, *values: Any) -> list:
    return [item for item in _as_list(old) if item not in values]


def _default(old: Any, value: Any = None) -> Any:
    return value if old is None else old


def _sort(old: Any, reverse: bool = False) -> list:
    return sorted(_as_list(old), reverse=bool(reverse))


def _unique(old: Any) -> list:
    out: list = []
    for item in _as_list(old):
        if item not in out:
            out.append(item)
    return out


def _str_method(name: str) -> Callable[..., Any]:
    def apply(old: Any, *args: Any) -> Any:
        if old is None:
            return None
        return getattr(str(old), name)(*args)

    return apply


_REGISTRY: dict[str, UpdateFunction] = {
    f.name: f
    for f in (
        UpdateFunction("inc", _inc, "Add STEP (default 1); missing counts as 0.", "[STEP]"),
        UpdateFunction("dec", _dec, "Subtract STEP (default 1); missing counts as 0.", "[STEP]"),
        UpdateFunction("add", _add, "Add every argument.", "VALUE..."),
        UpdateFunction("sub", _sub, "Subtract every argument.", "VALUE..."),
        UpdateFunction("mul", _mul, "Multiply by every argument; missing counts as 1.", "VALUE..."),
        UpdateFunction("append", _append, "Append arguments to a list.", "VALUE..."),
        UpdateFunction("extend", _extend, "Concatenate list arguments.", "LIST..."),
        UpdateFunction("remove", _remove, "Drop list items equal to any argument.", "VALUE..."),
        UpdateFunction("upper", _str_method("upper"), "Upper-case a string."),
        UpdateFunction("lower", _str_method("lower"), "Lower-case a string."),
        UpdateFunction("strip", _str_method("strip"), "Strip whitespace (or CHARS).", "[CHARS]"),
        UpdateFunction("default", _default, "Use VALUE only when nothing is stored.", "VALUE"),
        UpdateFunction("not", lambda old: not old, "Boolean negation."),
        UpdateFunction("len", lambda old: 0 if old is None else len(old), "Length of the value."),
        UpdateFunction("str", lambda old: "" if old is None else str(old), "Convert to string."),
        UpdateFunction("int", lambda old: int(_num(old)), "Convert to integer."),
        UpdateFunction("float", lambda old: float(_num(old)), "Convert to float."),
        UpdateFunction("sort", _sort, "Sort a list; pass true to reverse.", "[REVERSE]"),
        UpdateFunction("unique", _unique, "Drop repeated list items, keeping order."),
    )
}


def get_function(name: str) -> UpdateFunction:
    """Look up a registered update function by name."""

    try:
        return _REGISTRY[name.strip().lower()]
    except KeyError:
        known = ", ".join(sorted(_REGISTRY))
        raise UnknownFunctionError(f"unknown update function {name!r} (known: {known})") from None


def list_functions() -> list[UpdateFunction]:
    return [_REGISTRY[name] for name in sorted(_REGISTRY)]
