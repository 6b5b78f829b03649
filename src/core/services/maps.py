"""Non-destructive map primitives.

Every function here returns a new structure and leaves its arguments
untouched. Branches that an operation does not walk through are shared with
the input rather than copied, so an ``assoc_in`` on a large document only
copies the containers along the path.

``None`` is treated as an empty mapping wherever a mapping is expected.
Lists and tuples reached along a path are addressed by integer index, and an
index equal to the length appends.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Hashable

from core.domain.models import KeyPath
from core.errors import ArityError, PathError

_MISSING = object()


def _is_indexed(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_associative(value: Any) -> bool:
    return isinstance(value, Mapping) or _is_indexed(value)


def _valid_index(seq: list | tuple, key: Any, *, allow_append: bool) -> bool:
    if not isinstance(key, int) or isinstance(key, bool):
        return False
    upper = len(seq) if allow_append else len(seq) - 1
    return 0 <= key <= upper


def _copy_mapping(m: Mapping | None) -> dict:
    if m is None:
        return {}
    if type(m) is dict:
        return m.copy()
    if isinstance(m, dict):
        # Keeps subclasses (OrderedDict, defaultdict, ...) and their state.
        return copy.copy(m)
    return dict(m)


def _rebuild_sequence(seq: list | tuple, items: list) -> list | tuple:
    if isinstance(seq, tuple):
        make = getattr(seq, "_make", None)
        return make(items) if make is not None else tuple(items)
    return items


def _path_keys(path: KeyPath | Iterable[Hashable]) -> tuple[Any, ...]:
    if isinstance(path, KeyPath):
        return path.keys
    if isinstance(path, (str, bytes)):
        raise PathError(
            f"key path must be a sequence of keys, got {type(path).__name__} {path!r}; "
            "use KeyPath.parse() for the textual form"
        )
    keys = tuple(path)
    if not keys:
        raise PathError("key path must not be empty")
    return keys


def _get(node: Any, key: Any, default: Any) -> Any:
    if isinstance(node, Mapping):
        return node.get(key, default)
    if _is_indexed(node) and _valid_index(node, key, allow_append=False):
        return node[key]
    return default


def _assoc_one(node: Any, key: Any, value: Any, *, path: tuple[Any, ...] = (), depth: int = 0) -> Any:
    if node is None or isinstance(node, Mapping):
        out = _copy_mapping(node)
        out[key] = value
        return out
    if _is_indexed(node):
        if not _valid_index(node, key, allow_append=True):
            raise PathError(
                f"index {key!r} out of range for {type(node).__name__} of length {len(node)}",
                path=path,
                depth=depth,
            )
        items = list(node)
        if key == len(items):
            items.append(value)
        else:
            items[key] = value
        return _rebuild_sequence(node, items)
    raise PathError(
        f"cannot associate key {key!r} into {type(node).__name__}",
        path=path,
        depth=depth,
    )


def _child(node: Any, key: Any, *, path: tuple[Any, ...], depth: int) -> Any:
    if node is None or _is_associative(node):
        return _get(node, key, None)
    raise PathError(
        f"cannot walk into {type(node).__name__} with key {key!r}",
        path=path,
        depth=depth,
    )


def assoc(m: Any, key: Any, value: Any, *kvs: Any) -> Any:
    """Return a copy of ``m`` with each key set to its value.

    ``kvs`` continues the argument list as ``key, value, key, value, ...``.
    Keys that are not named keep their current values.
    """

    if len(kvs) % 2:
        raise ArityError("assoc expects key/value pairs; got an odd number of trailing arguments")

    pairs = [(key, value), *zip(kvs[::2], kvs[1::2])]
    if m is None or isinstance(m, Mapping):
        out = _copy_mapping(m)
        for k, v in pairs:
            out[k] = v
        return out

    out = m
    for k, v in pairs:
        out = _assoc_one(out, k, v, path=(k,))
    return out


def dissoc(m: Any, *keys: Any) -> Any:
    """Return a copy of ``m`` without ``keys``.

    Missing keys are ignored; when none of them is present ``m`` itself is
    returned.
    """

    if m is None or not keys:
        return m
    if not isinstance(m, Mapping):
        raise PathError(f"cannot dissoc from {type(m).__name__}")

    present = [k for k in keys if k in m]
    if not present:
        return m

    out = _copy_mapping(m)
    for k in present:
        out.pop(k, None)
    return out


def get_in(m: Any, path: KeyPath | Iterable[Hashable], default: Any = None) -> Any:
    """Return the value found by walking ``path``, or ``default``."""

    node = m
    for key in _path_keys(path):
        node = _get(node, key, _MISSING)
        if node is _MISSING:
            return default
    return node


def assoc_in(m: Any, path: KeyPath | Iterable[Hashable], value: Any) -> Any:
    """Return a structure where walking ``path`` yields ``value``.

    Missing (or ``None``) intermediate levels are created as empty dicts.
    """

    keys = _path_keys(path)

    def walk(node: Any, depth: int) -> Any:
        key = keys[depth]
        if depth == len(keys) - 1:
            return _assoc_one(node, key, value, path=keys, depth=depth)
        child = _child(node, key, path=keys, depth=depth)
        return _assoc_one(node, key, walk(child, depth + 1), path=keys, depth=depth)

    return walk(m, 0)


def update_in(
    m: Any,
    path: KeyPath | Iterable[Hashable],
    fn: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Replace the value at ``path`` with ``fn(old, *args, **kwargs)``.

    ``old`` is ``None`` when nothing is stored at ``path``.
    """

    keys = _path_keys(path)

    def walk(node: Any, depth: int) -> Any:
        key = keys[depth]
        if depth == len(keys) - 1:
            old = _child(node, key, path=keys, depth=depth)
            return _assoc_one(node, key, fn(old, *args, **kwargs), path=keys, depth=depth)
        child = _child(node, key, path=keys, depth=depth)
        return _assoc_one(node, key, walk(child, depth + 1), path=keys, depth=depth)

    return walk(m, 0)


def update(m: Any, key: Any, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Single-key form of :func:`update_in`."""

    return update_in(m, (key,), fn, *args, **kwargs)


def dissoc_in(m: Any, path: KeyPath | Iterable[Hashable]) -> Any:
    """Remove the value addressed by ``path``.

    The last key is dropped from the mapping that holds it (or the element is
    removed from a list/tuple). Paths that do not exist leave ``m`` unchanged,
    and parents left empty are kept.
    """

    keys = _path_keys(path)

    def walk(node: Any, depth: int) -> Any:
        key = keys[depth]
        if depth == len(keys) - 1:
            if isinstance(node, Mapping):
                return dissoc(node, key)
            if _is_indexed(node) and _valid_index(node, key, allow_append=False):
                items = list(node)
                del items[key]
                return _rebuild_sequence(node, items)
            return node

        child = _get(node, key, _MISSING) if _is_associative(node) else _MISSING
        if child is _MISSING:
            return node
        new_child = walk(child, depth + 1)
        if new_child is child:
            return node
        return _assoc_one(node, key, new_child, path=keys, depth=depth)

    return walk(m, 0)


def merge(*maps: Mapping | None) -> dict | None:
    """Merge mappings left to right; later values win. ``None`` is skipped."""

    present = [m for m in maps if m is not None]
    if not present:
        return None
    out = _copy_mapping(present[0])
    for m in present[1:]:
        out.update(m)
    return out


def merge_with(fn: Callable[[Any, Any], Any], *maps: Mapping | None) -> dict | None:
    """Like :func:`merge`, combining clashing values with ``fn(left, right)``."""

    present = [m for m in maps if m is not None]
    if not present:
        return None
    out = _copy_mapping(present[0])
    for m in present[1:]:
        for key, value in m.items():
            out[key] = fn(out[key], value) if key in out else value
    return out


def select_keys(m: Mapping | None, keys: Iterable[Hashable]) -> dict:
    """Return a dict holding only the ``keys`` present in ``m``."""

    if m is None:
        return {}
    return {k: m[k] for k in keys if k in m}
