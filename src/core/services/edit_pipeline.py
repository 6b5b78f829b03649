"""Edit script orchestration.

Applies a sequence of :class:`~core.domain.models.Edit` objects to a
document using the primitives in :mod:`core.services.maps`. The CLI builds
one-edit requests for its single-operation commands and full requests for
``apply``, so every entry-point shares the same behaviour. Side effects
(printing, progress) stay in the UI layer through :class:`PipelineHooks`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from core.config import AppSettings, get_settings
from core.domain.models import Edit, EditOp, KeyPath
from core.errors import MapkitError, PathError
from core.log import get_logger
from core.services import maps
from core.services.functions import get_function

logger = get_logger(__name__)


@dataclass
class EditRequest:
    """Parameters that control one pipeline run."""

    document: Any
    edits: Sequence[Edit] = ()
    strict: bool = True


@dataclass
class PipelineHooks:
    """Optional callbacks for UI layers (progress, warnings)."""

    warning: Callable[[str], None] | None = None
    applied: Callable[[int, Edit], None] | None = None


@dataclass
class EditResult:
    """Output of a pipeline invocation."""

    document: Any
    applied: int = 0
    failed: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.applied > 0


def apply_edit(document: Any, edit: Edit, *, separator: str = ".") -> Any:
    """Apply a single edit and return the new document."""

    op = edit.op
    if op == EditOp.DISSOC:
        return maps.dissoc(document, *edit.keys)
    if op == EditOp.MERGE:
        return maps.merge(document, edit.value)

    path = edit.key_path(separator=separator)
    if op == EditOp.ASSOC:
        if len(path.keys) != 1:
            raise PathError(
                f"assoc takes a single key, got path {path.format(separator=separator)!r}; use assoc_in",
                path=path.keys,
            )
        return maps.assoc(document, path.leaf, edit.value)
    if op == EditOp.ASSOC_IN:
        return maps.assoc_in(document, path, edit.value)
    if op == EditOp.UPDATE_IN:
        fn = get_function(edit.fn or "")
        return maps.update_in(document, path, fn, *edit.args)
    if op == EditOp.DISSOC_IN:
        return maps.dissoc_in(document, path)
    raise ValueError(f"unsupported edit op {op!r}")


def apply_edits(
    request: EditRequest,
    *,
    settings: AppSettings | None = None,
    hooks: PipelineHooks | None = None,
) -> EditResult:
    """Apply ``request.edits`` in order.

    In strict mode the first failing edit aborts the run and its error
    propagates. Otherwise the failing edit is skipped, reported as a warning
    and the remaining edits still apply.
    """

    settings = settings or get_settings()
    hooks = hooks or PipelineHooks()
    result = EditResult(document=request.document)

    for index, edit in enumerate(request.edits, start=1):
        try:
            result.document = apply_edit(result.document, edit, separator=settings.path_separator)
        except (MapkitError, TypeError, ValueError) as exc:
            if request.strict:
                logger.info("edit_failed", index=index, edit=edit.describe(), error=str(exc))
                raise
            message = f"edit #{index} ({edit.describe()}) skipped: {exc}"
            logger.warning("edit_skipped", index=index, edit=edit.describe(), error=str(exc))
            result.failed += 1
            result.warnings.append(message)
            if hooks.warning:
                hooks.warning(message)
            continue
        result.applied += 1
        if hooks.applied:
            hooks.applied(index, edit)

    return result


def parse_path(text: str, *, settings: AppSettings | None = None) -> KeyPath:
    """Parse a textual key path with the configured separator."""

    settings = settings or get_settings()
    try:
        return KeyPath.parse(text, separator=settings.path_separator)
    except ValueError as exc:
        raise PathError(f"invalid key path {text!r}: {exc}") from exc
