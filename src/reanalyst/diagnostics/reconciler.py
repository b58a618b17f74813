"""Turn reanalyze result items into published diagnostics and quick fixes."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from reanalyst.analysis.models import (
    DiagnosticRecord,
    EditKind,
    FixEdit,
    QuickFix,
    ResultItem,
)
from reanalyst.config.constants import REMOVABLE_SUFFIXES, UNUSED_ARGUMENT_MARKER
from reanalyst.diagnostics.actions import ActionsIndex
from reanalyst.diagnostics.state import DiagnosticsState

REMOVE_UNUSED_TITLE = "Remove unused"


@dataclass
class Reconciliation:
    """New diagnostics state plus the rebuilt quick-fix index."""

    state: DiagnosticsState
    actions: ActionsIndex
    cleared: list[str] = field(default_factory=list)  # files that went from some to none
    suppressed: int = 0


def is_removable(message: str) -> bool:
    """Dead code that can be fixed by deleting its text."""
    return message.strip().endswith(REMOVABLE_SUFFIXES)


def is_unused_argument(item: ResultItem) -> bool:
    return UNUSED_ARGUMENT_MARKER in item.name.lower()


def _replacement_fix(item: ResultItem) -> FixEdit | None:
    if item.annotate is None:
        return None
    return FixEdit(
        target_line=item.annotate.line,
        target_col=item.annotate.character,
        replacement_text=item.annotate.text,
        edit_kind=EditKind.REPLACE,
    )


def reconcile(
    items: Iterable[ResultItem],
    previous: DiagnosticsState,
    *,
    suppress_unused_arguments: bool = True,
) -> Reconciliation:
    """Build the next diagnostics state from a full batch of result items.

    Files in the batch are replaced wholesale. Files that had diagnostics in
    ``previous`` but none in the batch are kept with an empty list so
    publishers clear them.
    """
    grouped: dict[str, list[DiagnosticRecord]] = {}
    actions = ActionsIndex()
    suppressed = 0

    for item in items:
        if suppress_unused_arguments and is_unused_argument(item):
            suppressed += 1
            continue

        rng = item.range.normalized()
        fix = _replacement_fix(item)
        record = DiagnosticRecord(
            file=item.file,
            range=rng,
            message=item.message.strip(),
            category=item.name,
            suggested_fix=fix,
        )
        grouped.setdefault(item.file, []).append(record)

        if fix is not None and item.annotate is not None:
            actions.add(
                QuickFix(title=item.annotate.action, file=item.file, range=rng, edit=fix)
            )

        # Whole-file reports have no text span to delete
        if is_removable(item.message) and not item.range.is_whole_file_sentinel:
            delete = FixEdit(
                target_line=item.range.start_line,
                target_col=item.range.start_col,
                replacement_text="",
                edit_kind=EditKind.DELETE,
                range=item.range,
            )
            actions.add(
                QuickFix(
                    title=REMOVE_UNUSED_TITLE,
                    file=item.file,
                    range=rng,
                    edit=delete,
                    clears=record,
                )
            )

    cleared = [
        path
        for path in previous.files()
        if previous.has_diagnostics(path) and path not in grouped
    ]

    state = DiagnosticsState(grouped)
    for path in cleared:
        state.set(path, [])

    return Reconciliation(state=state, actions=actions, cleared=cleared, suppressed=suppressed)
