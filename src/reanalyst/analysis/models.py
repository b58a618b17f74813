"""Analysis models - reanalyze result items, diagnostics and fixes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from reanalyst.config.constants import WHOLE_FILE_END_LINE


class Severity(Enum):
    """Diagnostic severity level. reanalyze reports are always warnings."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"


class EditKind(Enum):
    """What a quick fix does to the document."""

    REPLACE = "replace"
    DELETE = "delete"


@dataclass(frozen=True, order=True)
class Range:
    """Zero-based (line, column) span.

    The end is exclusive as an edit span: deleting Range(1, 0, 1, 14) removes
    columns 0-13. ``contains`` is the exception and accepts the end position too,
    so a cursor resting just after the last character still hits the range.
    """

    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @classmethod
    def from_list(cls, values: list[int] | tuple[int, int, int, int]) -> Range:
        start_line, start_col, end_line, end_col = values
        return cls(start_line, start_col, end_line, end_col)

    @classmethod
    def whole_file(cls) -> Range:
        return cls(0, 0, WHOLE_FILE_END_LINE, 0)

    @property
    def is_whole_file_sentinel(self) -> bool:
        """reanalyze reports whole-file issues on line -1."""
        return self.start_line < 0 or self.end_line < 0

    def normalized(self) -> Range:
        return Range.whole_file() if self.is_whole_file_sentinel else self

    def contains(self, line: int, col: int) -> bool:
        """Cursor hit test, inclusive at both ends."""
        if (line, col) < (self.start_line, self.start_col):
            return False
        return (line, col) <= (self.end_line, self.end_col)

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.start_line, self.start_col, self.end_line, self.end_col)


@dataclass(frozen=True)
class Annotation:
    """Single-point text insertion suggested by reanalyze (e.g. ``@dead``)."""

    line: int
    character: int
    text: str
    action: str


@dataclass(frozen=True)
class ResultItem:
    """One entry of ``reanalyze -json`` output."""

    name: str  # report category, e.g. "Warning Dead Value"
    kind: str
    file: str
    range: Range
    message: str
    annotate: Annotation | None = None


@dataclass(frozen=True)
class FixEdit:
    """A text edit. REPLACE inserts at a point; DELETE empties ``range``."""

    target_line: int
    target_col: int
    replacement_text: str
    edit_kind: EditKind
    range: Range | None = None  # Span to delete for DELETE edits

    def span(self) -> Range:
        if self.range is not None:
            return self.range
        return Range(self.target_line, self.target_col, self.target_line, self.target_col)


@dataclass(frozen=True)
class DiagnosticRecord:
    """A published diagnostic."""

    file: str
    range: Range
    message: str
    category: str
    severity: Severity = Severity.WARNING
    suggested_fix: FixEdit | None = None


@dataclass(frozen=True)
class QuickFix:
    """An editor action attached to a diagnostic range.

    ``clears`` is set on "Remove unused" fixes: once applied, that diagnostic is
    removed from the published state.
    """

    title: str
    file: str
    range: Range  # Range of the diagnostic the fix is indexed under
    edit: FixEdit
    kind: str = "refactor.rewrite"
    clears: DiagnosticRecord | None = None


@dataclass
class ParseResult:
    """Result from parsing reanalyze output."""

    items: list[ResultItem] = field(default_factory=list)
    parse_error: str | None = None

    @property
    def success(self) -> bool:
        return self.parse_error is None

    @classmethod
    def ok(cls, items: list[ResultItem]) -> ParseResult:
        return cls(items=items)

    @classmethod
    def error(cls, message: str) -> ParseResult:
        return cls(parse_error=message)


@dataclass
class RunResult:
    """Result of one ``reanalyze -json`` invocation."""

    status: Literal["ok", "malformed", "spawn_failed"]
    command: list[str]
    cwd: str
    items: list[ResultItem] = field(default_factory=list)
    raw_output: str = ""
    stderr: str = ""
    distress: bool = False  # stderr showed the corrupted-artifacts signature
    returncode: int | None = None
    duration_seconds: float = 0.0
    error_detail: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "ok"

    @property
    def reproduce_hint(self) -> str:
        return f'To reproduce, run "{" ".join(self.command)}" in directory: "{self.cwd}"'
