"""Quick-fix index and edit application."""

from __future__ import annotations

from collections.abc import Iterator

from reanalyst.analysis.models import EditKind, FixEdit, QuickFix, Range


class ActionsIndex:
    """Quick fixes indexed by file and by (file, diagnostic range).

    Rebuilt from scratch on every reconcile, never patched.
    """

    def __init__(self) -> None:
        self._by_file: dict[str, list[QuickFix]] = {}
        self._by_range: dict[tuple[str, Range], list[QuickFix]] = {}

    def add(self, fix: QuickFix) -> None:
        self._by_file.setdefault(fix.file, []).append(fix)
        self._by_range.setdefault((fix.file, fix.range), []).append(fix)

    def for_file(self, path: str) -> list[QuickFix]:
        return list(self._by_file.get(path, []))

    def for_range(self, path: str, rng: Range) -> list[QuickFix]:
        return list(self._by_range.get((path, rng), []))

    def at(self, path: str, line: int, col: int) -> list[QuickFix]:
        """Fixes whose diagnostic range contains the cursor position."""
        return [fix for fix in self._by_file.get(path, []) if fix.range.contains(line, col)]

    def files(self) -> list[str]:
        return list(self._by_file)

    def __iter__(self) -> Iterator[QuickFix]:
        for fixes in self._by_file.values():
            yield from fixes

    def __len__(self) -> int:
        return sum(len(fixes) for fixes in self._by_file.values())


def _offset(lines: list[str], line: int, col: int) -> int:
    """Character offset of (line, col), clamped to the document."""
    if line < 0:
        return 0
    if line >= len(lines):
        return sum(len(text) for text in lines)
    text = lines[line]
    content = text.rstrip("\r\n")
    return sum(len(t) for t in lines[:line]) + min(max(col, 0), len(content))


def apply_fix(text: str, edit: FixEdit) -> str:
    """Apply a quick-fix edit to document text."""
    lines = text.splitlines(keepends=True)
    span = edit.span()
    start = _offset(lines, span.start_line, span.start_col)
    end = _offset(lines, span.end_line, span.end_col)
    replacement = "" if edit.edit_kind is EditKind.DELETE else edit.replacement_text
    return text[:start] + replacement + text[end:]
