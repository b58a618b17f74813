"""Published diagnostics, keyed by file."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from reanalyst.analysis.models import DiagnosticRecord


class DiagnosticsState:
    """Last-published diagnostics per file.

    An empty list for a file means "explicitly cleared": the file had
    diagnostics before and has none now.
    """

    def __init__(self, initial: Mapping[str, list[DiagnosticRecord]] | None = None) -> None:
        self._by_file: dict[str, list[DiagnosticRecord]] = {
            path: list(records) for path, records in (initial or {}).items()
        }

    def get(self, path: str) -> list[DiagnosticRecord]:
        return list(self._by_file.get(path, []))

    def set(self, path: str, records: list[DiagnosticRecord]) -> None:
        self._by_file[path] = list(records)

    def files(self) -> list[str]:
        return list(self._by_file)

    def has_diagnostics(self, path: str) -> bool:
        return bool(self._by_file.get(path))

    def replace(self, other: DiagnosticsState) -> None:
        """Take over other's contents wholesale."""
        self._by_file = other.snapshot()

    def clear(self) -> None:
        self._by_file.clear()

    def remove(self, path: str, record: DiagnosticRecord) -> bool:
        """Drop one diagnostic (the "Remove unused" side effect). True if it was present."""
        records = self._by_file.get(path)
        if not records or record not in records:
            return False
        records.remove(record)
        return True

    def snapshot(self) -> dict[str, list[DiagnosticRecord]]:
        return {path: list(records) for path, records in self._by_file.items()}

    @property
    def total(self) -> int:
        return sum(len(records) for records in self._by_file.values())

    def __contains__(self, path: object) -> bool:
        return path in self._by_file

    def __iter__(self) -> Iterator[tuple[str, list[DiagnosticRecord]]]:
        return iter(self.snapshot().items())

    def __len__(self) -> int:
        return len(self._by_file)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DiagnosticsState):
            return self._by_file == other._by_file
        if isinstance(other, Mapping):
            return self._by_file == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"DiagnosticsState({self._by_file!r})"
