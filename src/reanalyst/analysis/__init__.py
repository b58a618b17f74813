"""Analysis module - one-shot reanalyze runs and their results."""

from reanalyst.analysis.models import (
    Annotation,
    DiagnosticRecord,
    EditKind,
    FixEdit,
    ParseResult,
    QuickFix,
    Range,
    ResultItem,
    RunResult,
    Severity,
)
from reanalyst.analysis.parsers import parse_reanalyze_json
from reanalyst.analysis.runner import AnalysisRunner

__all__ = [
    "AnalysisRunner",
    "Annotation",
    "DiagnosticRecord",
    "EditKind",
    "FixEdit",
    "ParseResult",
    "QuickFix",
    "Range",
    "ResultItem",
    "RunResult",
    "Severity",
    "parse_reanalyze_json",
]
