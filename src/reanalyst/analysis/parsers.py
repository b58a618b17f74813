"""Output parser for ``reanalyze -json``."""

from __future__ import annotations

import json
from typing import Any

from reanalyst.analysis.models import Annotation, ParseResult, Range, ResultItem


def _parse_range(value: Any) -> Range:
    if not isinstance(value, list) or len(value) != 4:
        raise ValueError(f"range must be a list of 4 integers, got {value!r}")
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
        raise ValueError(f"range must be a list of 4 integers, got {value!r}")
    return Range.from_list(value)


def _parse_annotation(value: Any) -> Annotation | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"annotate must be an object, got {value!r}")
    return Annotation(
        line=int(value["line"]),
        character=int(value["character"]),
        text=str(value["text"]),
        action=str(value.get("action", "")),
    )


def _parse_item(item: Any) -> ResultItem:
    if not isinstance(item, dict):
        raise ValueError(f"result item must be an object, got {type(item).__name__}")
    return ResultItem(
        name=str(item.get("name", "")),
        kind=str(item.get("kind", "")),
        file=str(item["file"]),
        range=_parse_range(item["range"]),
        message=str(item["message"]),
        annotate=_parse_annotation(item.get("annotate")),
    )


def parse_reanalyze_json(stdout: str, stderr: str) -> ParseResult:  # noqa: ARG001
    """Parse reanalyze's JSON list of result items."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        return ParseResult.error(f"reanalyze JSON parse error: {e}")

    if not isinstance(data, list):
        return ParseResult.error(
            f"reanalyze JSON parse error: expected a list, got {type(data).__name__}"
        )

    items: list[ResultItem] = []
    for index, raw in enumerate(data):
        try:
            items.append(_parse_item(raw))
        except (KeyError, TypeError, ValueError) as e:
            return ParseResult.error(f"reanalyze result item {index} is invalid: {e}")
    return ParseResult.ok(items)
