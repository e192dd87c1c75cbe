"""
Screen-reader friendly wording for error reports.

The announcement scheduler reads narration_items() one at a time;
format_for_narration() is the single-message form.
"""

from typing import List, Sequence

from .types import ErrorKind, ErrorReport


def describe(report: ErrorReport, index: int) -> str:
    """One numbered line, e.g. "1. Spelling error: 'teh' should be 'the'."."""
    if report.kind is ErrorKind.CONTEXT or (report.error_text is None and report.correction is None):
        return f"{index}. {_sentence(report.description)}"
    return f"{index}. {report.kind.label.capitalize()} error: {_sentence(report.description)}"


def narration_items(reports: Sequence[ErrorReport]) -> List[str]:
    return [describe(report, i) for i, report in enumerate(reports, start=1)]


def format_for_narration(reports: Sequence[ErrorReport]) -> str:
    if not reports:
        return "No errors detected."

    count = len(reports)
    header = f"Found {count} potential issue{'s' if count > 1 else ''}:"
    return "\n".join([header] + narration_items(reports))


def _sentence(text: str) -> str:
    text = text.strip()
    if text and text[-1] not in ".?!":
        text += "."
    return text
