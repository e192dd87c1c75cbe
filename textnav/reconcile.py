"""
Reconciliation policy: pick a report set, deduplicate, cap.

Pure functions; the ErrorAnalyzer decides which lists to feed in.
"""

from typing import List, Optional, Sequence, Tuple

from .types import ErrorReport


MAX_REPORTS = 5


def dedupe_reports(reports: Sequence[ErrorReport]) -> List[ErrorReport]:
    """
    Drop reports whose error_text (case-insensitive) was already seen.

    Reports without error_text are always kept.
    """
    seen: set = set()
    unique: List[ErrorReport] = []
    for report in reports:
        if report.error_text is not None:
            key = report.error_text.lower()
            if key in seen:
                continue
            seen.add(key)
        unique.append(report)
    return unique


def cap_reports(reports: Sequence[ErrorReport], limit: int = MAX_REPORTS) -> List[ErrorReport]:
    """Keep the first `limit` reports, preserving order."""
    if limit < 0:
        limit = 0
    return list(reports[:limit])


def reconcile(
    local_reports: Sequence[ErrorReport],
    remote_reports: Optional[Sequence[ErrorReport]],
    max_reports: int = MAX_REPORTS,
) -> Tuple[List[ErrorReport], str]:
    """
    Choose between remote and local findings.

    Remote reports win when present and non-empty; otherwise the local
    baseline is used. Returns (final reports, source) where source is
    "remote" or "local".
    """
    if remote_reports:
        chosen, source = remote_reports, "remote"
    else:
        chosen, source = local_reports, "local"
    return cap_reports(dedupe_reports(chosen), max_reports), source
