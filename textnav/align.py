"""
Word-level alignment between an original text and a corrected rewrite.

Minimum-edit alignment over words: a suffix distance table is built once,
then walked from the start, taking matches first. Among equally cheap
edits a substitution is preferred, then an insertion, then a deletion, so
results are stable for texts with repeated words ("the the the").
"""

import re
from typing import List, Optional, Tuple

from .distance import edit_distance, normalized_edit_distance, suffix_distances
from .types import DiffKind, ErrorKind, ErrorReport, Span, WordDifference


# Substitutions at or under this many edits read as spelling fixes
SPELLING_MAX_EDITS = 2
SPELLING_MAX_NORMALIZED = 0.5

_WORD_RE = re.compile(r"\S+")


def split_words(text: str) -> List[Tuple[str, Span]]:
    return [(m.group(), Span(m.start(), m.end() - m.start())) for m in _WORD_RE.finditer(text)]


def classify_substitution(original: str, corrected: str) -> ErrorKind:
    """Spelling if the two words are a small edit apart, grammar otherwise."""
    a, b = original.lower(), corrected.lower()
    if edit_distance(a, b) <= SPELLING_MAX_EDITS:
        return ErrorKind.SPELLING
    if normalized_edit_distance(a, b) < SPELLING_MAX_NORMALIZED:
        return ErrorKind.SPELLING
    return ErrorKind.GRAMMAR


def diff(original: str, rewritten: str) -> List[WordDifference]:
    """
    Align `original` against `rewritten` word by word.

    Each word in the rewrite missing from the original is an insertion,
    each extra original word a deletion, and each replaced word a
    substitution. The number of differences is the word edit distance.

    Returns an empty list only when the texts are equal.
    """
    o_words = split_words(original)
    r_words = split_words(rewritten)
    o = [w for w, _ in o_words]
    r = [w for w, _ in r_words]
    dp = suffix_distances(o, r)

    differences: List[WordDifference] = []
    i = j = 0

    while i < len(o) or j < len(r):
        both = i < len(o) and j < len(r)
        if both and o[i] == r[j]:
            i += 1
            j += 1
            continue

        cost = dp[i, j]
        if both and dp[i + 1, j + 1] + 1 == cost:
            differences.append(WordDifference(
                diff_kind=DiffKind.SUBSTITUTION,
                error_kind=classify_substitution(o[i], r[j]),
                original=o[i],
                corrected=r[j],
                span=o_words[i][1],
                before=o[i - 1] if i > 0 else None,
                after=o[i + 1] if i + 1 < len(o) else None,
            ))
            i += 1
            j += 1
        elif j < len(r) and dp[i, j + 1] + 1 == cost:
            differences.append(_insertion(r[j], o_words, i, original))
            j += 1
        else:
            differences.append(_deletion(o_words, i))
            i += 1

    if not differences and original != rewritten:
        # Whitespace-only or otherwise unlocalizable change
        differences.append(WordDifference(
            diff_kind=DiffKind.SUBSTITUTION,
            error_kind=ErrorKind.GRAMMAR,
            original=original,
            corrected=rewritten,
            span=Span(0, len(original)),
            whole_text=True,
        ))

    return differences


def _insertion(word: str, o_words: List[Tuple[str, Span]], i: int, original: str) -> WordDifference:
    """Word missing from the original, to be inserted before o_words[i]."""
    if i < len(o_words):
        offset = o_words[i][1].offset
        after = o_words[i][0]
    else:
        offset = len(original)
        after = None
    return WordDifference(
        diff_kind=DiffKind.INSERTION,
        error_kind=ErrorKind.GRAMMAR,
        corrected=word,
        span=Span(offset, 0),
        before=o_words[i - 1][0] if 0 < i <= len(o_words) else None,
        after=after,
    )


def _deletion(o_words: List[Tuple[str, Span]], k: int) -> WordDifference:
    word, span = o_words[k]
    return WordDifference(
        diff_kind=DiffKind.DELETION,
        error_kind=ErrorKind.GRAMMAR,
        original=word,
        span=span,
        before=o_words[k - 1][0] if k > 0 else None,
        after=o_words[k + 1][0] if k + 1 < len(o_words) else None,
    )


def _context(before: Optional[str], after: Optional[str]) -> str:
    if before and after:
        return f" between '{before}' and '{after}'"
    if after:
        return f" before '{after}'"
    if before:
        return f" after '{before}'"
    return ""


def to_report(difference: WordDifference) -> ErrorReport:
    """Convert one difference to a narratable ErrorReport."""
    if difference.whole_text:
        return ErrorReport(
            kind=difference.error_kind,
            description=f'Suggested rewrite: "{difference.corrected}"',
            span=difference.span,
            error_text=difference.original,
            correction=difference.corrected,
        )

    if difference.diff_kind is DiffKind.INSERTION:
        context = _context(difference.before, difference.after)
        return ErrorReport(
            kind=difference.error_kind,
            description=f"Missing word '{difference.corrected}'{context}",
            span=difference.span,
            correction=difference.corrected,
        )

    if difference.diff_kind is DiffKind.DELETION:
        context = _context(difference.before, difference.after)
        return ErrorReport(
            kind=difference.error_kind,
            description=f"Extra word '{difference.original}'{context}",
            span=difference.span,
            error_text=difference.original,
        )

    return ErrorReport(
        kind=difference.error_kind,
        description=f"'{difference.original}' should be '{difference.corrected}'",
        span=difference.span,
        error_text=difference.original,
        correction=difference.corrected,
    )


def to_reports(differences: List[WordDifference]) -> List[ErrorReport]:
    return [to_report(d) for d in differences]
