"""
Local rule-based checker.

Dictionary spelling check plus a handful of grammar heuristics. No
network access; a failing rule produces no reports instead of raising.
"""

import re
from typing import Callable, Iterator, List, Optional, Set, Tuple

from .distance import edit_distance
from .reconcile import MAX_REPORTS, cap_reports, dedupe_reports
from .state import CorrectionHistory
from .types import ErrorKind, ErrorReport, Span


# Score used when a word is unknown and the dictionary has nothing to offer
NO_SUGGESTION_SCORE = 0.8

# Two-edit candidates grow with length squared; only short words get them
DISTANCE2_MAX_LENGTH = 4

# (subject, wrong verb, right verb)
AGREEMENT_RULES = [
    ("i", "has", "have"),
    ("he", "have", "has"),
    ("she", "have", "has"),
    ("it", "have", "has"),
    ("we", "has", "have"),
    ("you", "has", "have"),
    ("they", "has", "have"),
]

# "does he have", "will it have" are fine
AUXILIARIES = {
    "do", "does", "did", "will", "would", "can", "could", "shall",
    "should", "may", "might", "must", "to",
}

_WORD_RE = re.compile(r"\S+")
_CHECKABLE_RE = re.compile(r"[A-Za-z][A-Za-z']*")
_DOUBLED_PUNCT_RE = re.compile(r"[.!?,;:]{2,}")
_TERMINAL_MARKS = (".", "?", "!", "…")
_CLOSERS = "\"')]”’"


class SpellingDictionary:
    """
    English word list backed by pyspellchecker.

    Kept behind a tiny interface (known / suggestions) so tests can
    substitute a fake dictionary.
    """

    def __init__(self, language: str = "en", distance: int = 2):
        from spellchecker import SpellChecker

        # Candidate generation is done here, the checker's own distance is unused
        self._spell = SpellChecker(language=language, distance=1)
        self.distance = distance

    def known(self, word: str) -> bool:
        return bool(self._spell.known([word]))

    def candidates(self, word: str) -> Set[str]:
        """Known words one edit away, or two edits away for short words."""
        lowered = word.lower()
        found = set(self._spell.known(self._spell.edit_distance_1(lowered)))
        if not found and self.distance >= 2 and len(lowered) <= DISTANCE2_MAX_LENGTH:
            found = set(self._spell.known(self._spell.edit_distance_2(lowered)))
        found.discard(lowered)
        return found

    def suggestions(self, word: str) -> List[str]:
        """Candidates ordered best first (most frequent, then alphabetical)."""
        return sorted(
            self.candidates(word),
            key=lambda c: (-self._spell.word_usage_frequency(c), c),
        )


def tokenize(text: str) -> Iterator[Tuple[str, Span]]:
    """Yield whitespace-delimited words with their spans."""
    for match in _WORD_RE.finditer(text):
        yield match.group(), Span(match.start(), match.end() - match.start())


def _strip_punctuation(word: str, span: Span) -> Tuple[str, Span]:
    """Trim leading/trailing non-alphanumerics, narrowing the span to match."""
    start = 0
    end = len(word)
    while start < end and not word[start].isalnum():
        start += 1
    while end > start and not word[end - 1].isalnum():
        end -= 1
    return word[start:end], Span(span.offset + start, end - start)


def _match_case(suggestion: str, word: str) -> str:
    if word[:1].isupper():
        return suggestion[:1].upper() + suggestion[1:]
    return suggestion


def spelling_score(word: str, suggestion: Optional[str]) -> float:
    """Error likelihood: min(2 x normalized edit distance, 1.0)."""
    if not suggestion:
        return NO_SUGGESTION_SCORE
    distance = edit_distance(word, suggestion)
    normalized = distance / max(len(word), len(suggestion))
    return min(normalized * 2.0, 1.0)


class LocalChecker:
    """
    Synchronous spelling and grammar heuristics.

    Usage:
        checker = LocalChecker(history=history)
        reports = checker.check("teh cat sat")
    """

    def __init__(
        self,
        dictionary=None,
        history: Optional[CorrectionHistory] = None,
        threshold: float = 0.5,
        spelling_distance: int = 2,
        max_reports: int = MAX_REPORTS,
        debug: bool = False,
    ):
        self.dictionary = dictionary if dictionary is not None else SpellingDictionary(distance=spelling_distance)
        self.history = history if history is not None else CorrectionHistory()
        self.threshold = threshold
        self.max_reports = max_reports
        self.debug = debug

        # Grammar rules run in this order, each yields at most one report
        self._grammar_rules: List[Callable[[str], Optional[ErrorReport]]] = [
            self._check_agreement,
            self._check_capitalization,
            self._check_terminal_punctuation,
            self._check_doubled_punctuation,
        ]

    def check(self, text: str) -> List[ErrorReport]:
        """Run all rules over `text`. Never raises."""
        if not text or not text.strip():
            return []

        reports: List[ErrorReport] = []

        try:
            reports.extend(self._check_spelling(text))
        except Exception as e:
            print(f"[Local] Spelling check failed: {e}")

        for rule in self._grammar_rules:
            try:
                report = rule(text)
            except Exception as e:
                print(f"[Local] {rule.__name__} failed: {e}")
                continue
            if report is not None:
                reports.append(report)

        return cap_reports(dedupe_reports(reports), self.max_reports)

    # Spelling

    def _check_spelling(self, text: str) -> List[ErrorReport]:
        reports: List[ErrorReport] = []
        for raw, raw_span in tokenize(text):
            word, span = _strip_punctuation(raw, raw_span)
            if len(word) <= 1 or word.isdigit():
                continue

            learned = self.history.lookup(word)
            if learned is not None:
                reports.append(self._spelling_report(word, learned, span))
                continue

            if not _CHECKABLE_RE.fullmatch(word) or word.isupper():
                # Mixed letters and digits ("2nd", "A4"), hyphenated, non-ASCII or acronyms
                continue
            if self._is_known(word):
                continue

            suggestions = self.dictionary.suggestions(word)
            best = _match_case(suggestions[0], word) if suggestions else None
            score = spelling_score(word.lower(), best.lower() if best else None)

            if self.debug:
                print(f"[Local] '{word}' unknown, best={best!r}, score={score:.2f}")

            if score > self.threshold:
                reports.append(self._spelling_report(word, best, span))

        return reports

    def _is_known(self, word: str) -> bool:
        if self.dictionary.known(word):
            return True
        if "'" in word:
            # Possessives and contractions: "John's", "didn't"
            stem = word.split("'", 1)[0]
            return bool(stem) and self.dictionary.known(stem)
        return False

    @staticmethod
    def _spelling_report(word: str, correction: Optional[str], span: Span) -> ErrorReport:
        if correction:
            description = f"'{word}' should be '{correction}'"
        else:
            description = f"'{word}' may be misspelled"
        return ErrorReport(
            kind=ErrorKind.SPELLING,
            description=description,
            span=span,
            error_text=word,
            correction=correction,
        )

    # Grammar

    def _check_agreement(self, text: str) -> Optional[ErrorReport]:
        """Subject-verb agreement, e.g. "I has" -> "I have"."""
        words = [(_strip_punctuation(raw, span)) for raw, span in tokenize(text)]
        for index in range(len(words) - 1):
            subject, subject_span = words[index]
            verb, verb_span = words[index + 1]
            for rule_subject, wrong, right in AGREEMENT_RULES:
                if subject.lower() != rule_subject or verb.lower() != wrong:
                    continue
                if index > 0 and words[index - 1][0].lower() in AUXILIARIES:
                    continue

                span = Span(subject_span.offset, verb_span.end - subject_span.offset)
                error_text = span.text_in(text)
                fixed_subject = "I" if rule_subject == "i" else subject
                correction = f"{fixed_subject} {right}"
                return ErrorReport(
                    kind=ErrorKind.GRAMMAR,
                    description=f"'{error_text}' should be '{correction}'",
                    span=span,
                    error_text=error_text,
                    correction=correction,
                )
        return None

    @staticmethod
    def _check_capitalization(text: str) -> Optional[ErrorReport]:
        """First letter of the text should be upper case."""
        stripped = text.lstrip()
        if len(stripped) <= 2:
            return None
        first = stripped[0]
        if not (first.isalpha() and first.islower()):
            return None
        offset = len(text) - len(stripped)
        return ErrorReport(
            kind=ErrorKind.GRAMMAR,
            description="Sentence should start with a capital letter",
            span=Span(offset, 1),
            error_text=first,
            correction=first.upper(),
        )

    @staticmethod
    def _check_terminal_punctuation(text: str) -> Optional[ErrorReport]:
        """Text should end with . ? or !"""
        stripped = text.strip()
        if len(stripped) <= 5:
            return None
        if stripped.rstrip(_CLOSERS).endswith(_TERMINAL_MARKS):
            return None
        offset = len(text) - len(text.lstrip())
        return ErrorReport(
            kind=ErrorKind.GRAMMAR,
            description="Sentence should end with punctuation",
            span=Span(offset, len(stripped)),
            error_text=stripped,
            correction=stripped + ".",
        )

    @staticmethod
    def _check_doubled_punctuation(text: str) -> Optional[ErrorReport]:
        """Repeated marks such as ".." or "!." (an ellipsis is fine)."""
        for match in _DOUBLED_PUNCT_RE.finditer(text):
            marks = match.group()
            if marks == "...":
                continue
            return ErrorReport(
                kind=ErrorKind.GRAMMAR,
                description=f"Repeated punctuation '{marks}' should be '{marks[0]}'",
                span=Span(match.start(), len(marks)),
                error_text=marks,
                correction=marks[0],
            )
        return None
