"""
Shared type definitions for textnav.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional


class ErrorKind(Enum):
    """Category of a detected error."""
    SPELLING = "spelling"
    GRAMMAR = "grammar"
    CONTEXT = "context"

    @property
    def label(self) -> str:
        """Wording used when the kind is read aloud."""
        if self is ErrorKind.CONTEXT:
            return "context or meaning"
        return self.value


class DiffKind(Enum):
    INSERTION = "insertion"
    DELETION = "deletion"
    SUBSTITUTION = "substitution"


class RemoteOutcome(Enum):
    """How the remote correction path ended for one analysis."""
    ACCEPTED = "accepted"               # Rewrite produced usable differences
    UNCHANGED = "unchanged"             # Rewrite identical to input
    NO_DIFFERENCES = "no_differences"   # Rewrite differed but nothing localizable
    REJECTED = "rejected"               # Response failed validation
    FAILED = "failed"                   # Transport / HTTP / parse failure
    TIMED_OUT = "timed_out"
    UNAVAILABLE = "unavailable"         # Service backing off after failures
    SKIPPED = "skipped"                 # Not needed (empty text, local-only)


@dataclass(frozen=True)
class Span:
    """
    Half-open (offset, length) range over one text snapshot.

    A span is only meaningful for the exact text it was computed against.
    """
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def is_within(self, text: str) -> bool:
        return 0 <= self.offset and self.length >= 0 and self.end <= len(text)

    def text_in(self, text: str) -> str:
        return text[self.offset:self.end]


@dataclass(frozen=True)
class ErrorReport:
    """One discrete finding, renderable even without a precise span."""
    kind: ErrorKind
    description: str
    span: Optional[Span] = None
    error_text: Optional[str] = None
    correction: Optional[str] = None

    def __post_init__(self):
        has_pair = self.error_text is not None and self.correction is not None
        if not self.description and not has_pair:
            raise ValueError("ErrorReport needs a description or an error/correction pair")


@dataclass(frozen=True)
class WordDifference:
    """One word-level divergence between an original text and a rewrite."""
    diff_kind: DiffKind
    error_kind: ErrorKind
    original: Optional[str] = None      # Word in the original (None for insertions)
    corrected: Optional[str] = None     # Word in the rewrite (None for deletions)
    span: Optional[Span] = None
    before: Optional[str] = None        # Context word preceding the change
    after: Optional[str] = None         # Context word following the change
    whole_text: bool = False


@dataclass
class CorrectionAttempt:
    """Outcome of one call to the remote correction client. Not persisted."""
    input_text: str
    rewrite: Optional[str] = None
    failure: Optional[str] = None
    elapsed_ms: float = 0.0
    retries_used: int = 0
    rejected: bool = False

    @property
    def ok(self) -> bool:
        return self.rewrite is not None and self.failure is None


@dataclass
class AnalysisResult:
    """
    Ordered reports for one input text.

    `source` ("local" | "remote") is kept for diagnostics only and never
    appears in report descriptions.
    """
    reports: List[ErrorReport] = field(default_factory=list)
    source: str = "local"
    remote_outcome: RemoteOutcome = RemoteOutcome.SKIPPED
    elapsed_ms: float = 0.0
    attempt: Optional[CorrectionAttempt] = None

    @property
    def remote_ran(self) -> bool:
        """True when the remote service produced an answer we could use."""
        return self.remote_outcome in (
            RemoteOutcome.ACCEPTED,
            RemoteOutcome.UNCHANGED,
            RemoteOutcome.NO_DIFFERENCES,
        )

    @property
    def found_nothing(self) -> bool:
        """Analysis ran to completion and nothing was reported."""
        return not self.reports and self.remote_outcome in (
            RemoteOutcome.UNCHANGED,
            RemoteOutcome.NO_DIFFERENCES,
            RemoteOutcome.SKIPPED,
        )

    def __len__(self) -> int:
        return len(self.reports)

    def __iter__(self) -> Iterator[ErrorReport]:
        return iter(self.reports)


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Immutable snapshot of configuration for an analyzer.
    Ensures config changes mid-run don't cause inconsistency.
    """
    # Remote service
    api_url: str
    api_token: str
    instruction: str

    # Timing
    analysis_timeout: float
    request_timeout: float
    max_retries: int
    retry_backoff: float

    # Reconciliation
    max_reports: int

    # Local checking
    spelling_threshold: float
    spelling_distance: int

    # Response validation
    max_length_ratio: float
    max_foreign_chars: int

    # Service health
    health_cooldown: float

    # Diagnostics
    metrics_enabled: bool = True
    debug: bool = False
    metrics_file: str = ""
    history_file: str = ""
