"""
Error analysis entry point.

Runs the local checker and the remote corrector side by side, then
reconciles: remote-derived reports win when the service answers in time
with a usable rewrite, otherwise the local baseline is returned.

    Start -> local check (caller thread) + remote call (worker thread)
          -> accepted | timed out | rejected | failed
          -> reconciled (dedupe, cap) -> delivered
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import List, Optional, Tuple
from uuid import uuid4

from .align import diff, to_reports
from .local_check import LocalChecker
from .metrics import MetricsWriter, log_analysis
from .reconcile import reconcile
from .remote import RemoteCorrector
from .state import CorrectionHistory, ServiceHealth
from .types import (
    AnalysisResult, ConfigSnapshot, CorrectionAttempt, ErrorReport, RemoteOutcome,
)


class RemoteRace:
    """
    One in-flight remote correction racing the analysis timeout.

    Settles exactly once. If the deadline passes first the race is
    discarded: the future is cancelled when still queued, and a result
    that arrives later is dropped by the done-callback instead of reaching
    any caller.
    """

    def __init__(self, future: Future, deadline: float):
        self.future = future
        self.deadline = deadline
        self._lock = threading.Lock()
        self._discarded = False

    @property
    def discarded(self) -> bool:
        with self._lock:
            return self._discarded

    def wait(self) -> Optional[CorrectionAttempt]:
        """
        Block until the remote settles or the deadline passes.

        Returns the attempt, or None on timeout (the race is then discarded).
        Exceptions from the worker propagate.
        """
        remaining = max(0.0, self.deadline - time.monotonic())
        try:
            return self.future.result(timeout=remaining)
        except FuturesTimeoutError:
            self.discard()
            return None

    def discard(self) -> None:
        with self._lock:
            if self._discarded:
                return
            self._discarded = True
        self.future.cancel()
        self.future.add_done_callback(self._drop_late_result)

    @staticmethod
    def _drop_late_result(future: Future) -> None:
        if future.cancelled():
            return
        try:
            attempt = future.result()
        except Exception as e:
            print(f"[Analyzer] Late remote call failed after timeout: {e}")
            return
        print(f"[Analyzer] Discarding late remote result ({attempt.elapsed_ms/1000:.2f}s)")


class ErrorAnalyzer:
    """
    Public entry point: analyze(text) -> AnalysisResult.

    Shared state (correction history, service health) is injected so that
    several analyzers, or several concurrent analyze() calls, can share it.

    Usage:
        analyzer = ErrorAnalyzer(config.snapshot(), history=history, health=health)
        result = analyzer.analyze("She went to store yesterday.")
        for report in result:
            print(report.description)
    """

    def __init__(
        self,
        config: ConfigSnapshot,
        checker: Optional[LocalChecker] = None,
        remote: Optional[RemoteCorrector] = None,
        history: Optional[CorrectionHistory] = None,
        health: Optional[ServiceHealth] = None,
        metrics: Optional[MetricsWriter] = None,
        local_only: bool = False,
        max_workers: int = 4,
    ):
        self.config = config
        self.history = history if history is not None else CorrectionHistory(
            path=config.history_file or None
        )
        self.health = health if health is not None else ServiceHealth(cooldown=config.health_cooldown)
        self.checker = checker if checker is not None else LocalChecker(
            history=self.history,
            threshold=config.spelling_threshold,
            spelling_distance=config.spelling_distance,
            max_reports=config.max_reports,
            debug=config.debug,
        )
        if local_only:
            self.remote = None
        elif remote is not None:
            self.remote = remote
        else:
            self.remote = RemoteCorrector.from_config(config, health=self.health)
        self.metrics = metrics
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="textnav-remote")

    def analyze(self, text: str) -> AnalysisResult:
        """Analyze `text`. Never raises."""
        start = time.perf_counter()
        analysis_id = str(uuid4())

        if not text or not text.strip():
            return AnalysisResult(reports=[], source="local", remote_outcome=RemoteOutcome.SKIPPED)

        race, outcome = self._start_remote(text)

        # Local baseline is always ready before any decision is made
        local_reports = self._run_local(text)

        attempt: Optional[CorrectionAttempt] = None
        remote_reports: List[ErrorReport] = []
        if race is not None:
            outcome, attempt, remote_reports = self._settle(race, text)

        reports, source = reconcile(local_reports, remote_reports, self.config.max_reports)

        result = AnalysisResult(
            reports=reports,
            source=source,
            remote_outcome=outcome,
            elapsed_ms=(time.perf_counter() - start) * 1000,
            attempt=attempt,
        )
        print(f"[Analyzer] {len(reports)} report(s) from {source} "
              f"(remote: {outcome.value}) in {result.elapsed_ms/1000:.2f}s")

        if self.metrics:
            try:
                log_analysis(self.metrics, analysis_id, text, result)
            except Exception as e:
                print(f"[Analyzer] Metrics error: {e}")

        return result

    def _start_remote(self, text: str) -> Tuple[Optional[RemoteRace], RemoteOutcome]:
        """Submit the remote call if the service should be tried."""
        if self.remote is None:
            return None, RemoteOutcome.SKIPPED
        if not self.health.should_attempt():
            print("[Analyzer] Remote service backing off, using local checks only")
            return None, RemoteOutcome.UNAVAILABLE

        deadline = time.monotonic() + self.config.analysis_timeout
        try:
            future = self._executor.submit(
                self.remote.correct,
                text,
                self.config.request_timeout,
                self.config.max_retries,
            )
        except RuntimeError as e:
            # Executor already shut down
            print(f"[Analyzer] Could not start remote check: {e}")
            return None, RemoteOutcome.FAILED
        # Outcome is decided when the race settles
        return RemoteRace(future, deadline), RemoteOutcome.TIMED_OUT

    def _run_local(self, text: str) -> List[ErrorReport]:
        try:
            return self.checker.check(text)
        except Exception as e:
            print(f"[Analyzer] Local check failed: {e}")
            return []

    def _settle(
        self, race: RemoteRace, text: str
    ) -> Tuple[RemoteOutcome, Optional[CorrectionAttempt], List[ErrorReport]]:
        """Wait for the remote within the deadline and turn it into reports."""
        try:
            attempt = race.wait()
        except Exception as e:
            print(f"[Analyzer] Remote check raised: {e}")
            return RemoteOutcome.FAILED, None, []

        if attempt is None:
            print(f"[Analyzer] Remote timed out after {self.config.analysis_timeout:.1f}s, using local results")
            return RemoteOutcome.TIMED_OUT, None, []

        if not attempt.ok:
            outcome = RemoteOutcome.REJECTED if attempt.rejected else RemoteOutcome.FAILED
            return outcome, attempt, []

        rewrite = attempt.rewrite
        if rewrite.strip() == text.strip():
            return RemoteOutcome.UNCHANGED, attempt, []

        try:
            reports = to_reports(diff(text, rewrite))
        except Exception as e:
            print(f"[Analyzer] Alignment failed: {e}")
            return RemoteOutcome.NO_DIFFERENCES, attempt, []

        if not reports:
            return RemoteOutcome.NO_DIFFERENCES, attempt, []
        return RemoteOutcome.ACCEPTED, attempt, reports

    def learn(self, original: str, corrected: str) -> bool:
        """Record a correction the user accepted, for future local checks."""
        return self.history.learn(original, corrected)

    def warm_up(self) -> Optional[Future]:
        """Probe the remote service in the background."""
        if self.remote is None:
            return None
        return self._executor.submit(self.remote.probe)

    def shutdown(self) -> None:
        """Stop the worker pool without waiting for in-flight requests."""
        self._executor.shutdown(wait=False, cancel_futures=True)

