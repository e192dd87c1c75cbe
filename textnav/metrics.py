"""
Thread-safe metrics logging with batched writes.

Usage:
    metrics = MetricsWriter(config.metrics_file)
    metrics.log("analysis", source="remote", reports=2, elapsed_ms=812)
"""

import json
import threading
import time
from pathlib import Path
from queue import Empty, Queue
from typing import Any, List

from .types import AnalysisResult


class MetricsWriter:
    """
    Appends metric events to a JSONL file from a background thread.
    log() only enqueues, so analyses never wait on disk I/O.
    """

    def __init__(self, metrics_file: Path):
        self.metrics_file = Path(metrics_file)
        self._queue: Queue = Queue()
        self._shutdown = threading.Event()
        self._writer_thread = threading.Thread(target=self._writer_loop, daemon=True)
        self._writer_thread.start()

    def log(self, event: str, **kwargs: Any) -> None:
        """
        Queue a metric for writing. Non-blocking.

        Args:
            event: Event name (e.g., "analysis", "remote_probe")
            **kwargs: Additional fields to log
        """
        self._queue.put({"ts": time.time(), "event": event, **kwargs})

    def _drain(self) -> List[dict]:
        entries = []
        while True:
            try:
                entries.append(self._queue.get_nowait())
            except Empty:
                return entries

    def _writer_loop(self) -> None:
        """Background thread that batches and writes metrics."""
        while not self._shutdown.is_set():
            try:
                first = self._queue.get(timeout=1.0)
            except Empty:
                continue
            self._write_entries([first] + self._drain())

    def _write_entries(self, entries: List[dict]) -> None:
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.metrics_file, "a") as f:
                for entry in entries:
                    f.write(json.dumps(entry, default=str) + "\n")
        except Exception as e:
            print(f"[Metrics] Failed to write metrics: {e}")

    def flush(self) -> None:
        """Write anything still queued."""
        entries = self._drain()
        if entries:
            self._write_entries(entries)

    def shutdown(self) -> None:
        """Stop the writer thread and flush."""
        self._shutdown.set()
        self._writer_thread.join(timeout=2.0)
        self.flush()


def log_analysis(metrics: MetricsWriter, analysis_id: str, text: str, result: AnalysisResult) -> None:
    """Log one analysis event."""
    attempt = result.attempt
    metrics.log(
        "analysis",
        analysis_id=analysis_id,
        chars=len(text),
        source=result.source,
        remote_outcome=result.remote_outcome.value,
        reports=len(result.reports),
        kinds=[r.kind.value for r in result.reports],
        elapsed_ms=round(result.elapsed_ms, 1),
        remote_ms=round(attempt.elapsed_ms, 1) if attempt else None,
        retries=attempt.retries_used if attempt else 0,
        failure=attempt.failure if attempt else None,
    )
