"""
Main entry point for textnav.

Run with: python -m textnav "text to check"
      or: python -m textnav            (one text per line on stdin)
"""

import argparse
import json
import signal
import sys
from dataclasses import asdict
from typing import List, Optional

from . import __version__
from .analyzer import ErrorAnalyzer
from .config import Config
from .metrics import MetricsWriter
from .narration import format_for_narration
from .state import CorrectionHistory, ServiceHealth
from .types import AnalysisResult


analyzer: Optional[ErrorAnalyzer] = None
metrics: Optional[MetricsWriter] = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="textnav",
        description="Find spelling and grammar issues in short text.",
    )
    parser.add_argument("text", nargs="*", help="Text to analyze (reads stdin lines if omitted)")
    parser.add_argument("--local-only", action="store_true", help="Skip the remote correction service")
    parser.add_argument("--probe", action="store_true", help="Check that the remote service answers")
    parser.add_argument("--learn", nargs=2, metavar=("WRONG", "RIGHT"), help="Remember a correction")
    parser.add_argument("--json", action="store_true", help="Print reports as JSON")
    parser.add_argument("--version", action="version", version=f"textnav {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    global analyzer, metrics

    args = build_parser().parse_args(argv)

    config = Config.load()
    snapshot = config.snapshot()

    history = CorrectionHistory(path=config.history_file)

    if args.learn:
        wrong, right = args.learn
        if not history.learn(wrong, right):
            print(f"Not stored: '{wrong}' -> '{right}' (need two different single words)")
            return 1
        return 0

    if snapshot.metrics_enabled:
        metrics = MetricsWriter(config.metrics_file)

    analyzer = ErrorAnalyzer(
        snapshot,
        history=history,
        health=ServiceHealth(cooldown=snapshot.health_cooldown),
        metrics=metrics,
        local_only=args.local_only,
    )

    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        if args.probe:
            future = analyzer.warm_up()
            if future is None:
                print("Remote service disabled (--local-only)")
                return 1
            return 0 if future.result() else 1

        if args.text:
            _print_result(analyzer.analyze(" ".join(args.text)), args.json)
            return 0

        print(f"textnav {__version__} ready. One text per line, Ctrl+D to quit.")
        for line in sys.stdin:
            text = line.rstrip("\n")
            if not text.strip():
                continue
            _print_result(analyzer.analyze(text), args.json)
        return 0

    except KeyboardInterrupt:
        return 130
    finally:
        shutdown()


def _print_result(result: AnalysisResult, as_json: bool) -> None:
    if as_json:
        payload = [
            {
                "kind": r.kind.value,
                "description": r.description,
                "span": asdict(r.span) if r.span else None,
                "error_text": r.error_text,
                "correction": r.correction,
            }
            for r in result.reports
        ]
        print(json.dumps(payload, indent=2))
    else:
        print(format_for_narration(result.reports))


def shutdown() -> None:
    """Clean shutdown."""
    if analyzer:
        analyzer.shutdown()
    if metrics:
        metrics.shutdown()


def _signal_handler(signum, frame):
    """Handle SIGTERM."""
    shutdown()
    sys.exit(0)


if __name__ == "__main__":
    sys.exit(main())
