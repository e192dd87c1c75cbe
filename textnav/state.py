"""
Long-lived state shared by concurrent analyses.

Both objects are created once by the caller and injected into the
ErrorAnalyzer; nothing here is a module-level singleton.
"""

import json
import threading
import time
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional


class CorrectionHistory:
    """
    User-approved corrections (misspelling -> accepted correction).

    Reads never take the lock: writers build a new mapping and swap it in,
    so a reader always sees a complete snapshot. Writes are serialized so
    two concurrent learn() calls cannot lose each other's entry.

    Usage:
        history = CorrectionHistory(path=config.history_file)
        history.learn("recieve", "receive")
        history.lookup("recieve")  # -> "receive"
    """

    def __init__(self, path: Optional[Path] = None, entries: Optional[Dict[str, str]] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        initial: Dict[str, str] = {}
        if self.path is not None:
            initial.update(self._load())
        if entries:
            initial.update(entries)
        self._entries: Mapping[str, str] = MappingProxyType(initial)

    def lookup(self, word: str) -> Optional[str]:
        """Remembered correction for this exact misspelling, if any."""
        return self._entries.get(word)

    def __contains__(self, word: str) -> bool:
        return word in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._entries)

    def learn(self, original: str, corrected: str) -> bool:
        """
        Remember that the user accepted `corrected` for `original`.

        Returns True if the pair was stored.
        """
        original = (original or "").strip()
        corrected = (corrected or "").strip()
        if not original or not corrected:
            return False
        if original.lower() == corrected.lower():
            return False
        if len(original.split()) != 1 or len(corrected.split()) != 1:
            # Keys are single words; phrase-level edits are not cached
            return False

        with self._lock:
            if self._entries.get(original) == corrected:
                return True
            updated = dict(self._entries)
            updated[original] = corrected
            self._entries = MappingProxyType(updated)
            if self.path is not None:
                self._save(updated)

        print(f"[History] Learned '{original}' -> '{corrected}'")
        return True

    def _load(self) -> Dict[str, str]:
        """Load persisted corrections, ignoring a missing or corrupt file."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except Exception as e:
            print(f"[History] Error loading {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            print(f"[History] Ignoring {self.path}: expected a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items() if k and v}

    def _save(self, entries: Dict[str, str]) -> None:
        """Write all corrections. Caller holds the lock."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(entries, f, indent=2, sort_keys=True)
        except OSError as e:
            print(f"[History] Failed to save {self.path}: {e}")


# Backoff never grows past this
MAX_BACKOFF_SECONDS = 300


class ServiceHealth:
    """
    Tracks whether the remote correction service is currently reachable.

    After a failure the service is skipped for a cooldown that doubles with
    each consecutive failure (capped at 5 minutes). Any success resets it.
    """

    def __init__(self, cooldown: float = 30.0, clock=time.monotonic):
        self.cooldown = cooldown
        self._clock = clock
        self._lock = threading.Lock()
        self._reachable = True
        self._failures = 0
        self._retry_after = 0.0

    @property
    def is_reachable(self) -> bool:
        with self._lock:
            return self._reachable

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._failures

    def mark_reachable(self) -> None:
        with self._lock:
            if not self._reachable:
                print("[Health] Remote service reachable again")
            self._reachable = True
            self._failures = 0
            self._retry_after = 0.0

    def mark_unreachable(self) -> None:
        with self._lock:
            self._reachable = False
            self._failures += 1
            backoff = min(self.cooldown * 2 ** (self._failures - 1), MAX_BACKOFF_SECONDS)
            self._retry_after = self._clock() + backoff
            failures = self._failures
        print(f"[Health] Remote service unreachable, backing off {backoff:.0f}s after {failures} failure(s)")

    def should_attempt(self) -> bool:
        """True if the remote should be tried for the next analysis."""
        with self._lock:
            return self._reachable or self._clock() >= self._retry_after
