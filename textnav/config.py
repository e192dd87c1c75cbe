"""
Configuration management with immutable snapshots.

Loads from: environment variables > .env > settings.json > defaults
Provides immutable snapshots for analyzer isolation.
"""

from pathlib import Path
from typing import Optional
import json
import os

from .types import ConfigSnapshot


DEFAULT_API_URL = "https://api-inference.huggingface.co/models/grammarly/coedit-large"

# Defaults
DEFAULT_CONFIG = {
    # Remote service
    "api_url": DEFAULT_API_URL,
    "instruction": "",  # Empty: raw text is sent as the model input

    # Timing
    "analysis_timeout": 3.0,  # Wall clock budget for the whole remote path
    "request_timeout": 2.5,
    "max_retries": 2,
    "retry_backoff": 1.0,

    # Reconciliation
    "max_reports": 5,

    # Local checking
    "spelling_threshold": 0.5,
    "spelling_distance": 2,

    # Response validation
    "max_length_ratio": 2.0,
    "max_foreign_chars": 5,

    # Service health
    "health_cooldown": 30.0,

    # Diagnostics
    "metrics_enabled": True,
    "debug": False,
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _coerce(value, default):
    """Coerce a settings value to the type of its default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)
    return type(default)(value)


class Config:
    """
    Single source of truth for all settings.

    Usage:
        config = Config.load()
        snapshot = config.snapshot()  # Immutable copy for an analyzer
    """

    def __init__(self, data_dir: Optional[Path] = None):
        # Remote service
        self.api_url: str = DEFAULT_API_URL
        self.api_token: str = ""
        self.instruction: str = ""

        # Timing
        self.analysis_timeout: float = 3.0
        self.request_timeout: float = 2.5
        self.max_retries: int = 2
        self.retry_backoff: float = 1.0

        # Reconciliation
        self.max_reports: int = 5

        # Local checking
        self.spelling_threshold: float = 0.5
        self.spelling_distance: int = 2

        # Response validation
        self.max_length_ratio: float = 2.0
        self.max_foreign_chars: int = 5

        # Service health
        self.health_cooldown: float = 30.0

        # Diagnostics
        self.metrics_enabled: bool = True
        self.debug: bool = False

        # Paths
        self.data_dir: Path = Path(data_dir) if data_dir else Path.home() / ".textnav"
        self.settings_file: Path = self.data_dir / "settings.json"
        self.env_file: Path = self.data_dir / ".env"
        self.metrics_file: Path = self.data_dir / "metrics.jsonl"
        self.history_file: Path = self.data_dir / "corrections.json"

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from all sources."""
        config = cls(data_dir)
        config._ensure_data_dir()
        config._load_settings()
        config._load_env()
        return config

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"[Config] Could not create {self.data_dir}: {e}")

    def _load_env(self) -> None:
        """Load the API token and endpoint from .env files and the environment."""
        env_file = Path(".env")
        if env_file.exists():
            self._parse_env_file(env_file)

        if self.env_file.exists():
            self._parse_env_file(self.env_file)

        # Environment variables override file values
        self.api_token = os.getenv("HF_API_TOKEN", self.api_token)
        self.api_url = os.getenv("TEXTNAV_API_URL", self.api_url)
        if "TEXTNAV_DEBUG" in os.environ:
            self.debug = _coerce(os.environ["TEXTNAV_DEBUG"], False)

    def _parse_env_file(self, env_file: Path) -> None:
        """Parse a .env file and extract known keys."""
        try:
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip("'\"")

                    if key == "HF_API_TOKEN":
                        self.api_token = value
                    elif key == "TEXTNAV_API_URL":
                        self.api_url = value
        except Exception as e:
            print(f"[Config] Error loading {env_file}: {e}")

    def _load_settings(self) -> None:
        """Load settings from settings.json."""
        # Project root first, then the user's data dir (overrides)
        project_settings = Path("settings.json")
        if project_settings.exists():
            self._apply_settings_file(project_settings)

        if self.settings_file.exists():
            self._apply_settings_file(self.settings_file)

    def _apply_settings_file(self, settings_file: Path) -> None:
        """Apply settings from a JSON file."""
        try:
            with open(settings_file) as f:
                data = json.load(f)
        except Exception as e:
            print(f"[Config] Error loading {settings_file}: {e}")
            return

        if not isinstance(data, dict):
            print(f"[Config] Ignoring {settings_file}: expected a JSON object")
            return

        for key, default in DEFAULT_CONFIG.items():
            if key not in data:
                continue
            try:
                setattr(self, key, _coerce(data[key], default))
            except (TypeError, ValueError):
                print(f"[Config] Invalid value for {key}: {data[key]!r}, keeping {getattr(self, key)!r}")

    def save_settings(self) -> None:
        """Save user-editable settings to settings.json."""
        data = {key: getattr(self, key) for key in DEFAULT_CONFIG}

        self._ensure_data_dir()
        with open(self.settings_file, "w") as f:
            json.dump(data, f, indent=2)

    def snapshot(self) -> ConfigSnapshot:
        """Return immutable copy for analyzer isolation."""
        return ConfigSnapshot(
            api_url=self.api_url,
            api_token=self.api_token,
            instruction=self.instruction,
            analysis_timeout=self.analysis_timeout,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_backoff=self.retry_backoff,
            max_reports=self.max_reports,
            spelling_threshold=self.spelling_threshold,
            spelling_distance=self.spelling_distance,
            max_length_ratio=self.max_length_ratio,
            max_foreign_chars=self.max_foreign_chars,
            health_cooldown=self.health_cooldown,
            metrics_enabled=self.metrics_enabled,
            debug=self.debug,
            metrics_file=str(self.metrics_file),
            history_file=str(self.history_file),
        )
