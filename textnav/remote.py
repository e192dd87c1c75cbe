"""
Remote correction client.

Sends the user's text to a hosted sequence-rewriting model (Hugging Face
Inference API, grammarly/coedit-large by default) and retries transient
failures. Whatever comes back must pass validate_rewrite().

correct() reports failure as a value and never raises.
"""

import threading
import time
from typing import Any, Optional

import requests

from .state import ServiceHealth
from .types import ConfigSnapshot, CorrectionAttempt


PROBE_TEXT = "i has some apples in the kitchen"

# Prefixes the model sometimes echoes in front of its answer
ARTIFACT_PREFIXES = [
    "fix grammatical errors in this sentence:",
    "fix english grammar:",
    "fix grammar:",
    "corrected:",
    "output:",
]

# Anything above U+024F is outside Latin / Latin-extended
_LATIN_EXTENDED_MAX = 0x024F


class RemoteError(Exception):
    """Base class for remote correction failures."""


class TransientRemoteError(RemoteError):
    """Network error or 5xx; worth retrying."""


class ModelLoadingError(TransientRemoteError):
    """The hosted model is still warming up."""


class ResponseFormatError(TransientRemoteError):
    """Body could not be parsed into the expected schema."""


class ClientRequestError(RemoteError):
    """4xx from the service; retrying will not help."""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code


class RejectedResponseError(RemoteError):
    """Parsed fine but failed validation (echo, empty, wrong script, too long)."""


def parse_generation(payload: Any) -> str:
    """
    Extract the rewrite from a decoded JSON payload.

    Expected shape: [{"generated_text": "<string>"}]

    Raises:
        ModelLoadingError: payload is an error object saying the model is loading
        ResponseFormatError: anything else that doesn't match the schema
    """
    if isinstance(payload, dict):
        error = payload.get("error")
        if error is not None:
            message = str(error)
            if "loading" in message.lower() or "estimated_time" in payload:
                raise ModelLoadingError(message)
            raise ResponseFormatError(f"Service error: {message}")
        raise ResponseFormatError("Expected a JSON array, got an object")

    if not isinstance(payload, list) or not payload:
        raise ResponseFormatError("Expected a non-empty JSON array")

    first = payload[0]
    if not isinstance(first, dict):
        raise ResponseFormatError("Array element is not an object")

    text = first.get("generated_text")
    if not isinstance(text, str):
        raise ResponseFormatError("Missing string field 'generated_text'")
    return text


def count_foreign_chars(text: str) -> int:
    """Characters outside the Latin-extended range."""
    return sum(1 for c in text if ord(c) > _LATIN_EXTENDED_MAX)


def normalize_rewrite(text: str, instruction: str = "") -> str:
    """Trim whitespace and any prompt-artifact prefix the service echoed back."""
    cleaned = text.strip()
    prefixes = list(ARTIFACT_PREFIXES)
    if instruction.strip():
        prefixes.insert(0, instruction.strip().lower())

    stripped = True
    while stripped:
        stripped = False
        lowered = cleaned.lower()
        for prefix in prefixes:
            if lowered.startswith(prefix):
                cleaned = cleaned[len(prefix):].strip()
                stripped = True
                break
    return cleaned


def validate_rewrite(
    original: str,
    rewrite: str,
    request_text: Optional[str] = None,
    max_length_ratio: float = 2.0,
    max_foreign_chars: int = 5,
) -> None:
    """
    Raise RejectedResponseError if `rewrite` is not a plausible correction.

    A rewrite identical to the original is valid: the model found nothing
    to fix.
    """
    if rewrite == original:
        return

    if not rewrite.strip():
        raise RejectedResponseError("Empty response")

    if request_text is not None and request_text != original and rewrite.strip() == request_text.strip():
        raise RejectedResponseError("Response echoes the request")

    extra_foreign = count_foreign_chars(rewrite) - count_foreign_chars(original)
    if extra_foreign > max_foreign_chars:
        raise RejectedResponseError(f"Response looks like a different script ({extra_foreign} foreign chars)")

    if len(rewrite) < 2:
        raise RejectedResponseError("Response too short")

    if len(rewrite) > len(original) * max_length_ratio:
        raise RejectedResponseError(
            f"Response too long ({len(rewrite)} chars for {len(original)} char input)"
        )


class RemoteCorrector:
    """
    Client for the remote rewriting service.

    Usage:
        corrector = RemoteCorrector.from_config(snapshot, health)
        attempt = corrector.correct("She go to school")
        if attempt.ok:
            print(attempt.rewrite)
    """

    def __init__(
        self,
        api_url: str,
        api_token: str = "",
        instruction: str = "",
        request_timeout: float = 2.5,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
        max_length_ratio: float = 2.0,
        max_foreign_chars: int = 5,
        health: Optional[ServiceHealth] = None,
        session: Optional[requests.Session] = None,
        debug: bool = False,
        sleep=time.sleep,
    ):
        self.api_url = api_url
        self.api_token = api_token
        self.instruction = instruction
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.max_length_ratio = max_length_ratio
        self.max_foreign_chars = max_foreign_chars
        self.health = health if health is not None else ServiceHealth()
        # Persistent session for connection reuse
        self._session = session if session is not None else requests.Session()
        self.debug = debug
        self._sleep = sleep
        self._token_hint_lock = threading.Lock()
        self._token_hint_shown = False

    @classmethod
    def from_config(
        cls,
        config: ConfigSnapshot,
        health: Optional[ServiceHealth] = None,
        session: Optional[requests.Session] = None,
    ) -> "RemoteCorrector":
        return cls(
            api_url=config.api_url,
            api_token=config.api_token,
            instruction=config.instruction,
            request_timeout=config.request_timeout,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
            max_length_ratio=config.max_length_ratio,
            max_foreign_chars=config.max_foreign_chars,
            health=health,
            session=session,
            debug=config.debug,
        )

    def build_request_text(self, text: str) -> str:
        """Model input: the raw text, optionally behind an instruction prefix."""
        if self.instruction.strip():
            return f"{self.instruction.strip()} {text}"
        return text

    def correct(
        self,
        text: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> CorrectionAttempt:
        """
        Ask the service for a corrected rewrite of `text`.

        Args:
            text: Text to correct
            timeout: Per-request timeout in seconds (defaults to request_timeout)
            max_retries: Retries after the first attempt (defaults to max_retries)

        Returns:
            CorrectionAttempt with either `rewrite` or `failure` set
        """
        timeout = self.request_timeout if timeout is None else timeout
        max_retries = self.max_retries if max_retries is None else max_retries
        start = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        if not text or not text.strip():
            return CorrectionAttempt(input_text=text, failure="Empty input", elapsed_ms=elapsed())

        request_text = self.build_request_text(text)
        retries_used = 0
        last_error: Optional[RemoteError] = None

        for attempt in range(max_retries + 1):
            try:
                raw = self._request(request_text, timeout)
                break
            except ClientRequestError as e:
                print(f"[Remote] Request rejected by service: {e}")
                return CorrectionAttempt(
                    input_text=text,
                    failure=str(e),
                    elapsed_ms=elapsed(),
                    retries_used=retries_used,
                )
            except TransientRemoteError as e:
                last_error = e
                if attempt < max_retries:
                    retries_used += 1
                    print(f"[Remote] {e} - retrying in {self.retry_backoff:.1f}s "
                          f"({max_retries - attempt} attempts left)")
                    self._sleep(self.retry_backoff)
                else:
                    print(f"[Remote] {e} - giving up after {attempt + 1} attempts")
        else:
            if not isinstance(last_error, (ModelLoadingError, ResponseFormatError)):
                self.health.mark_unreachable()
            return CorrectionAttempt(
                input_text=text,
                failure=str(last_error) if last_error else "Unknown failure",
                elapsed_ms=elapsed(),
                retries_used=retries_used,
            )

        rewrite = normalize_rewrite(raw, self.instruction)
        try:
            validate_rewrite(
                text,
                rewrite,
                request_text=request_text,
                max_length_ratio=self.max_length_ratio,
                max_foreign_chars=self.max_foreign_chars,
            )
        except RejectedResponseError as e:
            print(f"[Remote] Rejected response: {e}")
            return CorrectionAttempt(
                input_text=text,
                failure=str(e),
                elapsed_ms=elapsed(),
                retries_used=retries_used,
                rejected=True,
            )

        if rewrite != text:
            print(f"[Remote] Corrected '{text}' -> '{rewrite}' ({elapsed()/1000:.2f}s)")
        return CorrectionAttempt(
            input_text=text,
            rewrite=rewrite,
            elapsed_ms=elapsed(),
            retries_used=retries_used,
        )

    def _request(self, request_text: str, timeout: float) -> str:
        """One HTTP round trip. Returns the generated text or raises a RemoteError."""
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        else:
            self._show_token_hint()

        try:
            response = self._session.post(
                self.api_url,
                headers=headers,
                json={"inputs": request_text},
                timeout=timeout,
            )
        except requests.Timeout as e:
            raise TransientRemoteError(f"Timed out after {timeout:.1f}s") from e
        except requests.RequestException as e:
            raise TransientRemoteError(f"Network error: {e}") from e

        # Any HTTP answer means the service is up, even if it is unhappy
        self.health.mark_reachable()

        if self.debug:
            print(f"[Remote] HTTP {response.status_code}: {response.text[:500]}")

        if response.status_code >= 500:
            loading = _loading_message(response)
            if loading:
                raise ModelLoadingError(f"Model loading: {loading}")
            raise TransientRemoteError(f"Server error: HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ClientRequestError(response.status_code, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseFormatError(f"Invalid JSON: {e}") from e

        return parse_generation(payload)

    def probe(self) -> bool:
        """
        Check that the service answers with a usable rewrite.

        Transport failures mark the shared ServiceHealth unreachable.
        """
        attempt = self.correct(PROBE_TEXT)
        if attempt.ok:
            print(f"[Remote] Service ready ({attempt.elapsed_ms/1000:.2f}s)")
            self.health.mark_reachable()
            return True
        print(f"[Remote] Service probe failed: {attempt.failure}")
        return False

    def _show_token_hint(self) -> None:
        with self._token_hint_lock:
            if self._token_hint_shown:
                return
            self._token_hint_shown = True
        print("[Remote] No HF_API_TOKEN configured, sending anonymous requests")

    def close(self) -> None:
        self._session.close()


def _loading_message(response: requests.Response) -> str:
    """Error message from a 5xx body that says the model is warming up."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    try:
        parse_generation(body)
    except ModelLoadingError as e:
        return str(e)
    except ResponseFormatError:
        return ""
    return ""
