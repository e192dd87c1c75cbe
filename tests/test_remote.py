"""
Tests for the remote correction client.

The HTTP session is a scripted fake and sleep is a no-op recorder, so
retry behaviour is checked without touching the network or the clock.
"""

import pytest
import requests


API_URL = "https://example.invalid/models/coedit"


def generation(text):
    return [{"generated_text": text}]


class TestParseGeneration:
    """Response body schema."""

    def test_generated_text_extracted(self):
        from textnav.remote import parse_generation

        assert parse_generation(generation("She goes.")) == "She goes."

    def test_loading_error_object(self):
        from textnav.remote import ModelLoadingError, parse_generation

        with pytest.raises(ModelLoadingError):
            parse_generation({"error": "Model grammarly/coedit-large is currently loading",
                              "estimated_time": 20.0})

    def test_other_error_object(self):
        from textnav.remote import ResponseFormatError, parse_generation

        with pytest.raises(ResponseFormatError):
            parse_generation({"error": "Something broke"})

    @pytest.mark.parametrize("payload", [
        [],
        ["She goes."],
        [{"text": "She goes."}],
        [{"generated_text": 42}],
        {"generated_text": "She goes."},
        "She goes.",
        None,
    ])
    def test_malformed_payloads(self, payload):
        from textnav.remote import ResponseFormatError, parse_generation

        with pytest.raises(ResponseFormatError):
            parse_generation(payload)


class TestValidateRewrite:
    """Plausibility checks on the returned text."""

    def test_identical_rewrite_is_valid(self):
        from textnav.remote import validate_rewrite

        validate_rewrite("She went home.", "She went home.")

    def test_ordinary_correction_is_valid(self):
        from textnav.remote import validate_rewrite

        validate_rewrite("She go to school", "She goes to school.")

    def test_empty_rejected(self):
        from textnav.remote import RejectedResponseError, validate_rewrite

        with pytest.raises(RejectedResponseError, match="Empty"):
            validate_rewrite("She go", "   ")

    def test_echoed_request_rejected(self):
        from textnav.remote import RejectedResponseError, validate_rewrite

        with pytest.raises(RejectedResponseError, match="echoes"):
            validate_rewrite("she go", "Fix grammar: she go", request_text="Fix grammar: she go")

    def test_foreign_script_rejected(self):
        from textnav.remote import RejectedResponseError, validate_rewrite

        with pytest.raises(RejectedResponseError, match="script"):
            validate_rewrite("This is fine.", "这是一个完全不同的句子")

    def test_foreign_chars_already_in_input_allowed(self):
        from textnav.remote import validate_rewrite

        validate_rewrite("Ich mag 東京都の寿司", "Ich mag 東京都の寿司.")

    def test_too_short_rejected(self):
        from textnav.remote import RejectedResponseError, validate_rewrite

        with pytest.raises(RejectedResponseError, match="short"):
            validate_rewrite("a b", "x")

    def test_too_long_rejected(self):
        from textnav.remote import RejectedResponseError, validate_rewrite

        with pytest.raises(RejectedResponseError, match="long"):
            validate_rewrite("Hi there", "Hi there, how are you doing today?")


class TestNormalizeRewrite:
    """Prompt artifacts stripped from responses."""

    def test_trims_whitespace(self):
        from textnav.remote import normalize_rewrite

        assert normalize_rewrite("  She goes.\n") == "She goes."

    def test_strips_known_prefix(self):
        from textnav.remote import normalize_rewrite

        assert normalize_rewrite("Corrected: She goes.") == "She goes."

    def test_strips_stacked_prefixes(self):
        from textnav.remote import normalize_rewrite

        assert normalize_rewrite("Fix grammar: Output: hi there") == "hi there"

    def test_strips_configured_instruction(self):
        from textnav.remote import normalize_rewrite

        assert normalize_rewrite("Make it formal: Hello.", "Make it formal:") == "Hello."


class TestRemoteCorrector:
    """Retry, failure and validation behaviour of correct()."""

    def create_corrector(self, fakes, script, **kwargs):
        from textnav.remote import RemoteCorrector
        from textnav.state import ServiceHealth

        session = fakes.Session(script)
        sleeps = []
        defaults = {
            "api_url": API_URL,
            "api_token": "hf_test_token",
            "health": ServiceHealth(),
            "session": session,
            "sleep": sleeps.append,
        }
        defaults.update(kwargs)
        return RemoteCorrector(**defaults), session, sleeps

    def test_successful_correction(self, fakes):
        corrector, session, sleeps = self.create_corrector(
            fakes, [fakes.Response(200, generation("She goes to school."))]
        )

        attempt = corrector.correct("She go to school.")

        assert attempt.ok
        assert attempt.rewrite == "She goes to school."
        assert attempt.retries_used == 0
        assert sleeps == []

        call = session.calls[0]
        assert call["url"] == API_URL
        assert call["json"] == {"inputs": "She go to school."}
        assert call["headers"]["Authorization"] == "Bearer hf_test_token"
        assert call["timeout"] == 2.5

    def test_timeout_argument_overrides_default(self, fakes):
        corrector, session, _ = self.create_corrector(
            fakes, [fakes.Response(200, generation("She goes."))]
        )

        corrector.correct("She go.", timeout=0.5)

        assert session.calls[0]["timeout"] == 0.5

    def test_server_error_retried(self, fakes):
        corrector, session, sleeps = self.create_corrector(fakes, [
            fakes.Response(503, {"error": "Service busy"}),
            fakes.Response(200, generation("She goes.")),
        ])

        attempt = corrector.correct("She go.")

        assert attempt.ok
        assert attempt.retries_used == 1
        assert len(session.calls) == 2
        assert sleeps == [1.0]

    def test_connection_error_retried_then_marks_unreachable(self, fakes):
        corrector, session, sleeps = self.create_corrector(
            fakes, [requests.ConnectionError("refused")] * 3
        )

        attempt = corrector.correct("She go.")

        assert not attempt.ok
        assert "Network error" in attempt.failure
        assert attempt.retries_used == 2
        assert len(session.calls) == 3
        assert sleeps == [1.0, 1.0]
        assert corrector.health.is_reachable is False
        assert corrector.health.consecutive_failures == 1

    def test_request_timeout_is_transient(self, fakes):
        corrector, session, _ = self.create_corrector(fakes, [
            requests.Timeout("read timed out"),
            fakes.Response(200, generation("She goes.")),
        ])

        attempt = corrector.correct("She go.")

        assert attempt.ok
        assert attempt.retries_used == 1

    def test_model_loading_retried_without_marking_unreachable(self, fakes):
        loading = {"error": "Model grammarly/coedit-large is currently loading", "estimated_time": 20.0}
        corrector, session, _ = self.create_corrector(
            fakes, [fakes.Response(503, loading)] * 3
        )

        attempt = corrector.correct("She go.")

        assert not attempt.ok
        assert "loading" in attempt.failure
        assert len(session.calls) == 3
        assert corrector.health.is_reachable is True

    def test_client_error_not_retried(self, fakes):
        corrector, session, sleeps = self.create_corrector(
            fakes, [fakes.Response(401, {"error": "Authorization header is invalid"})]
        )

        attempt = corrector.correct("She go.")

        assert not attempt.ok
        assert attempt.failure == "HTTP 401"
        assert len(session.calls) == 1
        assert sleeps == []
        assert corrector.health.is_reachable is True

    def test_invalid_json_retried(self, fakes):
        corrector, session, _ = self.create_corrector(
            fakes, [fakes.Response(200, text="<html>oops</html>")] * 3
        )

        attempt = corrector.correct("She go.")

        assert not attempt.ok
        assert "Invalid JSON" in attempt.failure
        assert len(session.calls) == 3

    def test_max_retries_override(self, fakes):
        corrector, session, _ = self.create_corrector(
            fakes, [fakes.Response(503, {"error": "Service busy"})]
        )

        attempt = corrector.correct("She go.", max_retries=0)

        assert not attempt.ok
        assert len(session.calls) == 1

    def test_rejected_response_not_retried(self, fakes):
        corrector, session, _ = self.create_corrector(
            fakes, [fakes.Response(200, generation("这是一个完全不同的句子"))]
        )

        attempt = corrector.correct("This is fine.")

        assert not attempt.ok
        assert attempt.rejected is True
        assert len(session.calls) == 1

    def test_unchanged_rewrite_is_ok(self, fakes):
        corrector, _, _ = self.create_corrector(
            fakes, [fakes.Response(200, generation("She went home."))]
        )

        attempt = corrector.correct("She went home.")

        assert attempt.ok
        assert attempt.rewrite == "She went home."

    def test_instruction_prefix_sent_and_stripped(self, fakes):
        corrector, session, _ = self.create_corrector(
            fakes,
            [fakes.Response(200, generation("Fix grammar: She goes."))],
            instruction="Fix grammar:",
        )

        attempt = corrector.correct("she go")

        assert session.calls[0]["json"] == {"inputs": "Fix grammar: she go"}
        assert attempt.ok
        assert attempt.rewrite == "She goes."

    def test_empty_input_skips_request(self, fakes):
        corrector, session, _ = self.create_corrector(fakes, [])

        attempt = corrector.correct("   ")

        assert not attempt.ok
        assert session.calls == []

    def test_success_restores_health(self, fakes):
        corrector, _, _ = self.create_corrector(
            fakes, [fakes.Response(200, generation("She goes."))]
        )
        corrector.health.mark_unreachable()

        corrector.correct("She go.")

        assert corrector.health.is_reachable is True
        assert corrector.health.consecutive_failures == 0

    def test_anonymous_requests_hint_once(self, fakes, capsys):
        corrector, session, _ = self.create_corrector(
            fakes,
            [fakes.Response(200, generation("She goes.")), fakes.Response(200, generation("He goes."))],
            api_token="",
        )

        corrector.correct("She go.")
        corrector.correct("He go.")

        assert "Authorization" not in session.calls[0]["headers"]
        assert capsys.readouterr().out.count("No HF_API_TOKEN") == 1

    def test_probe(self, fakes):
        from textnav.remote import PROBE_TEXT

        corrector, session, _ = self.create_corrector(
            fakes, [fakes.Response(200, generation("I have some apples in the kitchen."))]
        )

        assert corrector.probe() is True
        assert session.calls[0]["json"] == {"inputs": PROBE_TEXT}

    def test_probe_failure(self, fakes):
        corrector, _, _ = self.create_corrector(
            fakes, [requests.ConnectionError("refused")] * 3
        )

        assert corrector.probe() is False
        assert corrector.health.is_reachable is False

    def test_from_config(self, fakes, make_config):
        from textnav.remote import RemoteCorrector

        config = make_config(instruction="Fix grammar:", request_timeout=1.5, max_retries=1)
        corrector = RemoteCorrector.from_config(config, session=fakes.Session([]))

        assert corrector.api_url == config.api_url
        assert corrector.request_timeout == 1.5
        assert corrector.max_retries == 1
        assert corrector.build_request_text("she go") == "Fix grammar: she go"

    def test_close_closes_session(self, fakes):
        corrector, session, _ = self.create_corrector(fakes, [])

        corrector.close()

        assert session.closed is True
