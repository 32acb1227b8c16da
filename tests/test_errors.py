"""Tests for error kinds and ambient helpers."""

from loguru import logger

from newsguard.config import Settings
from newsguard.errors import (
    AlreadyRunning,
    ErrorCode,
    ExhaustedRetries,
    MalformedRequestError,
    NewsguardError,
    ServiceUnavailable,
    TransientUpstreamFailure,
    error_message,
)
from newsguard.resilience import default_is_retryable
from newsguard.utils.log import setup_logging
from newsguard.utils.resources import resource_snapshot


class TestErrors:
    """Test error classification and serialization."""

    def test_transient_failure(self):
        error = TransientUpstreamFailure("news-api", "HTTP 502", context={"attempt": 2})

        assert str(error) == "news-api: HTTP 502"
        assert error.service == "news-api"
        assert error.code is ErrorCode.EXTERNAL_API_ERROR
        assert error.status_code == 502
        assert error.context == {"attempt": 2, "service": "news-api"}
        assert default_is_retryable(error)

    def test_to_dict_hides_context_by_default(self):
        error = ServiceUnavailable("summarizer", retry_after=12.5)

        assert error.to_dict() == {
            "code": "SERVICE_UNAVAILABLE",
            "message": error.user_message,
        }
        assert error.to_dict(include_context=True)["details"] == {
            "service": "summarizer",
            "retry_after": 12.5,
        }

    def test_retryable_flags(self):
        assert not default_is_retryable(MalformedRequestError("bad"))
        assert not default_is_retryable(AlreadyRunning("collection-1"))
        assert not default_is_retryable(ExhaustedRetries(3, RuntimeError("x")))
        assert default_is_retryable(ServiceUnavailable("x"))
        assert default_is_retryable(KeyError("plain errors retry"))

    def test_exhausted_retries_wraps_last_error(self):
        cause = TimeoutError()
        error = ExhaustedRetries(3, cause)

        assert error.last_error is cause
        assert str(error) == "TimeoutError"
        assert error.context["attempts"] == 3

    def test_custom_user_message(self):
        error = NewsguardError("internal detail", user_message="Try later")

        assert error.to_dict()["message"] == "Try later"
        assert error.status_code == 500

    def test_error_message_never_empty(self):
        assert error_message(ValueError("boom")) == "boom"
        assert error_message(ValueError()) == "ValueError"


class TestAmbientHelpers:
    """Test logging setup and resource snapshots."""

    def test_setup_logging_uses_configured_level(self):
        messages = []
        setup_logging(Settings(log_level="warning"))
        sink_id = logger.add(messages.append, level="WARNING", format="{message}")
        try:
            logger.info("hidden")
            logger.warning("shown")
        finally:
            logger.remove(sink_id)

        assert [m.strip() for m in messages] == ["shown"]

    def test_resource_snapshot(self):
        snapshot = resource_snapshot()

        assert snapshot.rss_bytes > 0
        assert snapshot.cpu_user_seconds >= 0.0
