"""
Tests for retry-after extraction and error classification.
"""
import httpx
import pytest

from antigravity_adapter.error_handler import (
    EmptyResponseError,
    UpstreamStatusError,
    UpstreamTransportError,
    classify_error,
    extract_retry_after_from_body,
    parse_duration,
)


class TestDurationParsing:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("3600", 3600),
            ("39s", 39),
            ("562476.752463453s", 562476),
            ("2h30m", 9000),
            ("156h14m36.752463453s", 562476),
            ("45m30s", 2730),
            ("", None),
            ("soon", None),
        ],
    )
    def test_formats(self, value, expected):
        assert parse_duration(value) == expected


class TestRetryAfter:

    def test_quota_reset_message(self):
        body = '{"error": {"message": "You have exhausted your capacity. Your quota will reset after 2h30m."}}'
        assert extract_retry_after_from_body(body) == 9000

    def test_retry_delay_field(self):
        body = '{"error": {"details": [{"retryDelay": "39s"}]}}'
        assert extract_retry_after_from_body(body) == 39

    def test_try_again_in_seconds(self):
        assert extract_retry_after_from_body("Please try again in 30 seconds") == 30

    def test_nothing_to_extract(self):
        assert extract_retry_after_from_body("Internal error") is None
        assert extract_retry_after_from_body(None) is None


class TestClassification:

    def test_status_codes(self):
        assert classify_error(UpstreamStatusError(401)).error_type == "authentication"
        assert classify_error(UpstreamStatusError(403)).error_type == "forbidden"
        assert classify_error(UpstreamStatusError(400, "bad")).error_type == "invalid_request"
        assert classify_error(UpstreamStatusError(503)).error_type == "server_error"

    def test_rate_limit_versus_quota(self):
        plain = classify_error(UpstreamStatusError(429, "slow down, retry after 5s"))
        assert plain.error_type == "rate_limit"
        assert plain.retry_after == 5
        assert plain.retryable

        quota = classify_error(UpstreamStatusError(429, "RESOURCE_EXHAUSTED"))
        assert quota.error_type == "quota_exceeded"

    def test_httpx_status_error(self):
        request = httpx.Request("POST", "https://upstream.example.com")
        response = httpx.Response(500, text="boom", request=request)
        error = httpx.HTTPStatusError("server", request=request, response=response)
        classified = classify_error(error)
        assert classified.error_type == "server_error"
        assert classified.status_code == 500

    def test_transport_and_empty(self):
        transport = UpstreamTransportError("https://x", httpx.ConnectError("refused"))
        assert classify_error(transport).error_type == "api_connection"
        assert classify_error(httpx.ReadTimeout("slow")).error_type == "api_connection"

        empty = classify_error(EmptyResponseError("gemini-2.5-flash"))
        assert empty.error_type == "server_error"
        assert empty.status_code == 503
        assert "gemini-2.5-flash" in str(empty.original_exception)

    def test_invalid_request_is_not_retryable(self):
        assert not classify_error(UpstreamStatusError(400)).retryable

    def test_unknown(self):
        classified = classify_error(ValueError("odd"))
        assert classified.error_type == "unknown"
        assert "type=unknown" in str(classified)

    def test_status_error_message_includes_snippet(self):
        error = UpstreamStatusError(502, "gateway exploded", url="https://x")
        assert "HTTP 502" in str(error)
        assert "gateway exploded" in str(error)
