"""Tests for rate limiting and retry utilities."""

from __future__ import annotations

import time
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import EndpointConnectionError

from static_site_operator.utils.errors import TransientProviderError
from static_site_operator.utils.rate_limit import (
    call_with_retries,
    is_throttling_error,
    is_transient_error,
    rate_limit_aws,
)

from fakes import client_error


class TestRateLimitAws:
    """Test cases for AWS API rate limiting."""

    def test_rate_limit_aws_with_args(self):
        """Test rate limiting with function arguments."""
        @rate_limit_aws
        def test_func(a, b, c=None):
            return f"{a}-{b}-{c}"

        assert test_func("x", "y", c="z") == "x-y-z"

    @patch("static_site_operator.utils.rate_limit._AWS_RATE_LIMIT_PER_SECOND", 100.0)
    def test_rate_limit_aws_enforces_rate(self):
        """Test that rate limiting enforces minimum interval."""
        call_times = []

        @rate_limit_aws
        def test_func():
            call_times.append(time.time())

        for _ in range(3):
            test_func()

        # With 100 calls/sec, minimum interval is 0.01 seconds
        assert call_times[1] - call_times[0] >= 0.009
        assert call_times[2] - call_times[1] >= 0.009


class TestErrorClassification:
    """Test cases for transient error detection."""

    @pytest.mark.parametrize("code", ["Throttling", "ThrottlingException", "SlowDown", "ServiceUnavailable"])
    def test_transient_codes(self, code):
        """Test that throttling and availability codes are transient."""
        assert is_transient_error(client_error(code))

    def test_server_error_status_is_transient(self):
        """Test that any 5xx response is transient."""
        assert is_transient_error(client_error("Whatever", status=503))

    def test_connection_error_is_transient(self):
        """Test that connection failures are transient."""
        assert is_transient_error(EndpointConnectionError(endpoint_url="https://acm.us-east-1.amazonaws.com"))

    def test_client_error_is_not_transient(self):
        """Test that validation and not-found errors are not retried."""
        assert not is_transient_error(client_error("NoSuchBucket", status=404))
        assert not is_transient_error(client_error("AccessDenied", status=403))
        assert not is_transient_error(ValueError("nope"))

    def test_throttling_detection(self):
        """Test throttling detection separately from other transient errors."""
        assert is_throttling_error(client_error("ThrottlingException"))
        assert is_throttling_error(client_error("Anything", status=429))
        assert not is_throttling_error(client_error("InternalError", status=500))


class TestCallWithRetries:
    """Test cases for call_with_retries."""

    def test_returns_first_success(self):
        """Test that a successful call is not retried."""
        fn = MagicMock(return_value="ok")
        sleep = MagicMock()

        assert call_with_retries(fn, "op", sleep=sleep) == "ok"
        fn.assert_called_once()
        sleep.assert_not_called()

    def test_retries_transient_then_succeeds(self):
        """Test recovery after transient failures."""
        fn = MagicMock(side_effect=[client_error("Throttling"), client_error("InternalError", 500), "ok"])
        sleep = MagicMock()

        assert call_with_retries(fn, "op", max_retries=5, base_delay=1.0, sleep=sleep) == "ok"
        assert fn.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_backoff_is_bounded(self):
        """Test that backoff never exceeds the maximum delay."""
        fn = MagicMock(side_effect=[client_error("Throttling")] * 8 + ["ok"])
        sleep = MagicMock()

        call_with_retries(fn, "op", max_retries=10, base_delay=4.0, sleep=sleep)

        assert max(c.args[0] for c in sleep.call_args_list) == 30.0

    def test_gives_up_after_max_retries(self):
        """Test that exhausted retries end as TransientProviderError."""
        fn = MagicMock(side_effect=client_error("ServiceUnavailable", 503))

        with pytest.raises(TransientProviderError) as excinfo:
            call_with_retries(fn, "describe_certificate", max_retries=2, base_delay=0.0, sleep=MagicMock())

        assert excinfo.value.attempts == 3
        assert fn.call_count == 3
        assert "describe_certificate" in str(excinfo.value)

    def test_non_transient_error_propagates_unchanged(self):
        """Test that permanent errors are raised immediately."""
        error = client_error("AccessDenied", 403)
        fn = MagicMock(side_effect=error)

        with pytest.raises(type(error)) as excinfo:
            call_with_retries(fn, "op", sleep=MagicMock())

        assert excinfo.value is error
        fn.assert_called_once()

    @patch("static_site_operator.utils.rate_limit.metrics")
    def test_throttling_counted(self, mock_metrics):
        """Test that throttling responses increment the rate limit metric."""
        fn = MagicMock(side_effect=[client_error("Throttling"), "ok"])

        call_with_retries(fn, "op", base_delay=0.0, sleep=MagicMock())

        mock_metrics.rate_limit_hits_total.labels.assert_called_once_with(api_type="aws")
