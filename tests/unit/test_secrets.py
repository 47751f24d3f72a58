"""Tests for secret utilities."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
from kubernetes.client.exceptions import ApiException

from static_site_operator.utils.secrets import get_optional_secret_value, get_secret_value


def _api(data):
    api = MagicMock()
    api.read_namespaced_secret.return_value = MagicMock(data=data)
    return api


def _encode(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


class TestGetSecretValue:
    """Test cases for get_secret_value."""

    def test_returns_decoded_value(self):
        """Test reading a base64 encoded key."""
        api = _api({"access-key": _encode("AKIAEXAMPLE")})

        assert get_secret_value(api, "web", "aws", "access-key") == "AKIAEXAMPLE"
        api.read_namespaced_secret.assert_called_once_with(name="aws", namespace="web")

    def test_missing_key(self):
        """Test that a missing key raises ValueError."""
        with pytest.raises(ValueError, match="Key 'secret-key' not found"):
            get_secret_value(_api({"access-key": _encode("x")}), "web", "aws", "secret-key")

    def test_empty_secret(self):
        """Test a secret with no data."""
        with pytest.raises(ValueError):
            get_secret_value(_api(None), "web", "aws", "access-key")

    def test_missing_secret(self):
        """Test that a 404 raises ValueError."""
        api = MagicMock()
        api.read_namespaced_secret.side_effect = ApiException(status=404)

        with pytest.raises(ValueError, match="Secret 'aws' not found in namespace 'web'"):
            get_secret_value(api, "web", "aws", "access-key")

    def test_other_api_errors_propagate(self):
        """Test that non-404 API errors are re-raised."""
        api = MagicMock()
        api.read_namespaced_secret.side_effect = ApiException(status=403)

        with pytest.raises(ApiException):
            get_secret_value(api, "web", "aws", "access-key")


class TestGetOptionalSecretValue:
    """Test cases for get_optional_secret_value."""

    def test_present(self):
        """Test reading a present key."""
        api = _api({"session-token": _encode("token")})
        assert get_optional_secret_value(api, "web", "aws", "session-token") == "token"

    def test_absent_key_returns_none(self):
        """Test that an absent key is not an error."""
        assert get_optional_secret_value(_api({}), "web", "aws", "session-token") is None

    def test_missing_secret_still_raises(self):
        """Test that a missing secret is still an error."""
        api = MagicMock()
        api.read_namespaced_secret.side_effect = ApiException(status=404)

        with pytest.raises(ValueError):
            get_optional_secret_value(api, "web", "aws", "session-token")
