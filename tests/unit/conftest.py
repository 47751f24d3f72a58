"""Shared fixtures."""

from __future__ import annotations

import pytest

from fakes import DOMAIN, FakeProvider
from static_site_operator.resources.models import SiteConfig


@pytest.fixture
def provider() -> FakeProvider:
    """Fake account holding the public zone for example.org."""
    fake = FakeProvider()
    fake.add_zone(DOMAIN)
    return fake


@pytest.fixture
def site() -> SiteConfig:
    return SiteConfig(domain=DOMAIN, validation_timeout_seconds=60)


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """Keep retry backoff out of the test run time."""
    monkeypatch.setattr("static_site_operator.utils.rate_limit.AWS_RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr("static_site_operator.utils.rate_limit.AWS_MAX_RETRIES", 2)
