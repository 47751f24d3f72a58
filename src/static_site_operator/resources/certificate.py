"""Certificate issuer: DNS-validated ACM certificate for the site."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from typing import Any, Callable, Iterable

from .. import metrics
from ..services.base import SiteProvider
from ..utils.errors import ReconcileCancelledError, ValidationTimeoutError
from ..utils.rate_limit import call_with_retries
from .models import Certificate, SiteConfig, ValidationRecord

logger = logging.getLogger(__name__)

FAILED_STATUSES = {"FAILED", "VALIDATION_TIMED_OUT", "REVOKED", "EXPIRED", "INACTIVE"}


def derive_validation_records(options: Iterable[dict[str, Any]]) -> dict[str, ValidationRecord]:
    """Map ACM domain validation options to one DNS record per domain.

    Name, type and value are copied verbatim from the provider response.
    Options whose resource record is not yet populated are skipped.

    Args:
        options: The certificate's DomainValidationOptions

    Returns:
        Mapping of domain name to its validation record
    """
    records: dict[str, ValidationRecord] = {}
    for option in options:
        resource_record = option.get("ResourceRecord")
        if not resource_record:
            continue
        records[option["DomainName"]] = ValidationRecord(
            name=resource_record["Name"],
            type=resource_record["Type"],
            value=resource_record["Value"],
        )
    return dict(sorted(records.items()))


def idempotency_token(domain: str, replaces: str | None = None) -> str:
    """Derive the RequestCertificate idempotency token (at most 32 word characters).

    ACM answers a repeated token within an hour with the original ARN, so a
    replacement mixes in the ARN it replaces.
    """
    seed = domain if replaces is None else f"{domain}|{replaces}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()[:32]


def _to_certificate(description: dict[str, Any]) -> Certificate:
    return Certificate(
        arn=description["CertificateArn"],
        domain=description["DomainName"],
        status=description["Status"],
        validation_records=derive_validation_records(description.get("DomainValidationOptions", [])),
    )


def ensure_certificate(
    provider: SiteProvider,
    config: SiteConfig,
    recorded_arn: str | None,
) -> tuple[Certificate, bool]:
    """Find or request the site's certificate.

    Args:
        provider: Cloud provider
        config: Site configuration
        recorded_arn: Certificate ARN from the state snapshot, if any

    Returns:
        Tuple of (certificate, whether a new certificate was requested)
    """
    replaces = None
    if recorded_arn:
        description = provider.describe_certificate(recorded_arn)
        if description is not None and description["Status"] not in FAILED_STATUSES:
            return _to_certificate(description), False
        replaces = recorded_arn
        logger.warning(f"Recorded certificate {recorded_arn} is gone or unusable, requesting a new one")

    # Prefer an issued certificate over a pending one
    summaries = sorted(
        provider.find_certificates(config.domain),
        key=lambda item: item.get("Status") != "ISSUED",
    )
    for summary in summaries:
        description = provider.describe_certificate(summary["CertificateArn"])
        if description is not None and description["Status"] not in FAILED_STATUSES:
            logger.info(f"Adopting existing certificate {description['CertificateArn']} for {config.domain}")
            return _to_certificate(description), False

    arn = provider.request_certificate(config.domain, idempotency_token(config.domain, replaces))
    description = provider.describe_certificate(arn)
    if description is None:
        # Newly requested certificates can take a moment to become describable
        return Certificate(arn=arn, domain=config.domain, status="PENDING_VALIDATION"), True
    return _to_certificate(description), True


def wait_for_validation_records(
    provider: SiteProvider,
    certificate: Certificate,
    timeout: float = 300.0,
    poll_interval: float = 5.0,
    cancel_event: threading.Event | None = None,
) -> Certificate:
    """Poll until ACM has populated a validation record for every domain.

    Raises:
        ValidationTimeoutError: If records are still missing after the timeout
        ReconcileCancelledError: If the cancel event is set while waiting
    """
    cancel_event = cancel_event or threading.Event()
    deadline = time.monotonic() + timeout

    while True:
        description = call_with_retries(
            lambda: provider.describe_certificate(certificate.arn), "describe_certificate",
        )
        if description is not None:
            current = _to_certificate(description)
            domains = {current.domain} | set(description.get("SubjectAlternativeNames", []))
            if domains <= set(current.validation_records):
                return current
        if time.monotonic() >= deadline:
            raise ValidationTimeoutError(
                f"Certificate {certificate.arn} did not expose validation records in time"
            )
        if cancel_event.wait(poll_interval):
            raise ReconcileCancelledError(f"Cancelled while waiting for validation records of {certificate.arn}")


def wait_for_issuance(
    provider: SiteProvider,
    certificate: Certificate,
    timeout: float,
    poll_interval: float = 15.0,
    cancel_event: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> Certificate:
    """Block until the certificate is issued, the timeout elapses, or the run is cancelled.

    Validation records already published are left in place when this gives up;
    they are harmless and the next run reuses them.

    Args:
        provider: Cloud provider
        certificate: Certificate to watch
        timeout: Seconds to wait before giving up
        poll_interval: Seconds between polls
        cancel_event: Set by the reconciler to abort the wait
        clock: Monotonic clock, injectable for tests

    Returns:
        The issued certificate

    Raises:
        ValidationTimeoutError: On timeout or a terminal validation failure
        ReconcileCancelledError: If the cancel event is set while waiting
    """
    if certificate.issued:
        return certificate

    cancel_event = cancel_event or threading.Event()
    started = clock()
    deadline = started + timeout
    current = certificate

    logger.info(f"Waiting up to {timeout:.0f}s for certificate {certificate.arn} to be issued")
    try:
        while True:
            description = call_with_retries(
                lambda: provider.describe_certificate(certificate.arn), "describe_certificate",
            )
            if description is None:
                raise ValidationTimeoutError(
                    f"Certificate {certificate.arn} disappeared while waiting for validation",
                    current.validation_records.values(),
                )
            current = _to_certificate(description)

            if current.issued:
                logger.info(f"Certificate {certificate.arn} issued")
                return current
            if current.status in FAILED_STATUSES:
                raise ValidationTimeoutError(
                    f"Certificate {certificate.arn} validation failed with status {current.status}",
                    current.validation_records.values(),
                )
            if clock() >= deadline:
                raise ValidationTimeoutError(
                    f"Certificate {certificate.arn} not issued within {timeout:.0f}s",
                    current.validation_records.values(),
                )
            if cancel_event.wait(poll_interval):
                raise ReconcileCancelledError(f"Cancelled while waiting for certificate {certificate.arn}")
    finally:
        metrics.certificate_wait_seconds.observe(max(clock() - started, 0.0))


def destroy_certificate(provider: SiteProvider, arn: str | None) -> bool:
    """Delete the certificate if it still exists."""
    if not arn or provider.describe_certificate(arn) is None:
        return False
    provider.delete_certificate(arn)
    return True
