"""Access policy binder: scopes bucket reads to the active distribution."""

from __future__ import annotations

import logging
from typing import Any

from .. import metrics
from ..constants import KIND_STATIC_SITE
from ..services.base import SiteProvider

logger = logging.getLogger(__name__)

STATEMENT_SID = "AllowCloudFrontServicePrincipalReadOnly"


def build_bucket_policy(bucket_name: str, distribution_arn: str) -> dict[str, Any]:
    """Build the read-only policy bound to exactly one distribution."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": STATEMENT_SID,
                "Effect": "Allow",
                "Principal": {"Service": "cloudfront.amazonaws.com"},
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket_name}/*",
                "Condition": {"StringEquals": {"AWS:SourceArn": distribution_arn}},
            }
        ],
    }


def bound_distribution_arn(policy: dict[str, Any] | None) -> str | None:
    """Return the distribution ARN the policy currently grants reads to."""
    if not policy:
        return None
    for statement in policy.get("Statement", []):
        if statement.get("Sid") != STATEMENT_SID:
            continue
        source_arn = statement.get("Condition", {}).get("StringEquals", {}).get("AWS:SourceArn")
        if isinstance(source_arn, list):
            return source_arn[0] if len(source_arn) == 1 else None
        return source_arn
    return None


def _normalize(policy: dict[str, Any]) -> dict[str, Any]:
    # S3 may return a single-element Action or Resource as a string or a list
    statements = []
    for statement in policy.get("Statement", []):
        statement = dict(statement)
        for key in ("Action", "Resource"):
            value = statement.get(key)
            if isinstance(value, list) and len(value) == 1:
                statement[key] = value[0]
        statements.append(statement)
    return {"Version": policy.get("Version"), "Statement": statements}


def bind_bucket_policy(provider: SiteProvider, bucket_name: str, distribution_arn: str) -> tuple[bool, bool]:
    """Bind the bucket policy to the given distribution.

    A live policy naming another distribution is policy drift; it is counted,
    logged and replaced here.

    Args:
        provider: Cloud provider
        bucket_name: Content bucket
        distribution_arn: ARN of the currently active distribution

    Returns:
        Tuple of (whether the policy was written, whether it was rebound from a stale ARN)
    """
    desired = build_bucket_policy(bucket_name, distribution_arn)
    current = provider.get_bucket_policy(bucket_name)

    if current is not None and _normalize(current) == _normalize(desired):
        return False, False

    bound = bound_distribution_arn(current)
    rebound = bound is not None and bound != distribution_arn
    if rebound:
        logger.warning(
            f"Bucket policy on {bucket_name} is bound to stale distribution {bound}, rebinding to {distribution_arn}"
        )
        metrics.drift_detected_total.labels(kind=KIND_STATIC_SITE, resource_type="bucket_policy").inc()
    elif current is not None:
        metrics.drift_detected_total.labels(kind=KIND_STATIC_SITE, resource_type="bucket_policy").inc()

    provider.set_bucket_policy(bucket_name, desired)
    return True, rebound


def destroy_bucket_policy(provider: SiteProvider, bucket_name: str) -> bool:
    if not provider.bucket_exists(bucket_name) or provider.get_bucket_policy(bucket_name) is None:
        return False
    provider.delete_bucket_policy(bucket_name)
    return True
