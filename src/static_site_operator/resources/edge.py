"""Edge distribution provisioner: origin access control and CloudFront distribution."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from .. import metrics
from ..constants import (
    CACHE_METHODS,
    DEFAULT_ROOT_OBJECT,
    ERROR_CODE,
    ERROR_PAGE_PATH,
    KIND_STATIC_SITE,
    MINIMUM_PROTOCOL_VERSION,
    OAC_ORIGIN_TYPE,
    OAC_SIGNING_BEHAVIOR,
    OAC_SIGNING_PROTOCOL,
    PRICE_CLASS,
    SSL_SUPPORT_METHOD,
    VIEWER_PROTOCOL_POLICY,
)
from ..services.base import SiteProvider
from ..utils.errors import ConflictError, DependencyNotReadyError
from .models import BucketState, Certificate, Distribution, OriginAccessControl, SiteConfig

logger = logging.getLogger(__name__)

ORIGIN_ID = "s3-content"


def ensure_origin_access_control(provider: SiteProvider, config: SiteConfig) -> tuple[OriginAccessControl, bool]:
    """Find or create the origin access control for the site.

    Returns:
        Tuple of (origin access control, whether it was created)
    """
    existing = provider.find_origin_access_control(config.oac_name)
    if existing is not None:
        return OriginAccessControl(oac_id=existing["Id"], name=existing["Name"]), False

    created = provider.create_origin_access_control({
        "Name": config.oac_name,
        "Description": f"Signed access from CloudFront to {config.bucket_name}",
        "SigningProtocol": OAC_SIGNING_PROTOCOL,
        "SigningBehavior": OAC_SIGNING_BEHAVIOR,
        "OriginAccessControlOriginType": OAC_ORIGIN_TYPE,
    })
    return OriginAccessControl(oac_id=created["Id"], name=config.oac_name), True


def destroy_origin_access_control(provider: SiteProvider, config: SiteConfig) -> bool:
    existing = provider.find_origin_access_control(config.oac_name)
    if existing is None:
        return False
    provider.delete_origin_access_control(existing["Id"])
    return True


def _quantity(items: list[Any]) -> dict[str, Any]:
    return {"Quantity": len(items), "Items": list(items)}


def build_distribution_config(
    config: SiteConfig,
    bucket: BucketState,
    oac_id: str,
    certificate_arn: str,
    caller_reference: str,
) -> dict[str, Any]:
    """Build the CloudFront DistributionConfig for the site."""
    return {
        "CallerReference": caller_reference,
        "Comment": config.distribution_comment,
        "Enabled": True,
        "IsIPV6Enabled": True,
        "HttpVersion": "http2",
        "DefaultRootObject": DEFAULT_ROOT_OBJECT,
        "PriceClass": PRICE_CLASS,
        "Aliases": _quantity([config.domain]),
        "Origins": _quantity([
            {
                "Id": ORIGIN_ID,
                "DomainName": bucket.regional_domain_name,
                "OriginAccessControlId": oac_id,
                "S3OriginConfig": {"OriginAccessIdentity": ""},
            }
        ]),
        "DefaultCacheBehavior": {
            "TargetOriginId": ORIGIN_ID,
            "ViewerProtocolPolicy": VIEWER_PROTOCOL_POLICY,
            "AllowedMethods": {
                **_quantity(CACHE_METHODS),
                "CachedMethods": _quantity(CACHE_METHODS),
            },
            "Compress": True,
            "ForwardedValues": {
                "QueryString": False,
                "Cookies": {"Forward": "none"},
            },
            "MinTTL": 0,
            "DefaultTTL": 3600,
            "MaxTTL": 86400,
        },
        "CustomErrorResponses": _quantity([
            {
                "ErrorCode": ERROR_CODE,
                "ResponsePagePath": ERROR_PAGE_PATH,
                "ResponseCode": str(ERROR_CODE),
                "ErrorCachingMinTTL": 10,
            }
        ]),
        "Restrictions": {"GeoRestriction": {"RestrictionType": "none", "Quantity": 0}},
        "ViewerCertificate": {
            "ACMCertificateArn": certificate_arn,
            "SSLSupportMethod": SSL_SUPPORT_METHOD,
            "MinimumProtocolVersion": MINIMUM_PROTOCOL_VERSION,
        },
    }


def _managed_fields(distribution_config: dict[str, Any]) -> dict[str, Any]:
    """Pick the fields this operator owns out of a DistributionConfig."""
    origins = distribution_config.get("Origins", {}).get("Items", [])
    behavior = distribution_config.get("DefaultCacheBehavior", {})
    viewer = distribution_config.get("ViewerCertificate", {})
    errors = distribution_config.get("CustomErrorResponses", {}).get("Items", [])
    return {
        "enabled": distribution_config.get("Enabled"),
        "aliases": sorted(distribution_config.get("Aliases", {}).get("Items", [])),
        "price_class": distribution_config.get("PriceClass"),
        "origins": [(o.get("DomainName"), o.get("OriginAccessControlId")) for o in origins],
        "allowed_methods": sorted(behavior.get("AllowedMethods", {}).get("Items", [])),
        "compress": behavior.get("Compress"),
        "viewer_protocol_policy": behavior.get("ViewerProtocolPolicy"),
        "certificate_arn": viewer.get("ACMCertificateArn"),
        "minimum_protocol_version": viewer.get("MinimumProtocolVersion"),
        "errors": sorted((e.get("ErrorCode"), e.get("ResponsePagePath")) for e in errors),
    }


def _to_distribution(raw: dict[str, Any]) -> Distribution:
    return Distribution(
        distribution_id=raw["Id"],
        arn=raw["ARN"],
        domain_name=raw["DomainName"],
        status=raw.get("Status", "InProgress"),
    )


def ensure_distribution(
    provider: SiteProvider,
    config: SiteConfig,
    bucket: BucketState,
    oac: OriginAccessControl,
    certificate: Certificate,
    recorded_id: str | None,
) -> tuple[Distribution, bool]:
    """Converge the CloudFront distribution fronting the bucket.

    Args:
        provider: Cloud provider
        config: Site configuration
        bucket: Content bucket
        oac: Origin access control authorizing reads from the bucket
        certificate: Certificate served by the distribution; must be issued
        recorded_id: Distribution ID from the state snapshot, if any

    Returns:
        Tuple of (distribution, whether any mutating call was made)

    Raises:
        DependencyNotReadyError: If the certificate is not issued yet
        ConflictError: If another distribution already serves the domain
    """
    if not certificate.issued:
        raise DependencyNotReadyError(
            f"Certificate {certificate.arn} is {certificate.status}, distribution cannot be created yet"
        )

    current: dict[str, Any] | None = None
    if recorded_id:
        current = provider.get_distribution(recorded_id)
        if current is None:
            logger.warning(f"Recorded distribution {recorded_id} no longer exists, creating a replacement")

    if current is None:
        summary = provider.find_distribution_by_alias(config.domain)
        if summary is not None:
            if summary.get("Comment") != config.distribution_comment:
                raise ConflictError(
                    f"Distribution {summary['Id']} already serves {config.domain} and is not managed by this operator"
                )
            logger.info(f"Adopting existing distribution {summary['Id']} for {config.domain}")
            current = provider.get_distribution(summary["Id"])

    if current is None:
        desired = build_distribution_config(
            config, bucket, oac.oac_id, certificate.arn, caller_reference=uuid.uuid4().hex,
        )
        created = provider.create_distribution(desired)
        return _to_distribution(created), True

    live = current["Distribution"]
    live_config = live["DistributionConfig"]
    desired = build_distribution_config(
        config, bucket, oac.oac_id, certificate.arn, caller_reference=live_config["CallerReference"],
    )
    if _managed_fields(live_config) == _managed_fields(desired):
        return _to_distribution(live), False

    logger.info(f"Drift detected on distribution {live['Id']}, updating")
    metrics.drift_detected_total.labels(kind=KIND_STATIC_SITE, resource_type="distribution").inc()
    updated = provider.update_distribution(live["Id"], {**live_config, **desired}, current["ETag"])
    return _to_distribution(updated), True


def destroy_distribution(provider: SiteProvider, config: SiteConfig, recorded_id: str | None) -> bool:
    """Disable and delete the site's distribution."""
    distribution_id = recorded_id
    if distribution_id is None or provider.get_distribution(distribution_id) is None:
        summary = provider.find_distribution_by_alias(config.domain)
        if summary is None or summary.get("Comment") != config.distribution_comment:
            return False
        distribution_id = summary["Id"]
    provider.delete_distribution(distribution_id)
    return True
