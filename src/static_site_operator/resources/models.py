"""Desired- and live-state records for the static site stack."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..constants import (
    CLOUDFRONT_HOSTED_ZONE_ID,
    DEFAULT_DOMAIN,
    DEFAULT_REGION,
    DEFAULT_VALIDATION_TIMEOUT_SECONDS,
    DISTRIBUTION_COMMENT_PREFIX,
    OAC_ORIGIN_TYPE,
    OAC_SIGNING_BEHAVIOR,
    OAC_SIGNING_PROTOCOL,
    OBJECT_OWNERSHIP,
)


@dataclass(frozen=True)
class SiteConfig:
    """Desired configuration of one static site."""

    domain: str = DEFAULT_DOMAIN
    region: str = DEFAULT_REGION
    force_destroy: bool = False
    validation_timeout_seconds: int = DEFAULT_VALIDATION_TIMEOUT_SECONDS

    @property
    def bucket_name(self) -> str:
        return self.domain

    @property
    def site_url(self) -> str:
        return f"https://{self.domain}"

    @property
    def oac_name(self) -> str:
        # OAC names are limited to 64 characters
        return f"{self.domain}-oac"[:64]

    @property
    def distribution_comment(self) -> str:
        return f"{DISTRIBUTION_COMMENT_PREFIX} {self.domain}"


@dataclass(frozen=True)
class Zone:
    name: str
    zone_id: str


@dataclass
class BucketState:
    name: str
    region: str
    versioning: str | None = None
    public_access_block: dict[str, bool] = field(default_factory=dict)
    ownership: str | None = OBJECT_OWNERSHIP

    @property
    def arn(self) -> str:
        return f"arn:aws:s3:::{self.name}"

    @property
    def regional_domain_name(self) -> str:
        return f"{self.name}.s3.{self.region}.amazonaws.com"


@dataclass(frozen=True)
class OriginAccessControl:
    oac_id: str
    name: str
    origin_type: str = OAC_ORIGIN_TYPE
    signing_behavior: str = OAC_SIGNING_BEHAVIOR
    signing_protocol: str = OAC_SIGNING_PROTOCOL


@dataclass(frozen=True)
class ValidationRecord:
    """One DNS record proving control of a domain on the certificate."""

    name: str
    type: str
    value: str


@dataclass
class Certificate:
    arn: str
    domain: str
    status: str
    validation_records: dict[str, ValidationRecord] = field(default_factory=dict)

    @property
    def issued(self) -> bool:
        return self.status == "ISSUED"


@dataclass(frozen=True)
class Distribution:
    distribution_id: str
    arn: str
    domain_name: str
    status: str = "Deployed"
    hosted_zone_id: str = CLOUDFRONT_HOSTED_ZONE_ID


@dataclass(frozen=True)
class AliasRecord:
    zone_id: str
    name: str
    target_domain: str
    target_zone_id: str = CLOUDFRONT_HOSTED_ZONE_ID
    evaluate_target_health: bool = False
