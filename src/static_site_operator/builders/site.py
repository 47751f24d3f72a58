"""Builder for site configurations."""

from __future__ import annotations

import re
from typing import Any

from ..constants import DEFAULT_DOMAIN, DEFAULT_REGION, DEFAULT_VALIDATION_TIMEOUT_SECONDS
from ..resources.models import SiteConfig

# Apex domains double as S3 bucket names, so stay within both rule sets
_DOMAIN_RE = re.compile(r"^(?=.{3,63}$)([a-z0-9]([a-z0-9-]*[a-z0-9])?\.)+[a-z]{2,}$")


def create_site_config_from_spec(spec: dict[str, Any]) -> SiteConfig:
    """Create a site configuration from CRD spec.

    Args:
        spec: StaticSite CRD spec

    Returns:
        Site configuration

    Raises:
        ValueError: If the spec is invalid
    """
    domain = str(spec.get("domain") or DEFAULT_DOMAIN).strip().lower().rstrip(".")
    if not _DOMAIN_RE.match(domain):
        raise ValueError(f"domain '{domain}' is not a valid apex domain and bucket name")

    region = spec.get("region") or DEFAULT_REGION

    timeout = spec.get("validationTimeoutSeconds", DEFAULT_VALIDATION_TIMEOUT_SECONDS)
    try:
        timeout = int(timeout)
    except (TypeError, ValueError) as e:
        raise ValueError("validationTimeoutSeconds must be an integer") from e
    if timeout <= 0:
        raise ValueError("validationTimeoutSeconds must be positive")

    return SiteConfig(
        domain=domain,
        region=region,
        force_destroy=bool(spec.get("forceDestroy", False)),
        validation_timeout_seconds=timeout,
    )
