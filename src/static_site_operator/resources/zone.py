"""Zone resolver: looks up the existing public hosted zone for a domain."""

from __future__ import annotations

import logging

from ..services.base import SiteProvider
from ..utils.errors import ResourceNotFoundError
from .models import Zone

logger = logging.getLogger(__name__)


def resolve_zone(provider: SiteProvider, domain: str) -> Zone:
    """Resolve the public hosted zone whose name is exactly the domain.

    Args:
        provider: Cloud provider
        domain: Apex domain, with or without trailing dot

    Returns:
        The matching zone

    Raises:
        ResourceNotFoundError: If no public zone matches
    """
    wanted = domain.rstrip(".").lower() + "."
    for hosted_zone in provider.list_hosted_zones(wanted):
        if hosted_zone.get("Name", "").lower() != wanted:
            continue
        if hosted_zone.get("Config", {}).get("PrivateZone", False):
            continue
        zone_id = hosted_zone["Id"].rsplit("/", 1)[-1]
        logger.debug(f"Resolved zone {wanted} to {zone_id}")
        return Zone(name=wanted.rstrip("."), zone_id=zone_id)

    raise ResourceNotFoundError(f"No public hosted zone found for {domain}")
