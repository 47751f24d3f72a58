"""DNS publisher: certificate validation records and the apex alias."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..constants import VALIDATION_RECORD_TTL
from ..services.base import SiteProvider
from ..utils.errors import ConflictError
from .models import AliasRecord, Distribution, ValidationRecord, Zone

logger = logging.getLogger(__name__)


def _fqdn(name: str) -> str:
    return name.rstrip(".").lower() + "."


def validation_record_set(record: ValidationRecord) -> dict[str, Any]:
    return {
        "Name": _fqdn(record.name),
        "Type": record.type,
        "TTL": VALIDATION_RECORD_TTL,
        "ResourceRecords": [{"Value": record.value}],
    }


def alias_record_set(alias: AliasRecord) -> dict[str, Any]:
    return {
        "Name": _fqdn(alias.name),
        "Type": "A",
        "AliasTarget": {
            "HostedZoneId": alias.target_zone_id,
            "DNSName": _fqdn(alias.target_domain),
            "EvaluateTargetHealth": alias.evaluate_target_health,
        },
    }


def _same_records(live: dict[str, Any] | None, desired: dict[str, Any]) -> bool:
    if live is None:
        return False
    if "AliasTarget" in desired:
        target = live.get("AliasTarget")
        if not target:
            return False
        wanted = desired["AliasTarget"]
        return (
            target.get("HostedZoneId") == wanted["HostedZoneId"]
            and _fqdn(target.get("DNSName", "")) == wanted["DNSName"]
            and target.get("EvaluateTargetHealth") == wanted["EvaluateTargetHealth"]
        )
    live_values = sorted(r["Value"] for r in live.get("ResourceRecords", []))
    wanted_values = sorted(r["Value"] for r in desired["ResourceRecords"])
    return live_values == wanted_values and live.get("TTL") == desired["TTL"]


def unique_record_sets(records: Iterable[ValidationRecord]) -> list[dict[str, Any]]:
    """Validation records for an apex and its wildcard share one name; publish it once."""
    by_name: dict[tuple[str, str], dict[str, Any]] = {}
    for record in records:
        record_set = validation_record_set(record)
        by_name.setdefault((record_set["Name"], record_set["Type"]), record_set)
    return [by_name[key] for key in sorted(by_name)]


def publish_validation_records(provider: SiteProvider, zone: Zone, records: Iterable[ValidationRecord]) -> int:
    """Upsert each distinct validation record that is missing or different.

    Returns:
        Number of records written
    """
    written = 0
    for record_set in unique_record_sets(records):
        live = provider.get_record(zone.zone_id, record_set["Name"], record_set["Type"])
        if _same_records(live, record_set):
            continue
        provider.upsert_record(zone.zone_id, record_set)
        written += 1
    return written


def publish_alias(
    provider: SiteProvider,
    zone: Zone,
    domain: str,
    distribution: Distribution,
    owned_target: str | None = None,
) -> tuple[AliasRecord, bool]:
    """Point the apex domain at the distribution.

    Args:
        provider: Cloud provider
        zone: Hosted zone of the domain
        domain: Apex domain
        distribution: Target distribution
        owned_target: Alias target recorded in the state snapshot, if any

    Returns:
        Tuple of (alias record, whether it was written)

    Raises:
        ConflictError: If an A record this operator does not own already exists
    """
    alias = AliasRecord(
        zone_id=zone.zone_id,
        name=domain,
        target_domain=distribution.domain_name,
        target_zone_id=distribution.hosted_zone_id,
    )
    desired = alias_record_set(alias)
    live = provider.get_record(zone.zone_id, desired["Name"], "A")

    if _same_records(live, desired):
        return alias, False

    if live is not None:
        live_target = (live.get("AliasTarget") or {}).get("DNSName")
        if live_target is None or owned_target is None or _fqdn(live_target) != _fqdn(owned_target):
            # A replaced distribution legitimately moves the alias; the previous target comes from state
            raise ConflictError(
                f"A record {desired['Name']} already exists in zone {zone.zone_id} and is not managed by this operator"
            )

    provider.upsert_record(zone.zone_id, desired)
    return alias, True


def delete_records(provider: SiteProvider, zone: Zone, record_sets: Iterable[dict[str, Any]]) -> int:
    """Delete the given record sets if they are still present."""
    deleted = 0
    for record_set in record_sets:
        live = provider.get_record(zone.zone_id, record_set["Name"], record_set["Type"])
        if live is None:
            continue
        provider.delete_record(zone.zone_id, live)
        deleted += 1
    return deleted
