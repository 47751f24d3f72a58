"""Tests for the DNS publisher."""

from __future__ import annotations

import pytest

from static_site_operator.constants import CLOUDFRONT_HOSTED_ZONE_ID
from static_site_operator.resources.dns import (
    alias_record_set,
    delete_records,
    publish_alias,
    publish_validation_records,
    unique_record_sets,
)
from static_site_operator.resources.models import AliasRecord, Distribution, ValidationRecord
from static_site_operator.resources.zone import resolve_zone
from static_site_operator.utils.errors import ConflictError

RECORD = ValidationRecord("_abc.example.org.", "CNAME", "_xyz.acm-validations.aws.")
DIST = Distribution(distribution_id="E1", arn="arn:aws:cloudfront::1:distribution/E1", domain_name="d111.cloudfront.net")
DIST_NEW = Distribution(distribution_id="E2", arn="arn:aws:cloudfront::1:distribution/E2", domain_name="d222.cloudfront.net")


class TestValidationRecords:
    """Test cases for certificate validation records."""

    def test_shared_name_published_once(self):
        """Test that apex and wildcard records with one name collapse."""
        record_sets = unique_record_sets([RECORD, ValidationRecord(RECORD.name, RECORD.type, RECORD.value)])
        assert len(record_sets) == 1
        assert record_sets[0]["TTL"] == 60

    def test_publish_then_noop(self, provider):
        """Test that a published record is not rewritten."""
        zone = resolve_zone(provider, "example.org")

        assert publish_validation_records(provider, zone, [RECORD]) == 1
        provider.reset_calls()
        assert publish_validation_records(provider, zone, [RECORD]) == 0
        assert provider.mutations == []

    def test_changed_value_rewritten(self, provider):
        """Test that a record with a stale value is upserted."""
        zone = resolve_zone(provider, "example.org")
        publish_validation_records(provider, zone, [RECORD])

        updated = ValidationRecord(RECORD.name, RECORD.type, "_new.acm-validations.aws.")

        assert publish_validation_records(provider, zone, [updated]) == 1

    def test_delete(self, provider):
        """Test deleting published records."""
        zone = resolve_zone(provider, "example.org")
        publish_validation_records(provider, zone, [RECORD])

        assert delete_records(provider, zone, unique_record_sets([RECORD])) == 1
        assert delete_records(provider, zone, unique_record_sets([RECORD])) == 0


class TestApexAlias:
    """Test cases for the apex alias record."""

    def test_alias_shape(self):
        """Test the alias target fields."""
        record_set = alias_record_set(AliasRecord("Z1", "example.org", "d111.cloudfront.net"))

        assert record_set["Name"] == "example.org."
        assert record_set["Type"] == "A"
        assert record_set["AliasTarget"] == {
            "HostedZoneId": CLOUDFRONT_HOSTED_ZONE_ID,
            "DNSName": "d111.cloudfront.net.",
            "EvaluateTargetHealth": False,
        }

    def test_publish_then_noop(self, provider):
        """Test that a correct alias is not rewritten."""
        zone = resolve_zone(provider, "example.org")

        alias, written = publish_alias(provider, zone, "example.org", DIST)
        assert written
        assert alias.evaluate_target_health is False

        provider.reset_calls()
        _, written = publish_alias(provider, zone, "example.org", DIST, owned_target=DIST.domain_name)
        assert not written
        assert provider.mutations == []

    def test_foreign_record_is_conflict(self, provider):
        """Test that an A record not created by the operator is never overwritten."""
        zone = resolve_zone(provider, "example.org")
        provider.upsert_record(zone.zone_id, {"Name": "example.org.", "Type": "A", "TTL": 300,
                                              "ResourceRecords": [{"Value": "192.0.2.10"}]})

        with pytest.raises(ConflictError):
            publish_alias(provider, zone, "example.org", DIST)

    def test_alias_moves_to_replacement_distribution(self, provider):
        """Test that an owned alias follows a replaced distribution."""
        zone = resolve_zone(provider, "example.org")
        publish_alias(provider, zone, "example.org", DIST)

        alias, written = publish_alias(provider, zone, "example.org", DIST_NEW, owned_target=DIST.domain_name)

        assert written
        live = provider.get_record(zone.zone_id, "example.org.", "A")
        assert live["AliasTarget"]["DNSName"] == "d222.cloudfront.net."

    def test_alias_pointing_elsewhere_without_ownership_is_conflict(self, provider):
        """Test that an alias to some other target is not taken over."""
        zone = resolve_zone(provider, "example.org")
        publish_alias(provider, zone, "example.org", DIST)

        with pytest.raises(ConflictError):
            publish_alias(provider, zone, "example.org", DIST_NEW, owned_target="d999.cloudfront.net")
