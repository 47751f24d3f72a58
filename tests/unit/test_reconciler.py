"""End-to-end tests of the reconciler against the in-memory provider."""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from fakes import FakeProvider, client_error
from static_site_operator.constants import (
    NODE_APEX_ALIAS,
    NODE_BUCKET,
    NODE_BUCKET_POLICY,
    NODE_CERTIFICATE,
    NODE_CERTIFICATE_VALIDATION,
    NODE_DISTRIBUTION,
    NODE_ORIGIN_ACCESS_CONTROL,
    NODE_VALIDATION_RECORDS,
    NODE_ZONE,
    STATE_APPLIED,
    STATE_FAILED,
    STATE_ISSUED,
    STATE_PENDING,
)
from static_site_operator.reconciler import Reconciler, ResourceGraph, ResourceNode
from static_site_operator.reconciler.graph import NodeResult
from static_site_operator.resources.models import SiteConfig
from static_site_operator.resources.policy import bound_distribution_arn
from static_site_operator.utils.errors import (
    ConflictError,
    GraphOrderingError,
    ReconcileCancelledError,
    ResourceNotFoundError,
    TransientProviderError,
    ValidationTimeoutError,
)


def _apply(provider, site, state=None):
    return Reconciler(provider, site, state, poll_interval=0).apply()


class TestFreshApply:
    """Test cases for applying the stack to an empty account."""

    def test_example_org(self, provider, site):
        """Test the full stack for example.org."""
        result = _apply(provider, site)

        dist_id = result.state[NODE_DISTRIBUTION]["id"]
        dist_domain = result.state[NODE_DISTRIBUTION]["domainName"]
        assert result.outputs == {
            "bucketName": "example.org",
            "distributionDomain": dist_domain,
            "siteUrl": "https://example.org",
        }
        assert result.node_states[NODE_CERTIFICATE_VALIDATION] == STATE_ISSUED
        assert all(
            state == STATE_APPLIED for name, state in result.node_states.items() if name != NODE_CERTIFICATE_VALIDATION
        )

        policy = provider.buckets["example.org"]["policy"]
        assert bound_distribution_arn(policy) == result.state[NODE_DISTRIBUTION]["arn"]

        zone_id = result.state[NODE_ZONE]["zoneId"]
        alias = provider.records[zone_id][("example.org.", "A")]
        assert alias["AliasTarget"]["DNSName"] == dist_domain + "."
        assert alias["AliasTarget"]["EvaluateTargetHealth"] is False

        config = provider.distributions[dist_id]["config"]
        assert config["ViewerCertificate"]["ACMCertificateArn"] == result.state[NODE_CERTIFICATE]["arn"]

    def test_certificate_issued_before_distribution_created(self, provider, site):
        """Test that the distribution is only created with an issued certificate."""
        original = provider.create_distribution
        seen = []

        def create_distribution(config):
            arn = config["ViewerCertificate"]["ACMCertificateArn"]
            seen.append(provider.certificates[arn]["Status"])
            return original(config)

        provider.create_distribution = create_distribution
        _apply(provider, site)

        assert seen == ["ISSUED"]

    def test_policy_and_alias_after_distribution(self, provider, site):
        """Test the ordering of the last mutations."""
        _apply(provider, site)

        mutations = provider.mutations
        created = mutations.index("create_distribution")
        assert mutations.index("set_bucket_policy") > created
        assert mutations.index("upsert_record", mutations.index("upsert_record") + 1) > created

    def test_changed_nodes_reported(self, provider, site):
        """Test that every node that mutated is reported, the zone lookup is not."""
        result = _apply(provider, site)

        assert NODE_ZONE not in result.changed_nodes
        assert NODE_CERTIFICATE_VALIDATION not in result.changed_nodes
        for name in (NODE_BUCKET, NODE_ORIGIN_ACCESS_CONTROL, NODE_CERTIFICATE, NODE_VALIDATION_RECORDS,
                     NODE_DISTRIBUTION, NODE_BUCKET_POLICY, NODE_APEX_ALIAS):
            assert name in result.changed_nodes


class TestIdempotence:
    """Test cases for re-running without changes."""

    def test_rerun_makes_no_mutating_calls(self, provider, site):
        """Test that the second run only reads."""
        first = _apply(provider, site)
        provider.reset_calls()

        second = _apply(provider, site, first.state)

        assert provider.mutations == []
        assert second.mutations == 0
        assert second.outputs == first.outputs
        assert second.state[NODE_DISTRIBUTION] == first.state[NODE_DISTRIBUTION]
        assert second.state[NODE_CERTIFICATE]["status"] == "ISSUED"

    def test_rerun_without_snapshot_adopts(self, provider, site):
        """Test that losing the snapshot does not duplicate resources."""
        first = _apply(provider, site)
        provider.reset_calls()

        second = _apply(provider, site, {})

        assert provider.mutations == []
        assert second.state[NODE_DISTRIBUTION] == first.state[NODE_DISTRIBUTION]
        assert len(provider.distributions) == 1
        assert len(provider.certificates) == 1


class TestDistributionReplacement:
    """Test cases for a replaced distribution."""

    def test_policy_rebound_to_new_distribution(self, provider, site):
        """Test that the bucket policy follows the new distribution ARN."""
        first = _apply(provider, site)
        old_arn = first.state[NODE_DISTRIBUTION]["arn"]
        del provider.distributions[first.state[NODE_DISTRIBUTION]["id"]]

        second = _apply(provider, site, first.state)

        new_arn = second.state[NODE_DISTRIBUTION]["arn"]
        assert new_arn != old_arn
        assert bound_distribution_arn(provider.buckets["example.org"]["policy"]) == new_arn
        assert second.node_outputs[NODE_BUCKET_POLICY]["rebound"] is True
        assert second.state[NODE_BUCKET_POLICY]["distributionArn"] == new_arn

        zone_id = second.state[NODE_ZONE]["zoneId"]
        target = provider.records[zone_id][("example.org.", "A")]["AliasTarget"]["DNSName"]
        assert target == second.state[NODE_DISTRIBUTION]["domainName"] + "."

    def test_policy_drift_corrected_on_next_run(self, provider, site):
        """Test that an out-of-band policy change is reverted."""
        first = _apply(provider, site)
        statement = provider.buckets["example.org"]["policy"]["Statement"][0]
        statement["Condition"]["StringEquals"]["AWS:SourceArn"] = "arn:aws:cloudfront::1:distribution/EOTHER"
        provider.reset_calls()

        _apply(provider, site, first.state)

        assert provider.mutations == ["set_bucket_policy"]
        assert bound_distribution_arn(provider.buckets["example.org"]["policy"]) == first.state[NODE_DISTRIBUTION]["arn"]


class TestFailures:
    """Test cases for fatal and transient failures."""

    def test_missing_zone_is_fatal(self, site):
        """Test that a missing zone fails the run and skips its dependents."""
        provider = FakeProvider()
        reconciler = Reconciler(provider, site, poll_interval=0)

        with pytest.raises(ResourceNotFoundError):
            reconciler.apply()

        assert reconciler.node_states[NODE_ZONE] == STATE_FAILED
        assert reconciler.node_states[NODE_DISTRIBUTION] == STATE_PENDING
        assert reconciler.node_states[NODE_APEX_ALIAS] == STATE_PENDING
        assert "create_distribution" not in provider.calls
        assert "upsert_record" not in provider.calls

    def test_foreign_bucket_is_conflict(self, provider, site):
        """Test that an unmanaged bucket with the site name stops the run."""
        provider.create_bucket("example.org", "us-east-1")
        reconciler = Reconciler(provider, site, poll_interval=0)

        with pytest.raises(ConflictError):
            reconciler.apply()

        assert reconciler.node_states[NODE_BUCKET] == STATE_FAILED
        assert provider.buckets["example.org"]["policy"] is None
        assert provider.distributions == {}

    def test_validation_timeout(self, provider):
        """Test that an unissued certificate fails the run and lists the records."""
        provider.issue_on_validation = False
        site = SiteConfig(domain="example.org", validation_timeout_seconds=0)
        reconciler = Reconciler(provider, site, poll_interval=0)

        with pytest.raises(ValidationTimeoutError) as excinfo:
            reconciler.apply()

        assert "_3639ac514e785e898d2646601fa951d5.example.org." in str(excinfo.value)
        assert provider.distributions == {}
        # Published validation records and the applied leaves stay recorded for the next run
        assert NODE_VALIDATION_RECORDS in reconciler.state
        assert NODE_CERTIFICATE in reconciler.state

    def test_transient_errors_retried(self, provider, site):
        """Test that a throttled call is retried transparently."""
        provider.fail("create_bucket", client_error("SlowDown", 503))

        result = _apply(provider, site)

        assert provider.calls.count("create_bucket") == 2
        assert result.outputs["bucketName"] == "example.org"

    def test_persistent_transient_error_is_fatal(self, provider, site):
        """Test that exhausted retries end the run."""
        provider.fail("create_origin_access_control", *[client_error("ServiceUnavailable", 503)] * 3)

        with pytest.raises(TransientProviderError):
            _apply(provider, site)

        assert provider.distributions == {}

    def test_non_transient_client_error_not_retried(self, provider, site):
        """Test that an access denied error propagates on the first attempt."""
        error = client_error("AccessDenied", 403)
        provider.fail("request_certificate", error)

        with pytest.raises(type(error)):
            _apply(provider, site)

        assert provider.calls.count("request_certificate") == 1


class TestCancellation:
    """Test cases for aborting a run."""

    def test_cancel_during_certificate_wait(self, site):
        """Test that cancelling stops the wait and leaves dependents pending."""
        provider = FakeProvider(issue_on_validation=False)
        provider.add_zone()
        reconciler = Reconciler(provider, site, poll_interval=30)
        errors = []

        def run():
            try:
                reconciler.apply()
            except ReconcileCancelledError as e:
                errors.append(e)

        worker = threading.Thread(target=run)
        worker.start()
        for _ in range(200):
            if reconciler.node_states[NODE_VALIDATION_RECORDS] == STATE_APPLIED:
                break
            worker.join(0.01)
        reconciler.cancel()
        worker.join(5)

        assert not worker.is_alive()
        assert len(errors) == 1
        assert reconciler.node_states[NODE_DISTRIBUTION] == STATE_PENDING
        assert provider.distributions == {}

    def test_cancel_before_start(self, provider, site):
        """Test that a cancelled reconciler does not touch the account."""
        reconciler = Reconciler(provider, site, poll_interval=0)
        reconciler.cancel()

        with pytest.raises(ReconcileCancelledError):
            reconciler.apply()

        assert provider.mutations == []


class TestParallelism:
    """Test cases for concurrent application of independent nodes."""

    def test_independent_nodes_overlap(self, provider, site):
        """Test that independent leaves run at the same time."""
        barrier = threading.Barrier(2, timeout=5)

        def leaf(ctx):
            barrier.wait()
            return NodeResult(changed=False)

        graph = ResourceGraph([
            ResourceNode(name, "Test", leaf) for name in ("left", "right")
        ])
        # The site ordering check only applies to the site graph
        with patch("static_site_operator.reconciler.engine.verify_ordering"):
            result = Reconciler(provider, site, graph=graph, max_workers=2).apply()

        assert result.node_states == {"left": STATE_APPLIED, "right": STATE_APPLIED}

    def test_parallel_waves_logged(self, provider, site, caplog):
        """Test that the run announces the waves it will apply."""
        with caplog.at_level("INFO", logger="static_site_operator.reconciler.engine"):
            _apply(provider, site)

        first_wave = "+".join([NODE_ZONE, NODE_BUCKET, NODE_ORIGIN_ACCESS_CONTROL, NODE_CERTIFICATE])
        assert any(first_wave in record.getMessage() for record in caplog.records)

    def test_graph_without_required_edges_rejected(self, provider, site):
        """Test that a graph missing the site ordering is refused up front."""
        graph = ResourceGraph([ResourceNode(NODE_ZONE, "Test", lambda ctx: NodeResult())])

        with pytest.raises(GraphOrderingError):
            Reconciler(provider, site, graph=graph)


class TestDestroy:
    """Test cases for tearing the stack down."""

    def test_destroy_everything_but_the_zone(self, provider, site):
        """Test reverse-order destroy."""
        first = _apply(provider, site)
        reconciler = Reconciler(provider, site, first.state, poll_interval=0)

        destroyed = reconciler.destroy()

        assert provider.buckets == {}
        assert provider.distributions == {}
        assert provider.certificates == {}
        assert provider.oacs == {}
        zone_id = first.state[NODE_ZONE]["zoneId"]
        assert provider.records[zone_id] == {}
        assert provider.zones
        assert reconciler.state == {}
        assert destroyed.index(NODE_APEX_ALIAS) < destroyed.index(NODE_DISTRIBUTION) < destroyed.index(NODE_BUCKET)

    def test_destroy_keeps_non_empty_bucket(self, provider, site):
        """Test that content is kept without forceDestroy."""
        first = _apply(provider, site)
        provider.buckets["example.org"]["objects"] = 5
        reconciler = Reconciler(provider, site, first.state)

        with pytest.raises(ConflictError):
            reconciler.destroy()

        assert "example.org" in provider.buckets
        assert provider.distributions == {}
        assert set(reconciler.state) == {NODE_ZONE, NODE_BUCKET}

    def test_destroy_is_idempotent(self, provider, site):
        """Test that destroying twice is harmless."""
        first = _apply(provider, site)
        Reconciler(provider, site, first.state).destroy()
        provider.reset_calls()

        assert Reconciler(provider, site, {}).destroy() == []
        assert provider.mutations == []
