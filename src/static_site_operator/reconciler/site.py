"""The static site resource graph."""

from __future__ import annotations

import logging
from dataclasses import asdict

from ..constants import (
    NODE_APEX_ALIAS,
    NODE_BUCKET,
    NODE_BUCKET_POLICY,
    NODE_CERTIFICATE,
    NODE_CERTIFICATE_VALIDATION,
    NODE_DISTRIBUTION,
    NODE_ORIGIN_ACCESS_CONTROL,
    NODE_VALIDATION_RECORDS,
    NODE_ZONE,
    STATE_ISSUED,
)
from ..resources import certificate, dns, edge, policy, storage, zone
from ..resources.models import Certificate, ValidationRecord, Zone
from ..utils.errors import GraphOrderingError
from .graph import NodeResult, ResourceGraph, ResourceNode, RunContext

logger = logging.getLogger(__name__)


def _zone_for_destroy(ctx: RunContext) -> Zone:
    zone_id = ctx.recorded(NODE_ZONE, "zoneId")
    if zone_id:
        return Zone(name=ctx.config.domain, zone_id=zone_id)
    return zone.resolve_zone(ctx.provider, ctx.config.domain)


def apply_zone(ctx: RunContext) -> NodeResult:
    resolved = zone.resolve_zone(ctx.provider, ctx.config.domain)
    return NodeResult(outputs=resolved, record={"zoneId": resolved.zone_id, "name": resolved.name})


def apply_bucket(ctx: RunContext) -> NodeResult:
    owned = ctx.recorded(NODE_BUCKET, "name") == ctx.config.bucket_name
    bucket, changed = storage.ensure_bucket(ctx.provider, ctx.config, owned)
    return NodeResult(outputs=bucket, changed=changed, record={"name": bucket.name, "region": bucket.region})


def destroy_bucket(ctx: RunContext) -> bool:
    return storage.destroy_bucket(ctx.provider, ctx.config.bucket_name, ctx.config.force_destroy)


def apply_origin_access_control(ctx: RunContext) -> NodeResult:
    oac, changed = edge.ensure_origin_access_control(ctx.provider, ctx.config)
    return NodeResult(outputs=oac, changed=changed, record={"id": oac.oac_id, "name": oac.name})


def destroy_origin_access_control(ctx: RunContext) -> bool:
    return edge.destroy_origin_access_control(ctx.provider, ctx.config)


def apply_certificate(ctx: RunContext) -> NodeResult:
    cert, changed = certificate.ensure_certificate(
        ctx.provider, ctx.config, ctx.recorded(NODE_CERTIFICATE, "arn"),
    )
    if not cert.issued:
        cert = certificate.wait_for_validation_records(
            ctx.provider, cert, poll_interval=min(ctx.poll_interval, 5.0), cancel_event=ctx.cancel_event,
        )
    return NodeResult(outputs=cert, changed=changed, record={"arn": cert.arn, "status": cert.status})


def destroy_certificate(ctx: RunContext) -> bool:
    arn = ctx.recorded(NODE_CERTIFICATE, "arn")
    if arn is None:
        for summary in ctx.provider.find_certificates(ctx.config.domain):
            arn = summary["CertificateArn"]
            break
    return certificate.destroy_certificate(ctx.provider, arn)


def apply_validation_records(ctx: RunContext) -> NodeResult:
    resolved: Zone = ctx.output(NODE_ZONE)
    cert: Certificate = ctx.output(NODE_CERTIFICATE)
    records = list(cert.validation_records.values())
    written = dns.publish_validation_records(ctx.provider, resolved, records)
    return NodeResult(
        outputs=records,
        changed=written > 0,
        record={"records": [asdict(record) for record in records]},
    )


def destroy_validation_records(ctx: RunContext) -> bool:
    recorded = ctx.recorded(NODE_VALIDATION_RECORDS, "records") or []
    if not recorded:
        return False
    record_sets = dns.unique_record_sets(ValidationRecord(**item) for item in recorded)
    return dns.delete_records(ctx.provider, _zone_for_destroy(ctx), record_sets) > 0


def apply_certificate_validation(ctx: RunContext) -> NodeResult:
    cert: Certificate = ctx.output(NODE_CERTIFICATE)
    issued = certificate.wait_for_issuance(
        ctx.provider,
        cert,
        timeout=ctx.config.validation_timeout_seconds,
        poll_interval=ctx.poll_interval,
        cancel_event=ctx.cancel_event,
    )
    return NodeResult(outputs=issued, state=STATE_ISSUED, record={"arn": issued.arn, "status": issued.status})


def apply_distribution(ctx: RunContext) -> NodeResult:
    distribution, changed = edge.ensure_distribution(
        ctx.provider,
        ctx.config,
        ctx.output(NODE_BUCKET),
        ctx.output(NODE_ORIGIN_ACCESS_CONTROL),
        ctx.output(NODE_CERTIFICATE_VALIDATION),
        ctx.recorded(NODE_DISTRIBUTION, "id"),
    )
    return NodeResult(
        outputs=distribution,
        changed=changed,
        record={
            "id": distribution.distribution_id,
            "arn": distribution.arn,
            "domainName": distribution.domain_name,
        },
    )


def destroy_distribution(ctx: RunContext) -> bool:
    return edge.destroy_distribution(ctx.provider, ctx.config, ctx.recorded(NODE_DISTRIBUTION, "id"))


def apply_bucket_policy(ctx: RunContext) -> NodeResult:
    distribution = ctx.output(NODE_DISTRIBUTION)
    written, rebound = policy.bind_bucket_policy(ctx.provider, ctx.config.bucket_name, distribution.arn)
    return NodeResult(
        outputs={"distributionArn": distribution.arn, "rebound": rebound},
        changed=written,
        record={"distributionArn": distribution.arn},
    )


def destroy_bucket_policy(ctx: RunContext) -> bool:
    return policy.destroy_bucket_policy(ctx.provider, ctx.config.bucket_name)


def apply_apex_alias(ctx: RunContext) -> NodeResult:
    alias, changed = dns.publish_alias(
        ctx.provider,
        ctx.output(NODE_ZONE),
        ctx.config.domain,
        ctx.output(NODE_DISTRIBUTION),
        owned_target=ctx.recorded(NODE_APEX_ALIAS, "target"),
    )
    return NodeResult(outputs=alias, changed=changed, record={"name": alias.name, "target": alias.target_domain})


def destroy_apex_alias(ctx: RunContext) -> bool:
    resolved = _zone_for_destroy(ctx)
    live = ctx.provider.get_record(resolved.zone_id, ctx.config.domain + ".", "A")
    target = ctx.recorded(NODE_APEX_ALIAS, "target")
    if live is None or target is None:
        return False
    if (live.get("AliasTarget") or {}).get("DNSName", "").rstrip(".") != target.rstrip("."):
        logger.warning(f"A record for {ctx.config.domain} no longer points at {target}, leaving it in place")
        return False
    return dns.delete_records(ctx.provider, resolved, [live]) > 0


def build_site_graph() -> ResourceGraph:
    """Declare the static site stack.

    Zone, bucket, origin access control and certificate have no dependencies and
    may apply in parallel. The distribution explicitly waits for the certificate
    to be issued rather than only for it to be requested.
    """
    return ResourceGraph([
        ResourceNode(NODE_ZONE, "Route53Zone", apply_zone),
        ResourceNode(NODE_BUCKET, "S3Bucket", apply_bucket, destroy_bucket),
        ResourceNode(
            NODE_ORIGIN_ACCESS_CONTROL, "CloudFrontOriginAccessControl",
            apply_origin_access_control, destroy_origin_access_control,
        ),
        ResourceNode(NODE_CERTIFICATE, "ACMCertificate", apply_certificate, destroy_certificate),
        ResourceNode(
            NODE_VALIDATION_RECORDS, "Route53Records",
            apply_validation_records, destroy_validation_records,
            depends_on=(NODE_ZONE, NODE_CERTIFICATE),
        ),
        ResourceNode(
            NODE_CERTIFICATE_VALIDATION, "ACMCertificateValidation",
            apply_certificate_validation,
            depends_on=(NODE_CERTIFICATE, NODE_VALIDATION_RECORDS),
            terminal_state=STATE_ISSUED,
        ),
        ResourceNode(
            NODE_DISTRIBUTION, "CloudFrontDistribution",
            apply_distribution, destroy_distribution,
            depends_on=(NODE_BUCKET, NODE_ORIGIN_ACCESS_CONTROL, NODE_CERTIFICATE_VALIDATION),
        ),
        ResourceNode(
            NODE_BUCKET_POLICY, "S3BucketPolicy",
            apply_bucket_policy, destroy_bucket_policy,
            depends_on=(NODE_BUCKET, NODE_DISTRIBUTION),
        ),
        ResourceNode(
            NODE_APEX_ALIAS, "Route53AliasRecord",
            apply_apex_alias, destroy_apex_alias,
            depends_on=(NODE_ZONE, NODE_DISTRIBUTION),
        ),
    ])


REQUIRED_ORDERING = [
    (NODE_VALIDATION_RECORDS, NODE_CERTIFICATE),
    (NODE_CERTIFICATE_VALIDATION, NODE_VALIDATION_RECORDS),
    (NODE_DISTRIBUTION, NODE_CERTIFICATE_VALIDATION),
    (NODE_DISTRIBUTION, NODE_BUCKET),
    (NODE_BUCKET_POLICY, NODE_DISTRIBUTION),
    (NODE_APEX_ALIAS, NODE_DISTRIBUTION),
]


def verify_ordering(graph: ResourceGraph) -> None:
    """Statically check the ordering the stack relies on.

    Raises:
        GraphOrderingError: If a required edge (direct or transitive) is missing
    """
    for node, prerequisite in REQUIRED_ORDERING:
        if node not in graph or prerequisite not in graph:
            raise GraphOrderingError(f"Resource graph is missing {node} or {prerequisite}")
        if not graph.requires(node, prerequisite):
            raise GraphOrderingError(f"{node} must depend on {prerequisite}")
    if graph[NODE_CERTIFICATE_VALIDATION].terminal_state != STATE_ISSUED:
        raise GraphOrderingError(f"{NODE_CERTIFICATE_VALIDATION} must complete in the issued state")
