"""Handler for StaticSite CRD."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

import kopf

from .. import metrics
from ..builders.provider import create_provider_from_spec
from ..builders.site import create_site_config_from_spec
from ..constants import (
    API_GROUP_VERSION,
    COND_APPLY_FAILED,
    COND_CERTIFICATE_PENDING,
    COND_CONFLICT,
    COND_ZONE_NOT_FOUND,
    DEFAULT_DOMAIN,
    KIND_STATIC_SITE,
    NODE_BUCKET_POLICY,
    NODE_CERTIFICATE_VALIDATION,
)
from ..reconciler import Reconciler
from ..tracing import add_span_attribute, trace_span
from ..utils.conditions import (
    clear_condition,
    set_apply_failed_condition,
    set_certificate_pending_condition,
    set_conflict_condition,
    set_ready_condition,
    set_zone_not_found_condition,
)
from ..utils.context import new_correlation_id, with_correlation_id, with_site
from ..utils.errors import (
    ConflictError,
    DependencyNotReadyError,
    GraphCycleError,
    GraphOrderingError,
    ReconcileCancelledError,
    ResourceNotFoundError,
    TransientProviderError,
    ValidationTimeoutError,
    sanitize_exception,
)
from ..utils.events import (
    emit_certificate_pending,
    emit_event,
    emit_policy_rebound,
    emit_site_destroyed,
    emit_site_ready,
    emit_validate_succeeded,
)
from .base import BaseHandler

RETRY_DELAY_SECONDS = int(os.getenv("RETRY_DELAY_SECONDS", "60"))
DRIFT_CHECK_INTERVAL_SECONDS = int(os.getenv("DRIFT_CHECK_INTERVAL_SECONDS", "300"))
DRIFT_CHECK_IDLE_SECONDS = int(os.getenv("DRIFT_CHECK_IDLE_SECONDS", "60"))


class StaticSiteHandler(BaseHandler):
    """Handler for StaticSite resources."""

    def __init__(self):
        """Initialize static site handler."""
        super().__init__(KIND_STATIC_SITE)

    def _record_failure(
        self,
        meta: dict[str, Any],
        patch: kopf.Patch,
        reconciler: Reconciler,
        conditions: list[dict[str, Any]],
        message: str,
    ) -> None:
        conditions = set_ready_condition(conditions, False, message, meta.get("generation"))
        self.update_resource_status(patch, meta, False, {
            "resources": reconciler.state,
            "nodes": dict(reconciler.node_states),
            "conditions": conditions,
        })

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile StaticSite resource."""
        name = meta.get("name", "unknown")
        generation = meta.get("generation")

        with trace_span("reconcile_static_site", kind=KIND_STATIC_SITE, attributes={"site.name": name}):
            try:
                site = create_site_config_from_spec(spec)
            except ValueError as e:
                self.handle_validation_error(meta, str(e))
            emit_validate_succeeded(meta)
            add_span_attribute("site.domain", site.domain)

            provider = create_provider_from_spec(spec, meta, site.region)
            previous = (status or {}).get("resources") or {}
            conditions = list((status or {}).get("conditions", []))
            reconciler = Reconciler(provider, site, previous)

            issued = (previous.get(NODE_CERTIFICATE_VALIDATION) or {}).get("status") == "ISSUED"
            if not issued:
                emit_certificate_pending(meta, site.domain)
                conditions = set_certificate_pending_condition(
                    conditions, f"Waiting for certificate for {site.domain} to be issued", generation,
                )

            try:
                result = reconciler.apply()
            except (TransientProviderError, DependencyNotReadyError, ReconcileCancelledError) as e:
                message = sanitize_exception(e)
                self.log_warning(meta, f"Reconciliation will be retried: {message}", reason="RetryScheduled")
                self._record_failure(meta, patch, reconciler, conditions, message)
                raise kopf.TemporaryError(message, delay=RETRY_DELAY_SECONDS) from e
            except ResourceNotFoundError as e:
                message = sanitize_exception(e)
                conditions = set_zone_not_found_condition(conditions, message, generation)
                self._record_failure(meta, patch, reconciler, conditions, message)
                raise kopf.PermanentError(message) from e
            except ConflictError as e:
                message = sanitize_exception(e)
                conditions = set_conflict_condition(conditions, message, generation)
                self._record_failure(meta, patch, reconciler, conditions, message)
                raise kopf.PermanentError(message) from e
            except ValidationTimeoutError as e:
                message = sanitize_exception(e)
                conditions = set_certificate_pending_condition(conditions, message, generation)
                conditions = set_apply_failed_condition(conditions, message, generation)
                self._record_failure(meta, patch, reconciler, conditions, message)
                raise kopf.PermanentError(message) from e
            except (GraphCycleError, GraphOrderingError) as e:
                message = sanitize_exception(e)
                conditions = set_apply_failed_condition(conditions, message, generation)
                self._record_failure(meta, patch, reconciler, conditions, message)
                raise kopf.PermanentError(message) from e
            except Exception as e:
                # Left to kopf's own retry backoff
                message = sanitize_exception(e)
                conditions = set_apply_failed_condition(conditions, message, generation)
                self._record_failure(meta, patch, reconciler, conditions, message)
                raise

            for condition_type in (COND_CERTIFICATE_PENDING, COND_CONFLICT, COND_ZONE_NOT_FOUND, COND_APPLY_FAILED):
                conditions = clear_condition(conditions, condition_type)
            conditions = set_ready_condition(conditions, True, f"Site {site.site_url} is ready", generation)

            policy_outputs = result.node_outputs.get(NODE_BUCKET_POLICY) or {}
            if policy_outputs.get("rebound"):
                emit_policy_rebound(meta, site.bucket_name)
            if result.mutations:
                self.log_info(
                    meta,
                    f"Applied {result.mutations} change(s) to {site.domain}",
                    reason="Applied",
                    changed_nodes=result.changed_nodes,
                )
                emit_site_ready(meta, site.site_url)
            else:
                self.log_info(meta, f"Site {site.domain} is up to date", reason="UpToDate")

            self.update_resource_status(patch, meta, True, {
                "resources": result.state,
                "outputs": result.outputs,
                "nodes": result.node_states,
                "conditions": conditions,
                "lastSyncTime": datetime.now(timezone.utc).isoformat(),
            })

    def delete(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle StaticSite resource deletion."""
        name = meta.get("name", "unknown")
        self.log_info(meta, f"StaticSite {name} is being deleted", event="deletion", reason="Deletion")

        try:
            site = create_site_config_from_spec(spec)
        except ValueError as e:
            # Nothing was ever created for an invalid spec
            self.log_warning(meta, f"Skipping cleanup of invalid site: {e}", reason="DeletionSkipped")
            self.remove_finalizer(meta, patch)
            return

        reconciler = Reconciler(
            create_provider_from_spec(spec, meta, site.region),
            site,
            (status or {}).get("resources") or {},
        )
        with trace_span("destroy_static_site", kind=KIND_STATIC_SITE, attributes={"site.domain": site.domain}):
            try:
                destroyed = reconciler.destroy()
            except TransientProviderError as e:
                patch.status["resources"] = reconciler.state
                raise kopf.TemporaryError(sanitize_exception(e), delay=RETRY_DELAY_SECONDS) from e
            except ConflictError as e:
                # Only the content bucket is left at this point; keep it and let go of the resource
                message = sanitize_exception(e)
                self.log_warning(meta, f"Retaining bucket: {message}", reason="BucketRetained")
                emit_event(meta, "BucketRetained", message, type_="Warning")
                metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                self.remove_finalizer(meta, patch)
                return

        self.log_info(
            meta,
            f"Destroyed {len(destroyed)} resource(s) for {site.domain}",
            reason="Destroyed",
            destroyed=destroyed,
        )
        emit_site_destroyed(meta, site.domain)
        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = StaticSiteHandler()


def _site_label(spec: dict[str, Any]) -> str:
    return str(spec.get("domain") or DEFAULT_DOMAIN).lower().rstrip(".")


@kopf.on.create(API_GROUP_VERSION, KIND_STATIC_SITE)
@kopf.on.update(API_GROUP_VERSION, KIND_STATIC_SITE)
@kopf.on.resume(API_GROUP_VERSION, KIND_STATIC_SITE)
def handle_static_site(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle StaticSite resource reconciliation."""
    with with_correlation_id(new_correlation_id()), with_site(_site_label(spec)):
        with _handler.exclusive(meta) as acquired:
            if not acquired:
                raise kopf.TemporaryError("Reconciliation already in progress", delay=RETRY_DELAY_SECONDS)
            _handler.ensure_finalizer(meta, patch)
            _handler.reconcile_with_metrics(meta, lambda: _handler.reconcile(spec, meta, status, patch))


@kopf.timer(
    API_GROUP_VERSION,
    KIND_STATIC_SITE,
    interval=DRIFT_CHECK_INTERVAL_SECONDS,
    idle=DRIFT_CHECK_IDLE_SECONDS,
)
def handle_static_site_drift(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Re-apply a StaticSite periodically to correct drift."""
    if meta.get("deletionTimestamp"):
        return
    with with_correlation_id(new_correlation_id()), with_site(_site_label(spec)):
        with _handler.exclusive(meta) as acquired:
            if not acquired:
                _handler.log_info(meta, "Skipping drift check, reconciliation in progress", reason="DriftCheckSkipped")
                return
            _handler.reconcile_with_metrics(meta, lambda: _handler.reconcile(spec, meta, status, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_STATIC_SITE)
def handle_static_site_delete(
    spec: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle StaticSite resource deletion."""
    with with_correlation_id(new_correlation_id()), with_site(_site_label(spec)):
        with _handler.exclusive(meta) as acquired:
            if not acquired:
                raise kopf.TemporaryError("Reconciliation still in progress", delay=RETRY_DELAY_SECONDS)
            _handler.delete(spec, meta, status, patch)
        _handler.forget(meta)
