"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import Mock, patch

import kopf
import pytest

from static_site_operator.constants import FINALIZER
from static_site_operator.handlers.base import BaseHandler


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="StaticSite")
        assert handler.kind == "StaticSite"
        assert handler.logger is not None

    def test_ensure_finalizer_adds_when_missing(self):
        """Test that finalizer is added when not present."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"finalizers": []}
        patch = kopf.Patch()

        handler.ensure_finalizer(meta, patch)

        assert FINALIZER in patch.metadata["finalizers"]

    def test_ensure_finalizer_leaves_meta_untouched(self):
        """Test that the incoming metadata list is not mutated."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"finalizers": ["other-finalizer"]}
        patch = kopf.Patch()

        handler.ensure_finalizer(meta, patch)

        assert meta["finalizers"] == ["other-finalizer"]
        assert patch.metadata["finalizers"] == ["other-finalizer", FINALIZER]

    def test_ensure_finalizer_no_patch_when_present(self):
        """Test that nothing is patched when the finalizer is already there."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"finalizers": [FINALIZER]}
        patch = kopf.Patch()

        handler.ensure_finalizer(meta, patch)

        assert "finalizers" not in patch.metadata

    def test_remove_finalizer(self):
        """Test that finalizer is removed and others are kept."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"finalizers": [FINALIZER, "other-finalizer"]}
        patch = kopf.Patch()

        handler.remove_finalizer(meta, patch)

        assert patch.metadata["finalizers"] == ["other-finalizer"]

    def test_remove_finalizer_sets_none_when_empty(self):
        """Test that finalizers is set to None when last finalizer is removed."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"finalizers": [FINALIZER]}
        patch = kopf.Patch()

        handler.remove_finalizer(meta, patch)

        assert patch.metadata["finalizers"] is None

    @patch("static_site_operator.handlers.base.emit_validate_failed")
    def test_handle_validation_error_is_permanent(self, mock_emit):
        """Test that an invalid spec is not retried."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"name": "site", "namespace": "web"}

        with pytest.raises(kopf.PermanentError, match="bad domain"):
            handler.handle_validation_error(meta, "bad domain")

        mock_emit.assert_called_once_with(meta, "bad domain")

    @patch("static_site_operator.handlers.base.log_resource_event")
    def test_log_error_sanitizes_exception(self, mock_log):
        """Test that logged errors carry a sanitized message and type."""
        handler = BaseHandler(kind="StaticSite")
        error = RuntimeError("secret_access_key: " + "a" * 40)

        handler.log_error({"name": "site"}, "failed", error=error, reason="Boom")

        kwargs = mock_log.call_args.kwargs
        assert kwargs["controller"] == "static-site-operator"
        assert kwargs["reason"] == "Boom"
        assert kwargs["error_type"] == "RuntimeError"
        assert "a" * 40 not in kwargs["error"]

    @patch("static_site_operator.handlers.base.emit_reconcile_started")
    @patch("static_site_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_success(self, mock_metrics, mock_emit_started):
        """Test successful reconciliation with metrics."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"name": "site", "namespace": "default"}
        reconcile_fn = Mock()

        handler.reconcile_with_metrics(meta, reconcile_fn)

        reconcile_fn.assert_called_once()
        mock_emit_started.assert_called_once_with(meta)
        mock_metrics.reconcile_total.labels.assert_any_call(kind="StaticSite", result="started")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="StaticSite", result="success")
        assert mock_metrics.reconcile_duration_seconds.labels.called

    @patch("static_site_operator.handlers.base.emit_reconcile_failed")
    @patch("static_site_operator.handlers.base.emit_reconcile_started")
    @patch("static_site_operator.handlers.base.metrics")
    @patch("static_site_operator.handlers.base.sanitize_exception")
    def test_reconcile_with_metrics_failure(
        self, mock_sanitize, mock_metrics, mock_emit_started, mock_emit_failed
    ):
        """Test failed reconciliation with metrics and error handling."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"name": "site", "namespace": "default"}
        mock_sanitize.return_value = "Sanitized error"

        def failing_fn():
            raise kopf.TemporaryError("later")

        with pytest.raises(kopf.TemporaryError):
            handler.reconcile_with_metrics(meta, failing_fn)

        mock_emit_started.assert_called_once_with(meta)
        mock_emit_failed.assert_called_once_with(meta, "Reconciliation failed: Sanitized error")
        mock_metrics.error_total.labels.assert_called_with(kind="StaticSite", error_type="TemporaryError")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="StaticSite", result="error")

    @patch("static_site_operator.handlers.base.metrics")
    def test_update_resource_status_ready(self, mock_metrics):
        """Test updating resource status to ready."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"name": "site", "generation": 5}
        patch = kopf.Patch()

        handler.update_resource_status(patch, meta, ready=True, status_data={"outputs": {"siteUrl": "https://a.b"}})

        assert patch.status["observedGeneration"] == 5
        assert patch.status["outputs"] == {"siteUrl": "https://a.b"}
        mock_metrics.resource_status_total.labels.assert_called_with(kind="StaticSite", status="ready")

    @patch("static_site_operator.handlers.base.metrics")
    def test_update_resource_status_not_ready(self, mock_metrics):
        """Test updating resource status to not ready."""
        handler = BaseHandler(kind="StaticSite")
        meta = {"name": "site"}
        patch = kopf.Patch()

        handler.update_resource_status(patch, meta, ready=False)

        assert patch.status["observedGeneration"] == 0
        mock_metrics.resource_status_total.labels.assert_called_with(kind="StaticSite", status="not_ready")
