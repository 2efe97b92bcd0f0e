"""Tests for Sentry error tracking helpers."""
from unittest.mock import MagicMock, patch

import pytest

from comercialhg.config import sentry
from comercialhg.config.sentry import (
    add_breadcrumb,
    capture_exception,
    filter_sensitive_data,
    init_sentry,
)


@pytest.fixture
def sentry_enabled(monkeypatch):
    monkeypatch.setattr(sentry.settings, "dsn", "https://key@sentry.example.com/1")
    monkeypatch.setattr(sentry.settings, "enable_alerts", True)


@pytest.mark.unit
class TestInitSentry:

    def test_skipped_without_dsn(self, monkeypatch):
        monkeypatch.setattr(sentry.settings, "dsn", None)

        with patch("comercialhg.config.sentry.sentry_sdk.init") as mock_init:
            init_sentry()

            mock_init.assert_not_called()

    def test_skipped_while_testing(self, sentry_enabled):
        with patch("comercialhg.config.sentry.sentry_sdk.init") as mock_init:
            init_sentry()

            mock_init.assert_not_called()

    def test_initializes_with_filter(self, sentry_enabled, monkeypatch):
        monkeypatch.setenv("TESTING", "false")

        with patch("comercialhg.config.sentry.sentry_sdk.init") as mock_init:
            init_sentry()

            kwargs = mock_init.call_args.kwargs
            assert kwargs["dsn"] == "https://key@sentry.example.com/1"
            assert kwargs["before_send"] is filter_sensitive_data


@pytest.mark.unit
class TestFilterSensitiveData:

    def test_sensitive_headers_removed(self):
        event = {
            "request": {
                "headers": {
                    "Authorization": "Bearer secret",
                    "Cookie": "session=abc",
                    "Accept": "application/json",
                }
            }
        }

        result = filter_sensitive_data(event, {})

        assert result["request"]["headers"] == {"Accept": "application/json"}

    def test_user_reduced_to_id(self):
        event = {"user": {"id": "42", "email": "cliente@example.com", "ip_address": "10.0.0.1"}}

        assert filter_sensitive_data(event, {})["user"] == {"id": "42"}

    def test_event_without_request(self):
        event = {"message": "boom"}

        assert filter_sensitive_data(event, {}) == {"message": "boom"}


@pytest.mark.unit
class TestCaptureHelpers:

    def test_capture_disabled_returns_none(self, monkeypatch):
        monkeypatch.setattr(sentry.settings, "dsn", None)

        with patch("comercialhg.config.sentry.sentry_sdk.capture_exception") as mock_capture:
            assert capture_exception(RuntimeError("x")) is None
            mock_capture.assert_not_called()

    def test_capture_sets_context_and_tags(self, sentry_enabled):
        scope = MagicMock()
        with patch("comercialhg.config.sentry.sentry_sdk.new_scope") as mock_scope, \
             patch("comercialhg.config.sentry.sentry_sdk.capture_exception", return_value="evt") as mock_capture:
            mock_scope.return_value.__enter__.return_value = scope
            exc = RuntimeError("x")

            event_id = capture_exception(
                exc, context={"request": {"path": "/api/pedidos"}}, tags={"status_code": "500"}
            )

            assert event_id == "evt"
            scope.set_context.assert_called_once_with("request", {"path": "/api/pedidos"})
            scope.set_tag.assert_called_once_with("status_code", "500")
            mock_capture.assert_called_once_with(exc)

    def test_breadcrumb_forwarded_when_enabled(self, sentry_enabled):
        with patch("comercialhg.config.sentry.sentry_sdk.add_breadcrumb") as mock_breadcrumb:
            add_breadcrumb("Application error", category="error", data={"path": "/api"})

            mock_breadcrumb.assert_called_once_with(
                message="Application error", category="error", level="info", data={"path": "/api"}
            )
