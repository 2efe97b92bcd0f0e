"""Tests for the terminal error funnel."""
import pytest
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from comercialhg.api.middleware.error_funnel import ErrorFunnelMiddleware
from comercialhg.api.routes.table import RouteGroup
from comercialhg.core.application import create_application
from comercialhg.utils.errors import (
    AppError,
    MalformedBodyError,
    NotFoundError,
    PayloadTooLargeError,
    TooManyParametersError,
    ValidationError as AppValidationError,
    error_content,
)

SECRET = "postgres://admin:s3cr3t@db/comercialhg"


def failing_router() -> APIRouter:
    router = APIRouter()

    @router.get("/sync")
    def sync_failure():
        raise RuntimeError(f"connection refused for {SECRET}")

    @router.get("/async")
    async def async_failure():
        raise ValueError(f"bad state {SECRET}")

    @router.get("/app-error")
    async def app_failure():
        raise NotFoundError("Pedido", "42")

    @router.get("/validated/{pedido_id}")
    async def validated(pedido_id: int):
        return {"id": pedido_id}

    @router.get("/handled")
    async def handled():
        return JSONResponse({"ok": True})

    return router


def client_for(settings, header_policy) -> TestClient:
    table = (RouteGroup("pedidos", "/api/pedidos", failing_router()),)
    app = create_application(settings, route_table=table, header_policy=header_policy)
    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.unit
class TestAppErrors:

    def test_app_error_defaults(self):
        error = AppError("Test error message")
        assert error.message == "Test error message"
        assert error.status_code == 500
        assert error.code == "APP_ERROR"
        assert error.details == {}
        assert str(error) == "Test error message"

    def test_validation_error(self):
        error = AppValidationError("Invalid", details={"field": "email"})
        assert error.status_code == 400
        assert error.code == "VALIDATION_ERROR"
        assert error.details == {"field": "email"}

    def test_not_found_error_message(self):
        error = NotFoundError("Pedido", "42")
        assert error.status_code == 404
        assert error.message == "Pedido not found (id: 42)"

    def test_payload_too_large(self):
        error = PayloadTooLargeError(1024)
        assert error.status_code == 413
        assert error.details == {"limit": 1024}

    def test_malformed_body(self):
        error = MalformedBodyError()
        assert error.status_code == 400
        assert error.code == "MALFORMED_JSON"

    def test_error_content_shape(self):
        assert error_content("X", "msg") == {"error": "X", "message": "msg", "details": {}}


@pytest.mark.api
@pytest.mark.integration
class TestErrorFunnel:

    @pytest.mark.parametrize("path", ["/api/pedidos/sync", "/api/pedidos/async"])
    def test_production_hides_internal_details(self, production_settings, header_policy, path):
        with client_for(production_settings, header_policy) as client:
            response = client.get(path)

        assert response.status_code == 500
        assert response.json() == {
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": {},
        }
        assert "s3cr3t" not in response.text
        assert "Traceback" not in response.text

    def test_development_includes_exception_summary(self, settings, header_policy):
        with client_for(settings, header_policy) as client:
            response = client.get("/api/pedidos/sync")

        assert response.status_code == 500
        details = response.json()["details"]
        assert details["type"] == "RuntimeError"
        assert "connection refused" in details["message"]
        assert "Traceback" not in response.text

    def test_app_error_keeps_its_status(self, production_settings, header_policy):
        with client_for(production_settings, header_policy) as client:
            response = client.get("/api/pedidos/app-error")

        assert response.status_code == 404
        assert response.json() == {
            "error": "NOT_FOUND",
            "message": "Pedido not found (id: 42)",
            "details": {},
        }

    def test_request_validation_error(self, settings, header_policy):
        with client_for(settings, header_policy) as client:
            response = client.get("/api/pedidos/validated/not-a-number")

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]["errors"]

    def test_server_keeps_serving_after_errors(self, settings, header_policy):
        with client_for(settings, header_policy) as client:
            client.get("/api/pedidos/sync")
            response = client.get("/api/pedidos/handled")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_method_not_allowed_on_static_fallback(self, client):
        response = client.post("/catalogo")

        assert response.status_code == 405
        assert response.json()["error"] == "HTTP_405"


@pytest.mark.api
@pytest.mark.integration
class TestServerErrorsThroughPipeline:
    """Unexpected errors answer from inside the pipeline stages."""

    def test_server_error_carries_security_headers(self, settings, header_policy):
        with client_for(settings, header_policy) as client:
            response = client.get("/api/pedidos/sync")

        assert response.status_code == 500
        assert response.headers["content-security-policy"].startswith("default-src 'self'")
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_server_error_keeps_cors_grant(self, settings, header_policy):
        with client_for(settings, header_policy) as client:
            response = client.get(
                "/api/pedidos/async", headers={"Origin": "http://localhost:5173"}
            )

        assert response.status_code == 500
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    async def test_half_sent_response_is_not_replaced(self):
        async def streaming_failure(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            raise RuntimeError("stream broke")

        sent = []

        async def send(message):
            sent.append(message)

        middleware = ErrorFunnelMiddleware(streaming_failure)
        scope = {"type": "http", "method": "GET", "path": "/api/modelos/3d", "headers": []}

        with pytest.raises(RuntimeError):
            await middleware(scope, None, send)

        assert [m["type"] for m in sent] == ["http.response.start"]


@pytest.mark.unit
class TestTooManyParametersError:

    def test_status_and_code(self):
        error = TooManyParametersError(1000)

        assert error.status_code == 413
        assert error.code == "TOO_MANY_PARAMETERS"
        assert error.details == {"limit": 1000}
