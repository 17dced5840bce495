"""Unit tests for correlation ids and the request logging middleware."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from covenant_registry.api.middleware import LoggingMiddleware
from covenant_registry.infrastructure.observability import (
    CORRELATION_HEADER,
    correlation_id_processor,
    get_correlation_id,
    set_correlation_id,
)


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)

    @app.get("/echo")
    async def echo() -> dict:
        return {"correlation_id": get_correlation_id()}

    return app


class TestCorrelationProcessor:
    def test_adds_current_id(self) -> None:
        set_correlation_id("abc-123")

        event = correlation_id_processor(None, "info", {"event": "x"})

        assert event["correlation_id"] == "abc-123"
        set_correlation_id("")

    def test_keeps_explicit_id(self) -> None:
        set_correlation_id("abc-123")

        event = correlation_id_processor(None, "info", {"correlation_id": "mine"})

        assert event["correlation_id"] == "mine"
        set_correlation_id("")


class TestLoggingMiddleware:
    """Correlation id propagation through requests."""

    def test_reuses_caller_correlation_id(self) -> None:
        client = TestClient(build_app())

        response = client.get("/echo", headers={CORRELATION_HEADER: "req-42"})

        assert response.headers[CORRELATION_HEADER] == "req-42"
        assert response.json() == {"correlation_id": "req-42"}

    def test_generates_correlation_id(self) -> None:
        client = TestClient(build_app())

        response = client.get("/echo")

        assert response.headers[CORRELATION_HEADER]
        assert response.json()["correlation_id"] == response.headers[CORRELATION_HEADER]
