import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from core.exceptions import DuplicateVoteError, StorageError
from core.middleware import ErrorHandlingMiddleware, RequestContextMiddleware, error_body


@pytest.fixture
def client():
    """App with both middleware and endpoints that fail in different ways."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"correlation_id": request.state.correlation_id}

    @app.get("/duplicate")
    async def duplicate():
        raise DuplicateVoteError("b-1", 1)

    @app.get("/storage")
    async def storage():
        raise StorageError("vote", "disk full")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internals")

    return TestClient(app)


class TestRequestContextMiddleware:
    def test_generates_correlation_id(self, client):
        response = client.get("/echo")

        assert response.status_code == 200
        assert response.json()["correlation_id"]
        assert response.headers["X-Correlation-ID"] == response.json()["correlation_id"]

    def test_reuses_incoming_request_id(self, client):
        response = client.get("/echo", headers={"X-Request-ID": "existing-id-123"})

        assert response.json()["correlation_id"] == "existing-id-123"

    def test_process_time_header(self, client):
        response = client.get("/echo")

        assert float(response.headers["X-Process-Time"]) >= 0


class TestErrorHandlingMiddleware:
    def test_business_error(self, client):
        response = client.get("/duplicate", headers={"X-Correlation-ID": "corr-1"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["type"] == "DuplicateVoteError"
        assert error["code"] == "DUPLICATE_VOTE"
        assert error["message"] == "Already voted"
        assert error["correlation_id"] == "corr-1"
        assert error["details"]["bubble_id"] == "b-1"
        assert response.headers["X-Correlation-ID"] == "corr-1"

    def test_storage_error(self, client):
        response = client.get("/storage")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "STORAGE_ERROR"

    def test_unexpected_error_is_opaque(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "secret" not in error["message"]


def test_error_body_omits_empty_fields():
    assert error_body("NotFoundError", "NOT_FOUND", "Bubble not found: x") == {
        "error": {"type": "NotFoundError", "code": "NOT_FOUND", "message": "Bubble not found: x"}
    }
