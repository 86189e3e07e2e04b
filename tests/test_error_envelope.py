"""Tests for the error envelope and exception-to-status mapping.

Error responses share one shape:
{
    "status": "error",
    "error": {"code": "<stable_code>", "message": "<text>", "details": <object|array|null>},
    "request_id": "<uuid>"
}
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError

from tasklist.api.error_handling import (
    _STATUS_TO_CODE,
    _error_code_for_status,
    _error_response,
    register_exception_handlers,
)
from tasklist.api.schemas import Envelope, ErrorBody
from tasklist.service.errors import BadRequestError, InvalidTokenError
from tasklist.storage.errors import (
    NotFoundError,
    SnapshotError,
    StoreError,
    UnauthorizedError,
)


class TestErrorBody:
    """Tests for the ErrorBody model."""

    def test_known_code_accepted(self):
        error = ErrorBody(code="forbidden", message="not permitted")

        assert error.code == "forbidden"
        assert error.details is None

    def test_unknown_code_rejected(self):
        with pytest.raises(ValidationError):
            ErrorBody(code="teapot", message="short and stout")

    def test_message_required(self):
        with pytest.raises(ValidationError):
            ErrorBody(code="not_found")


class TestEnvelope:
    """Tests for the Envelope model."""

    def test_request_id_generated(self):
        envelope = Envelope(status="ok")

        assert len(envelope.request_id) == 36

    def test_status_restricted(self):
        with pytest.raises(ValidationError):
            Envelope(status="success")


class TestErrorCodeMapping:
    """HTTP status to stable code."""

    @pytest.mark.parametrize(
        "status,code",
        [
            (400, "validation_error"),
            (401, "unauthorized"),
            (403, "forbidden"),
            (404, "not_found"),
            (422, "validation_error"),
            (500, "server_error"),
        ],
    )
    def test_mapping(self, status, code):
        assert _error_code_for_status(status) == code

    def test_unknown_status_defaults_to_server_error(self):
        assert _error_code_for_status(418) == "server_error"

    def test_every_mapped_code_is_a_valid_error_body_code(self):
        for code in set(_STATUS_TO_CODE.values()):
            ErrorBody(code=code, message="x")

    def test_error_response_shape(self):
        response = _error_response(404, "task not found", {"task_id": "abc"})

        assert response.status_code == 404
        body = json.loads(response.body)
        assert body["status"] == "error"
        assert body["data"] is None
        assert body["error"] == {
            "code": "not_found",
            "message": "task not found",
            "details": {"task_id": "abc"},
        }


@pytest.fixture
def raising_client():
    """An app whose routes raise each domain exception."""
    app = FastAPI()
    register_exception_handlers(app)

    errors = {
        "not-found": NotFoundError("task not found", {"task_id": "t1"}),
        "unauthorized": UnauthorizedError("not permitted", {"task_id": "t1"}),
        "store": StoreError("disk full", {"path": "/secret/location"}),
        "snapshot": SnapshotError("bad snapshot", {"path": "/secret/location"}),
        "bad-request": BadRequestError("task id must be a UUID"),
        "invalid-token": InvalidTokenError("invalid token"),
    }

    @app.get("/raise/{name}")
    def raise_error(name: str):
        raise errors[name]

    return TestClient(app)


class TestExceptionHandlers:
    """Domain exceptions become enveloped HTTP errors."""

    @pytest.mark.parametrize(
        "name,status,code",
        [
            ("not-found", 404, "not_found"),
            ("unauthorized", 403, "forbidden"),
            ("store", 500, "server_error"),
            ("snapshot", 500, "server_error"),
            ("bad-request", 400, "validation_error"),
            ("invalid-token", 401, "unauthorized"),
        ],
    )
    def test_status_and_code(self, raising_client, name, status, code):
        response = raising_client.get(f"/raise/{name}")

        assert response.status_code == status
        assert response.json()["error"]["code"] == code

    def test_store_failure_hides_internals(self, raising_client):
        body = raising_client.get("/raise/store").json()

        assert body["error"]["message"] == "internal server error"
        assert "/secret/location" not in json.dumps(body)

    def test_not_found_keeps_message(self, raising_client):
        body = raising_client.get("/raise/not-found").json()

        assert body["error"]["message"] == "task not found"
        assert body["error"]["details"] == {"task_id": "t1"}
