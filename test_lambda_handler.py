"""
AWS Lambda adapter tests
The Mangum handler itself is replaced; these cover event logging and the error envelope.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import lambda_handler as module


CONTEXT = SimpleNamespace(aws_request_id="test-request-id", function_name="identity-resolution")

V2_EVENT = {
    "version": "2.0",
    "rawPath": "/identify",
    "requestContext": {"http": {"method": "POST", "path": "/identify"}},
    "body": json.dumps({"email": "test@lambda.com", "phoneNumber": "5550100"}),
    "isBase64Encoded": False,
}


def test_describe_event_formats():
    assert module.describe_event(V2_EVENT) == "POST /identify"
    assert module.describe_event({"httpMethod": "GET", "path": "/health"}) == "GET /health"
    assert module.describe_event({}) == "unknown event format"


def test_lambda_handler_passes_through_mangum_response(monkeypatch):
    expected = {"statusCode": 200, "headers": {}, "body": "{}"}
    fake = MagicMock(return_value=expected)
    monkeypatch.setattr(module, "handler", fake)

    assert module.lambda_handler(V2_EVENT, CONTEXT) == expected
    fake.assert_called_once_with(V2_EVENT, CONTEXT)


def test_lambda_handler_returns_error_envelope(monkeypatch):
    monkeypatch.setattr(module, "handler", MagicMock(side_effect=RuntimeError("boom")))

    response = module.lambda_handler(V2_EVENT, CONTEXT)

    assert response["statusCode"] == 500
    body = json.loads(response["body"])
    assert body["error"] == "InternalServerError"
    assert body["requestId"] == "test-request-id"
