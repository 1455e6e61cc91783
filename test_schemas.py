"""
Schema validation tests for the Contact Identity Resolution API
Covers request cleaning rules and response serialization.
"""

import pytest
from pydantic import ValidationError

from schemas import IdentifyRequest, ContactResponse, IdentifyResponse, ErrorResponse


@pytest.mark.parametrize("case, email, phone", [
    ({"email": "test@example.com", "phoneNumber": "+1234567890"}, "test@example.com", "+1234567890"),
    ({"email": "user@domain.org"}, "user@domain.org", None),
    ({"phoneNumber": "+91-987-654-3210"}, None, "+91-987-654-3210"),
    ({"phoneNumber": 123456}, None, "123456"),
    ({"email": "  spaced@example.com  ", "phoneNumber": " 123456 "}, "spaced@example.com", "123456"),
    ({"email": "NULL", "phoneNumber": "123456"}, None, "123456"),
    ({"email": "a@example.com", "phoneNumber": ""}, "a@example.com", None),
])
def test_identify_request_accepts(case, email, phone):
    request = IdentifyRequest(**case)
    assert request.email == email
    assert request.phoneNumber == phone


@pytest.mark.parametrize("case", [
    {},
    {"email": None, "phoneNumber": None},
    {"email": "null", "phoneNumber": "null"},
    {"email": "invalid-email"},
    {"email": "user@"},
    {"email": "two@@example.com"},
    {"email": "spaces in@example.com"},
    {"email": "nodot@localhost"},
    {"email": "toolong" + "x" * 250 + "@example.com"},
    {"phoneNumber": "12"},
    {"phoneNumber": "12345678901234567890123"},
    {"phoneNumber": True},
])
def test_identify_request_rejects(case):
    with pytest.raises(ValidationError):
        IdentifyRequest(**case)


def test_email_is_not_reformatted():
    # Exact-match keys: the validator checks syntax but keeps the submitted text
    assert IdentifyRequest(email="Doc@HillValley.EDU").email == "Doc@HillValley.EDU"


def test_identify_response_serialization():
    contact = ContactResponse(
        primaryContactId=1,
        emails=["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
        phoneNumbers=["123456"],
        secondaryContactIds=[23]
    )
    response = IdentifyResponse(contact=contact)

    assert response.model_dump() == {
        "contact": {
            "primaryContactId": 1,
            "emails": ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
            "phoneNumbers": ["123456"],
            "secondaryContactIds": [23]
        }
    }
    assert IdentifyResponse.model_validate_json(response.model_dump_json()) == response


def test_error_response_details_optional():
    error = ErrorResponse(error="StoreUnavailable", message="down")
    assert error.model_dump() == {"error": "StoreUnavailable", "message": "down", "details": None}
