"""
Pydantic schemas for the /identify endpoint
Handles request validation and response serialization
"null" strings and blank values are treated as missing identifiers
"""

import re
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, field_validator, model_validator

# Syntax check only; the submitted value is stored, not the normalized one
_email_syntax = TypeAdapter(EmailStr)


def _blank_to_none(v):
    """Map None, "null" (any case) and blank strings to None"""
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in ('null', ''):
        return None
    return v


class IdentifyRequest(BaseModel):
    """
    Request schema for the /identify endpoint
    Validates that at least one of email or phoneNumber is provided
    Identifiers are matched exactly, so values are only trimmed, never reformatted
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"email": "lorraine@hillvalley.edu", "phoneNumber": "123456"},
                {"email": "mcfly@hillvalley.edu", "phoneNumber": None},
                {"email": None, "phoneNumber": "123456"},
            ]
        }
    )

    email: Optional[str] = Field(
        None,
        max_length=255,
        description="Customer email address",
        examples=["lorraine@hillvalley.edu", None]
    )
    phoneNumber: Optional[str] = Field(
        None,
        max_length=20,
        description="Customer phone number",
        examples=["123456", "+1-555-0100", None]
    )

    @field_validator('email', mode='before')
    @classmethod
    def validate_email(cls, v) -> Optional[str]:
        """Clean email input and validate its syntax"""
        v = _blank_to_none(v)
        if v is None:
            return None

        if not isinstance(v, str):
            raise ValueError('Email must be a string')

        v = v.strip()
        try:
            _email_syntax.validate_python(v)
        except ValidationError:
            raise ValueError('Invalid email format') from None
        return v

    @field_validator('phoneNumber', mode='before')
    @classmethod
    def validate_phone_number(cls, v) -> Optional[str]:
        """
        Clean phone number input
        Accepts numbers as well as strings; requires at least 3 digits
        """
        v = _blank_to_none(v)
        if v is None:
            return None

        # JSON clients often send the phone number as a number
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(int(v))

        if not isinstance(v, str):
            raise ValueError('Phone number must be a string or number')

        v = v.strip()
        if len(re.sub(r'[^\d]', '', v)) < 3:
            raise ValueError('Phone number must contain at least 3 digits')

        # Stored as provided
        return v

    @model_validator(mode='after')
    def validate_at_least_one_field(self):
        """Ensure at least one of email or phoneNumber is provided"""
        if not self.email and not self.phoneNumber:
            raise ValueError('Either email or phoneNumber must be provided')
        return self


class ContactResponse(BaseModel):
    """
    Consolidated view of one identity cluster
    Primary contact's email and phone always come first
    """
    primaryContactId: int = Field(
        description="ID of the primary contact"
    )
    emails: List[str] = Field(
        description="All email addresses of the identity, primary's first",
        examples=[["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"]]
    )
    phoneNumbers: List[str] = Field(
        description="All phone numbers of the identity, primary's first",
        examples=[["123456"]]
    )
    secondaryContactIds: List[int] = Field(
        description="IDs of all secondary contacts, oldest first",
        examples=[[23]]
    )


class IdentifyResponse(BaseModel):
    """
    Response schema for the /identify endpoint
    Contains the consolidated contact information
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "contact": {
                    "primaryContactId": 1,
                    "emails": ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
                    "phoneNumbers": ["123456"],
                    "secondaryContactIds": [23]
                }
            }
        }
    )

    contact: ContactResponse = Field(
        description="Consolidated contact information"
    )


class ErrorResponse(BaseModel):
    """
    Error response schema for API errors
    """
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "ValidationError",
                    "message": "Either email or phoneNumber must be provided",
                    "details": {"errors": [{"field": "body", "message": "...", "type": "value_error"}]}
                },
                {
                    "error": "StoreUnavailable",
                    "message": "Contact store is currently unavailable. Please try again later."
                }
            ]
        }
    )

    error: str = Field(
        description="Error type or category"
    )
    message: str = Field(
        description="Human-readable error message"
    )
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error details"
    )
