"""Pydantic schemas for link records and API request/response bodies.

This module defines the domain record shared by every store adapter and the
Pydantic models used for API input validation and output serialization. Wire
field names are camelCase (``shortCode``, ``originalUrl``) while Python
attributes stay snake_case.

Schema Hierarchy
=================
::
    LinkRecord (Domain + Output)
    ├─ short_code: str        (shortCode)
    ├─ original_url: str      (originalUrl)
    ├─ created_at: datetime?  (createdAt, None while a write is queued)
    ├─ clicks: int            (clicks, >= 0)
    └─ owner: str | None      (owner, always None)

    ShortenRequest (Input)
    └─ original_url: str      (originalUrl)

    ShortenResponse (Output)
    ├─ short_code: str
    └─ original_url: str

    ErrorResponse (Output)
    └─ error: str

    HealthResponse (Output)
    ├─ status: HealthStatus
    └─ store: HealthStatus

How to Use
===========
**Step 1 — Build a record for a new link**::
    record = LinkRecord.new("aB3xY9", "https://example.com")

**Step 2 — Serialize with wire names**::
    record.model_dump(mode="json", by_alias=True)
    # {"shortCode": "aB3xY9", "originalUrl": "https://example.com", ...}

**Step 3 — Parse wire payloads**::
    LinkRecord.model_validate({"shortCode": "aB3xY9", "originalUrl": "https://example.com"})

Key Behaviours
===============
- Both alias and attribute names are accepted on input.
- URL format is validated by the shortening service, not by these models, so
  malformed URLs surface as InvalidInputError rather than a validation error.
- Records are built from ORM rows via ``from_attributes``.

Classes:
    LinkRecord:  One shortened URL.
    ShortenRequest:  Input schema for POST /api/shorten.
    ShortenResponse:  Output schema for POST /api/shorten.
    ErrorResponse:  Output schema for API errors.
    HealthResponse:  Output schema for health checks.
"""

import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from swiftlink.enums import HealthStatus

__all__ = [
    "LinkRecord",
    "ShortenRequest",
    "ShortenResponse",
    "ErrorResponse",
    "HealthResponse",
]

_WIRE_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "from_attributes": True,
}


class LinkRecord(BaseModel):
    short_code: str
    original_url: str
    created_at: datetime.datetime | None = None
    clicks: int = Field(0, ge=0)
    owner: str | None = None

    model_config = _WIRE_CONFIG

    @classmethod
    def new(cls, short_code: str, original_url: str) -> "LinkRecord":
        """Record for a link about to be written; the store assigns created_at."""
        return cls(short_code=short_code, original_url=original_url, created_at=None, clicks=0, owner=None)


class ShortenRequest(BaseModel):
    original_url: str = ""

    model_config = _WIRE_CONFIG


class ShortenResponse(BaseModel):
    short_code: str
    original_url: str

    model_config = _WIRE_CONFIG


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: HealthStatus
    store: HealthStatus
