# src/open_letter/schemas/signature.py
"""Signature-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class SignatureCreate(BaseModel):
    """Schema for signing the letter."""

    nation_name: str = Field(..., min_length=1, max_length=40)
    checksum: str = Field(..., min_length=1, max_length=128)

    @field_validator("nation_name", "checksum")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class SignResult(BaseModel):
    """Outcome of a successful signing."""

    message: str
    created: bool


class SignatureResponse(BaseModel):
    """Public view of a signature, enriched with nation display data."""

    id: int
    nation_name: str
    signed_at: datetime
    flag_url: str = ""
    region: str = "Unknown Region"


class AdminSignatureResponse(SignatureResponse):
    """Admin view of a signature, including the stored checksum."""

    checksum: str


class VerificationLink(BaseModel):
    """Site token and NationStates login-verification link for a nation."""

    nation_name: str
    token: str
    verification_url: str
