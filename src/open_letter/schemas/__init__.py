# src/open_letter/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .admin import AdminLogin, MessageResponse
from .dump import DumpRefreshResponse
from .signature import (
    AdminSignatureResponse,
    SignatureCreate,
    SignatureResponse,
    SignResult,
    VerificationLink,
)

__all__ = [
    "AdminLogin", "MessageResponse",
    "DumpRefreshResponse",
    "AdminSignatureResponse", "SignatureCreate", "SignatureResponse", "SignResult",
    "VerificationLink",
]
