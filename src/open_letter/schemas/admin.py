"""Schemas for the admin session endpoints."""
from __future__ import annotations

from pydantic import BaseModel, Field


class AdminLogin(BaseModel):
    """Admin password submission."""

    password: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    """Plain acknowledgement message."""

    message: str
