"""Admin endpoints: session login/logout and signature moderation."""

import logging

from fastapi import APIRouter, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError

from open_letter.api.v1.dependencies import (
    ADMIN_COOKIE_NAME,
    AdminDep,
    NationLookupDep,
    SessionDep,
)
from open_letter.api.v1.endpoints.enrichment import display_data_for, flag_and_region
from open_letter.core.security import (
    ConfigurationError,
    create_admin_session_token,
    verify_admin_password,
)
from open_letter.core.settings import settings
from open_letter.repositories.signature_repo import SignatureRepository
from open_letter.schemas.admin import AdminLogin, MessageResponse
from open_letter.schemas.signature import AdminSignatureResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

SERVER_ERROR_DETAIL = "Internal server error."


@router.post("/login", response_model=MessageResponse)
async def login(payload: AdminLogin, response: Response) -> MessageResponse:
    """Exchange the admin password for a signed session cookie."""
    try:
        valid = verify_admin_password(payload.password)
    except ConfigurationError as exc:
        logger.error("Admin login unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin login is not configured.",
        ) from exc

    if not valid:
        logger.warning("Rejected admin login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    response.set_cookie(
        key=ADMIN_COOKIE_NAME,
        value=create_admin_session_token(),
        max_age=settings.admin_session_ttl_minutes * 60,
        httponly=True,
        secure=settings.admin_cookie_secure,
        samesite="lax",
        path="/",
    )
    return MessageResponse(message="Logged in successfully!")


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear the admin session cookie."""
    response.delete_cookie(
        key=ADMIN_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.admin_cookie_secure,
        samesite="lax",
    )
    return MessageResponse(message="Logged out successfully!")


@router.get("/signatures", response_model=list[AdminSignatureResponse])
async def list_signatures_for_admin(
    _: AdminDep,
    db: SessionDep,
    lookup: NationLookupDep,
) -> list[AdminSignatureResponse]:
    """List every signature, newest first, including stored checksums."""
    try:
        records = SignatureRepository(db).list_signatures(order="desc")
    except SQLAlchemyError as exc:
        logger.error("Error fetching all signatures for admin: %s", exc, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=SERVER_ERROR_DETAIL,
        ) from exc

    display = await display_data_for(lookup, db, records)
    response = []
    for record, data in zip(records, display, strict=True):
        flag_url, region = flag_and_region(data)
        response.append(
            AdminSignatureResponse(
                id=record.id,
                nation_name=record.nation_name,
                checksum=record.checksum,
                signed_at=record.signed_at,
                flag_url=flag_url,
                region=region,
            )
        )
    return response


@router.delete("/signatures/{signature_id}", response_model=MessageResponse)
async def delete_signature(
    signature_id: int,
    _: AdminDep,
    db: SessionDep,
) -> MessageResponse:
    """Delete one signature by id. Deleting an unknown id succeeds without effect."""
    try:
        deleted = SignatureRepository(db).delete(signature_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Error deleting signature %s: %s", signature_id, exc, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=SERVER_ERROR_DETAIL,
        ) from exc

    if deleted:
        logger.info("Admin deleted signature %s", signature_id)
    return MessageResponse(message=f"Signature {signature_id} deleted.")
