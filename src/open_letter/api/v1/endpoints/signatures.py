"""Public signature endpoints: listing, verification links and signing."""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from open_letter.api.v1.dependencies import NationLookupDep, NationStatesClientDep, SessionDep
from open_letter.api.v1.endpoints.enrichment import display_data_for, flag_and_region
from open_letter.core.security import (
    ConfigurationError,
    build_verification_url,
    generate_verification_token,
)
from open_letter.repositories.signature_repo import SignatureRepository
from open_letter.schemas.signature import (
    SignatureCreate,
    SignatureResponse,
    SignResult,
    VerificationLink,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/signatures", tags=["signatures"])

VERIFICATION_FAILED_DETAIL = (
    "NationStates verification failed. Please ensure the nation name and checksum "
    "are correct, and you are logged into NationStates as that nation."
)
SERVER_ERROR_DETAIL = "Internal server error."
SIGNATURE_ADDED_MESSAGE = "Thank you for signing the letter! Your signature has been added."
SIGNATURE_RERECORDED_MESSAGE = (
    "You have already signed the letter. "
    "Your signature has been re-recorded with the current timestamp."
)


@router.get("", response_model=list[SignatureResponse])
async def list_signatures(
    db: SessionDep,
    lookup: NationLookupDep,
    order: Annotated[Literal["asc", "desc"], Query()] = "desc",
) -> list[SignatureResponse]:
    """List every signature with the nation's flag and region.

    Checksums are never included in the public listing.
    """
    try:
        records = SignatureRepository(db).list_signatures(order=order)
    except SQLAlchemyError as exc:
        logger.error("Error fetching signatures: %s", exc, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=SERVER_ERROR_DETAIL,
        ) from exc

    display = await display_data_for(lookup, db, records)
    response = []
    for record, data in zip(records, display, strict=True):
        flag_url, region = flag_and_region(data)
        response.append(
            SignatureResponse(
                id=record.id,
                nation_name=record.nation_name,
                signed_at=record.signed_at,
                flag_url=flag_url,
                region=region,
            )
        )
    return response


@router.get("/verification", response_model=VerificationLink)
async def get_verification_link(
    nation: Annotated[str, Query(min_length=1, max_length=40)],
) -> VerificationLink:
    """Return the site token and NationStates login-verification link for a nation.

    The signer opens the link while logged in as the nation and copies the
    checksum it shows back into the signing form.
    """
    nation_name = nation.strip()
    if not nation_name:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Nation name is required.",
        )
    try:
        token = generate_verification_token(nation_name)
        url = build_verification_url(nation_name)
    except ConfigurationError as exc:
        logger.error("Cannot build verification link: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification is not configured.",
        ) from exc
    return VerificationLink(nation_name=nation_name, token=token, verification_url=url)


@router.post("", response_model=SignResult)
async def sign_letter(
    payload: SignatureCreate,
    db: SessionDep,
    client: NationStatesClientDep,
) -> SignResult:
    """Verify control of the nation and record (or re-record) its signature."""
    try:
        verified = await client.verify(payload.nation_name, payload.checksum)
    except ConfigurationError as exc:
        logger.error("Error processing signature for %s: %s", payload.nation_name, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=SERVER_ERROR_DETAIL,
        ) from exc

    if not verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=VERIFICATION_FAILED_DETAIL,
        )

    try:
        _, created = SignatureRepository(db).record_signature(
            payload.nation_name,
            payload.checksum,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Error recording signature for %s: %s",
            payload.nation_name,
            exc,
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=SERVER_ERROR_DETAIL,
        ) from exc

    if created:
        logger.info("New signature from %s", payload.nation_name)
        return SignResult(message=SIGNATURE_ADDED_MESSAGE, created=True)
    logger.info("Signature re-recorded for %s", payload.nation_name)
    return SignResult(message=SIGNATURE_RERECORDED_MESSAGE, created=False)
