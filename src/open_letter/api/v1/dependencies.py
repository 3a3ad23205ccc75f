"""Shared API dependencies for sessions, services and admin authentication."""

import hmac
from typing import Annotated

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from open_letter.core.security import is_admin_session_valid
from open_letter.core.settings import settings
from open_letter.db.session import get_db
from open_letter.services.dump_ingest import DumpIngestionPipeline, get_dump_pipeline
from open_letter.services.nation_lookup import NationLookupService, get_nation_lookup_service
from open_letter.services.nationstates import NationStatesClient, get_nationstates_client

ADMIN_COOKIE_NAME = "admin_session"

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_nationstates_client_dep() -> NationStatesClient:
    """Get NationStatesClient dependency for dependency injection."""
    return get_nationstates_client()


def get_nation_lookup_dep() -> NationLookupService:
    """Get NationLookupService dependency for dependency injection."""
    return get_nation_lookup_service()


def get_dump_pipeline_dep() -> DumpIngestionPipeline:
    """Get DumpIngestionPipeline dependency for dependency injection."""
    return get_dump_pipeline()


NationStatesClientDep = Annotated[NationStatesClient, Depends(get_nationstates_client_dep)]
NationLookupDep = Annotated[NationLookupService, Depends(get_nation_lookup_dep)]
DumpPipelineDep = Annotated[DumpIngestionPipeline, Depends(get_dump_pipeline_dep)]


def require_admin(
    admin_session: Annotated[str | None, Cookie(alias=ADMIN_COOKIE_NAME)] = None,
) -> None:
    """Reject the request unless it carries a valid admin session cookie.

    Raises:
        HTTPException: 401 if the cookie is missing, expired or forged.
    """
    if not is_admin_session_valid(admin_session):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def require_dump_trigger(
    admin_session: Annotated[str | None, Cookie(alias=ADMIN_COOKIE_NAME)] = None,
    trigger_secret: Annotated[str | None, Header(alias="X-Dump-Trigger-Secret")] = None,
) -> None:
    """Allow the dump trigger for an admin session or the scheduler's shared secret.

    Raises:
        HTTPException: 401 if neither credential is valid.
    """
    if is_admin_session_valid(admin_session):
        return
    expected = settings.dump_trigger_secret
    if expected and trigger_secret and hmac.compare_digest(trigger_secret, expected):
        return
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )


AdminDep = Annotated[None, Depends(require_admin)]
DumpTriggerDep = Annotated[None, Depends(require_dump_trigger)]
