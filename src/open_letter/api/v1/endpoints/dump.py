"""Manual trigger for the daily nation dump ingestion."""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from open_letter.api.v1.dependencies import DumpPipelineDep, DumpTriggerDep
from open_letter.schemas.dump import DumpRefreshResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dump", tags=["dump"])


@router.post(
    "/refresh",
    response_model=DumpRefreshResponse,
    responses={status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": DumpRefreshResponse}},
)
async def refresh_dump(_: DumpTriggerDep, pipeline: DumpPipelineDep) -> JSONResponse:
    """Run one ingestion of the daily dump and report its outcome.

    The request is held open for the whole run. A failed run answers 500 with
    the same body shape so callers can read the message.
    """
    result = await pipeline.run()
    payload = DumpRefreshResponse(
        success=result.success,
        message=result.message,
        nations_processed=result.count,
    )
    if not result.success:
        logger.warning("Triggered dump refresh failed: %s", result.message)
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        content=payload.model_dump(),
    )
