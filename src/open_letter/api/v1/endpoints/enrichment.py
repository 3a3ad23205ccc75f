"""Attach nation display data to signature records for listing."""

from sqlalchemy.orm import Session

from open_letter.repositories.signature_repo import SignatureRecord
from open_letter.services.nation_lookup import NationDisplayData, NationLookupService
from open_letter.services.nationstates import UNKNOWN_REGION


async def display_data_for(
    lookup: NationLookupService,
    db: Session,
    records: list[SignatureRecord],
) -> list[NationDisplayData | None]:
    """Resolve display data for each record, in order.

    Lookups are awaited one after another; live fallbacks are serialised by
    the rate limiter anyway.
    """
    results: list[NationDisplayData | None] = []
    for record in records:
        results.append(await lookup.lookup_display_data(db, record.nation_name))
    return results


def flag_and_region(data: NationDisplayData | None) -> tuple[str, str]:
    """Return ``(flag_url, region)`` with the list's not-found defaults."""
    if data is None:
        return "", UNKNOWN_REGION
    return data.flag_url or "", data.region or UNKNOWN_REGION
