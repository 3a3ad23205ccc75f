"""Tests for cache-aware nation display data lookup."""

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from open_letter.repositories.nation_cache_repo import NationCacheRepository
from open_letter.services.nation_lookup import NationDisplayData, NationLookupService
from open_letter.services.nationstates import NationInfo, NationStatesError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
FLAG = "https://www.nationstates.net/images/flags/uk.jpg"


def _seed(session, name: str, *, age: timedelta = timedelta(0), region: str = "Testregionia"):
    NationCacheRepository(session).upsert_many([(name, FLAG, region)], updated_at=NOW - age)
    session.commit()


def _service(client, *, live_fallback: bool) -> NationLookupService:
    return NationLookupService(
        client,
        live_fallback=live_fallback,
        max_age=timedelta(hours=24),
        now=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_cache_hit_is_served_without_api_call(db_session, mock_ns_client):
    _seed(db_session, "Testlandia")

    data = await _service(mock_ns_client, live_fallback=True).lookup_display_data(
        db_session, "Testlandia"
    )

    assert data == NationDisplayData(name="Testlandia", flag_url=FLAG, region="Testregionia")
    mock_ns_client.fetch_nation.assert_not_awaited()


@pytest.mark.asyncio
async def test_cache_hit_is_case_insensitive(db_session, mock_ns_client):
    _seed(db_session, "Testlandia")

    data = await _service(mock_ns_client, live_fallback=False).lookup_display_data(
        db_session, "TESTLANDIA"
    )

    assert data is not None
    assert data.name == "Testlandia"


@pytest.mark.asyncio
async def test_miss_without_live_fallback_is_not_found(db_session, mock_ns_client):
    data = await _service(mock_ns_client, live_fallback=False).lookup_display_data(
        db_session, "Nowhere"
    )

    assert data is None
    mock_ns_client.fetch_nation.assert_not_awaited()


@pytest.mark.asyncio
async def test_stale_entry_is_served_when_live_fallback_disabled(db_session, mock_ns_client):
    _seed(db_session, "Testlandia", age=timedelta(days=30))

    data = await _service(mock_ns_client, live_fallback=False).lookup_display_data(
        db_session, "Testlandia"
    )

    assert data is not None
    mock_ns_client.fetch_nation.assert_not_awaited()


@pytest.mark.asyncio
async def test_miss_with_live_fallback_fetches_and_caches(db_session, session_factory, mock_ns_client):
    mock_ns_client.fetch_nation.return_value = NationInfo(
        name="Testlandia", flag_url=FLAG, region="Testregionia"
    )

    data = await _service(mock_ns_client, live_fallback=True).lookup_display_data(
        db_session, "Testlandia"
    )

    assert data == NationDisplayData(name="Testlandia", flag_url=FLAG, region="Testregionia")
    with session_factory() as fresh:
        cached = NationCacheRepository(fresh).get("Testlandia")
    assert cached is not None
    assert cached.region == "Testregionia"
    assert cached.last_updated == NOW


@pytest.mark.asyncio
async def test_stale_entry_is_refreshed_from_api(db_session, session_factory, mock_ns_client):
    _seed(db_session, "Testlandia", age=timedelta(hours=48), region="Old Region")
    mock_ns_client.fetch_nation.return_value = NationInfo(
        name="Testlandia", flag_url=FLAG, region="New Region"
    )

    data = await _service(mock_ns_client, live_fallback=True).lookup_display_data(
        db_session, "Testlandia"
    )

    assert data is not None
    assert data.region == "New Region"
    with session_factory() as fresh:
        cached = NationCacheRepository(fresh).get("Testlandia")
    assert cached is not None
    assert cached.region == "New Region"


@pytest.mark.asyncio
async def test_invalid_nation_removes_cached_entry(db_session, session_factory, mock_ns_client):
    _seed(db_session, "Ghostland", age=timedelta(hours=48))
    mock_ns_client.fetch_nation.return_value = None

    data = await _service(mock_ns_client, live_fallback=True).lookup_display_data(
        db_session, "Ghostland"
    )

    assert data is None
    with session_factory() as fresh:
        assert NationCacheRepository(fresh).get("Ghostland") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [NationStatesError("upstream down"), httpx.ConnectError("refused")],
)
async def test_upstream_failure_serves_stale_entry(db_session, mock_ns_client, error):
    _seed(db_session, "Testlandia", age=timedelta(hours=48))
    mock_ns_client.fetch_nation.side_effect = error

    data = await _service(mock_ns_client, live_fallback=True).lookup_display_data(
        db_session, "Testlandia"
    )

    assert data == NationDisplayData(name="Testlandia", flag_url=FLAG, region="Testregionia")


@pytest.mark.asyncio
async def test_upstream_failure_on_miss_is_not_found(db_session, mock_ns_client):
    mock_ns_client.fetch_nation.side_effect = NationStatesError("upstream down")

    data = await _service(mock_ns_client, live_fallback=True).lookup_display_data(
        db_session, "Nowhere"
    )

    assert data is None
