"""Tests for the NationStates API client and its parsing helpers."""

from datetime import UTC, datetime, timedelta
from email.utils import format_datetime

import httpx
import pytest

from open_letter.core.security import ConfigurationError, generate_verification_token
from open_letter.core.settings import settings
from open_letter.services.nationstates import (
    UNKNOWN_REGION,
    NationInfo,
    NationStatesClient,
    NationStatesConfig,
    NationStatesError,
    NationStatesHTTPError,
    build_flag_url,
    format_nation_name,
    parse_nation_xml,
    parse_retry_after,
)
from open_letter.services.rate_limiter import RateLimiter

BASE_URL = "https://ns.test/cgi-bin/api.cgi"
FLAG_TEMPLATE = "https://www.nationstates.net/images/flags/{code}.jpg"

NATION_XML = """<NATION id="testlandia">
<NAME>Testlandia</NAME>
<FLAG>https://www.nationstates.net/images/flags/uploads/testlandia.svg</FLAG>
<REGION>Testregionia</REGION>
</NATION>"""


def _make_client(handler) -> NationStatesClient:
    config = NationStatesConfig(
        base_url=BASE_URL,
        user_agent="OpenLetterTests/1.0",
        timeout_seconds=5.0,
        flag_url_template=FLAG_TEMPLATE,
    )
    return NationStatesClient(
        config,
        limiter=RateLimiter(0.0),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_verify_sends_site_token_and_accepts_one():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="1\n")

    client = _make_client(handler)
    try:
        assert await client.verify("Testlandia Prime", " abc123 ") is True
    finally:
        await client.close()

    params = seen[0].url.params
    assert params["a"] == "verify"
    assert params["nation"] == "Testlandia_Prime"
    assert params["checksum"] == "abc123"
    assert params["token"] == generate_verification_token("Testlandia Prime")
    assert seen[0].headers["User-Agent"] == "OpenLetterTests/1.0"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["0", "", "<error>bad</error>"])
async def test_verify_rejects_anything_but_one(body):
    client = _make_client(lambda request: httpx.Response(200, text=body))
    try:
        assert await client.verify("Testlandia", "abc") is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_verify_reports_http_errors_as_false():
    client = _make_client(lambda request: httpx.Response(500, text="oops"))
    try:
        assert await client.verify("Testlandia", "abc") is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_verify_reports_transport_errors_as_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _make_client(handler)
    try:
        assert await client.verify("Testlandia", "abc") is False
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_verify_retries_after_rate_limit():
    responses = iter([httpx.Response(429, headers={"Retry-After": "0"}), httpx.Response(200, text="1")])
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return next(responses)

    client = _make_client(handler)
    try:
        assert await client.verify("Testlandia", "abc") is True
    finally:
        await client.close()
    assert calls == 2


@pytest.mark.asyncio
async def test_verify_without_token_secret_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "ns_verify_token_secret", None)
    client = _make_client(lambda request: httpx.Response(200, text="1"))
    try:
        with pytest.raises(ConfigurationError):
            await client.verify("Testlandia", "abc")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_fetch_nation_parses_flag_and_region():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=NATION_XML)

    client = _make_client(handler)
    try:
        info = await client.fetch_nation("testlandia")
    finally:
        await client.close()

    assert info == NationInfo(
        name="Testlandia",
        flag_url="https://www.nationstates.net/images/flags/uploads/testlandia.svg",
        region="Testregionia",
    )
    assert seen[0].url.params["q"] == "name+flag+region"


@pytest.mark.asyncio
async def test_fetch_nation_returns_none_for_unknown_nation():
    client = _make_client(lambda request: httpx.Response(200, text="Unknown nation: nowhere"))
    try:
        assert await client.fetch_nation("nowhere") is None
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_fetch_nation_raises_on_http_error():
    client = _make_client(lambda request: httpx.Response(503, text="down"))
    try:
        with pytest.raises(NationStatesHTTPError) as excinfo:
            await client.fetch_nation("testlandia")
    finally:
        await client.close()
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_fetch_nation_wraps_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = _make_client(handler)
    try:
        with pytest.raises(NationStatesError):
            await client.fetch_nation("testlandia")
    finally:
        await client.close()


def test_parse_nation_xml_defaults_missing_region():
    info = parse_nation_xml("<NATION><NAME>Testlandia</NAME><FLAG>uk</FLAG></NATION>", FLAG_TEMPLATE)
    assert info is not None
    assert info.region == UNKNOWN_REGION
    assert info.flag_url == "https://www.nationstates.net/images/flags/uk.jpg"


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not xml at all",
        "<NATION><NAME>broken",
        "<NATION><REGION>Somewhere</REGION></NATION>",
        "<NATION><NAME>   </NAME></NATION>",
    ],
)
def test_parse_nation_xml_rejects_unusable_documents(text):
    assert parse_nation_xml(text, FLAG_TEMPLATE) is None


def test_build_flag_url():
    assert build_flag_url("", FLAG_TEMPLATE) == ""
    assert build_flag_url(None, FLAG_TEMPLATE) == ""
    assert build_flag_url("uk", FLAG_TEMPLATE) == "https://www.nationstates.net/images/flags/uk.jpg"
    assert build_flag_url("https://cdn.test/flag.png", FLAG_TEMPLATE) == "https://cdn.test/flag.png"


def test_format_nation_name():
    assert format_nation_name("  The Testlandia Republic ") == "The_Testlandia_Republic"


def test_parse_retry_after_seconds():
    assert parse_retry_after("2") == 2.0
    assert parse_retry_after("1.5") == 1.5


@pytest.mark.parametrize("value", [None, "", "0", "-3", "soon", "inf"])
def test_parse_retry_after_rejects_unusable_values(value):
    assert parse_retry_after(value) is None


def test_parse_retry_after_http_date():
    target = datetime.now(UTC) + timedelta(seconds=90)
    parsed = parse_retry_after(format_datetime(target, usegmt=True))
    assert parsed is not None
    assert 80 < parsed <= 90
