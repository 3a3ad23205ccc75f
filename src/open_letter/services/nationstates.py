"""NationStates API client.

This module provides the NationStatesClient class that handles the two live,
per-nation calls the service needs:

- checksum verification for signing (``a=verify``)
- flag and region lookup for a single nation (``q=name+flag+region``)

Every request goes through the process-wide :class:`RateLimiter`.
"""

from __future__ import annotations

import asyncio
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from open_letter.core.security import generate_verification_token
from open_letter.core.settings import settings
from open_letter.services.rate_limiter import RateLimiter, RateLimitSignal, get_rate_limiter

# Configure logger for this module
logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
UNKNOWN_REGION = "Unknown Region"


class NationStatesError(RuntimeError):
    """Base exception raised for NationStates API failures."""


class NationStatesHTTPError(NationStatesError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"NationStates responded with {status_code}")
        self.status_code = status_code
        self.body = body


class RateLimitedError(NationStatesHTTPError, RateLimitSignal):
    """Raised on HTTP 429; the rate limiter requeues the call."""

    def __init__(self, retry_after: float | None, body: str = "") -> None:
        super().__init__(HTTP_TOO_MANY_REQUESTS, body)
        self.retry_after = retry_after


@dataclass(frozen=True)
class NationStatesConfig:
    """Immutable configuration for NationStates API calls."""

    base_url: str
    user_agent: str
    timeout_seconds: float
    flag_url_template: str


@dataclass(frozen=True)
class NationInfo:
    """Display metadata for a nation as reported by the API."""

    name: str
    flag_url: str
    region: str


def load_nationstates_config() -> NationStatesConfig:
    """Build configuration object from global settings."""

    return NationStatesConfig(
        base_url=settings.ns_api_base_url,
        user_agent=settings.ns_user_agent,
        timeout_seconds=float(settings.ns_http_timeout_seconds),
        flag_url_template=settings.ns_flag_url_template,
    )


def format_nation_name(nation_name: str) -> str:
    """Return the API form of a nation name (spaces become underscores)."""
    return nation_name.strip().replace(" ", "_")


def build_flag_url(flag: str | None, template: str) -> str:
    """Turn a flag code (or URL) into an absolute flag image URL.

    Older dumps carry a bare code such as ``uk``; current ones carry the full
    URL, which is kept as-is.
    """
    flag = (flag or "").strip()
    if not flag:
        return ""
    if flag.startswith(("http://", "https://")):
        return flag
    return template.format(code=flag)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header into seconds.

    Accepts delta-seconds or an HTTP-date. Returns ``None`` for a missing,
    malformed, or non-positive value.
    """
    if not value:
        return None

    try:
        seconds = float(value)
    except (TypeError, ValueError):
        pass
    else:
        if seconds > 0.0 and math.isfinite(seconds):
            return seconds
        return None

    try:
        target_time = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None

    if target_time.tzinfo is None:
        target_time = target_time.replace(tzinfo=UTC)
    delta = (target_time - datetime.now(UTC)).total_seconds()
    if delta > 0.0 and math.isfinite(delta):
        return delta
    return None


def _child_text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def parse_nation_xml(text: str, flag_url_template: str) -> NationInfo | None:
    """Parse a single-nation API response.

    Returns ``None`` for non-XML bodies, malformed XML, or a response without
    a ``NAME`` element (the API's shape for unknown nations).
    """
    stripped = text.strip()
    if not stripped.startswith("<"):
        return None
    try:
        root = ET.fromstring(stripped)
    except ET.ParseError:
        return None

    nation = root if root.tag == "NATION" else root.find("NATION")
    if nation is None:
        return None

    name = _child_text(nation, "NAME")
    if not name:
        return None

    return NationInfo(
        name=name,
        flag_url=build_flag_url(_child_text(nation, "FLAG"), flag_url_template),
        region=_child_text(nation, "REGION") or UNKNOWN_REGION,
    )


class NationStatesClient:
    """HTTP client wrapper for NationStates API interactions."""

    def __init__(
        self,
        config: NationStatesConfig | None = None,
        *,
        limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_nationstates_config()
        self.limiter = limiter or get_rate_limiter()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers={"User-Agent": self.config.user_agent},
                    transport=self._transport,
                )
        return self._client

    async def _get_text(self, params: dict[str, Any]) -> str:
        """Issue one throttled GET against the API and return the body text.

        Raises:
            RateLimitedError: On HTTP 429 (handled by the limiter).
            NationStatesHTTPError: On any other non-2xx status.
            httpx.HTTPError: On transport failures.
        """
        client = await self._ensure_client()

        async def _call() -> str:
            response = await client.get(self.config.base_url, params=params)
            if response.status_code == HTTP_TOO_MANY_REQUESTS:
                raise RateLimitedError(
                    parse_retry_after(response.headers.get("Retry-After")),
                    response.text,
                )
            if not response.is_success:
                raise NationStatesHTTPError(response.status_code, response.text)
            return response.text

        label = f"{self.config.base_url}?{'&'.join(sorted(params))}"
        return await self.limiter.throttle(_call, label)

    async def verify(self, nation_name: str, checksum: str) -> bool:
        """Verify that the caller controls ``nation_name``.

        Returns True only when the API answers with a bare ``1``. HTTP and
        network failures are logged and reported as False.

        Raises:
            ConfigurationError: If the verification token secret is missing.
        """
        token = generate_verification_token(nation_name)
        params = {
            "a": "verify",
            "nation": format_nation_name(nation_name),
            "checksum": checksum.strip(),
            "token": token,
        }
        try:
            body = await self._get_text(params)
        except NationStatesHTTPError as exc:
            logger.warning(
                "NationStates verify failed for %s: status %s - %s",
                nation_name,
                exc.status_code,
                exc.body[:200],
            )
            return False
        except (NationStatesError, httpx.HTTPError) as exc:
            logger.warning("Error verifying nation %s with NationStates: %s", nation_name, exc)
            return False
        return body.strip() == "1"

    async def fetch_nation(self, nation_name: str) -> NationInfo | None:
        """Fetch live display metadata for ``nation_name``.

        Returns:
            The parsed nation, or None when the API does not recognise it or
            answers with something other than a nation document.

        Raises:
            NationStatesError: On HTTP or transport failures.
        """
        params = {"nation": format_nation_name(nation_name), "q": "name+flag+region"}
        try:
            body = await self._get_text(params)
        except httpx.HTTPError as exc:
            raise NationStatesError(f"NationStates request failed: {exc}") from exc

        info = parse_nation_xml(body, self.config.flag_url_template)
        if info is None:
            logger.warning(
                "No valid nation data for %s; response snippet: %s",
                nation_name,
                body[:100],
            )
        return info

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _NationStatesClientSingleton:
    """Singleton wrapper for NationStatesClient."""

    _instance: NationStatesClient | None = None

    @classmethod
    def get_instance(cls) -> NationStatesClient:
        """Get or create the singleton NationStatesClient instance."""
        if cls._instance is None:
            cls._instance = NationStatesClient()
        return cls._instance


def get_nationstates_client() -> NationStatesClient:
    """Return a singleton NationStates client instance."""
    return _NationStatesClientSingleton.get_instance()
