"""
Indexed graph client.

POSTs GraphQL queries either to a proxy endpoint (which holds the API
key) or directly to the gateway. Rate limits feed the shared cooldown
tracker; queries are refused locally while it is cooling down.
"""

from typing import Any

import aiohttp
from loguru import logger

from cundina.config.constants import GRAPH_HTTP_TIMEOUT
from cundina.utils.exceptions import (
    GraphCooldownError,
    GraphQueryError,
    GraphRateLimitedError,
)

from .throttle import CooldownTracker


def _mentions_rate_limit(text: str) -> bool:
    lowered = text.lower()
    return "429" in lowered or "rate limit" in lowered


class GraphClient:
    """Thin aiohttp GraphQL client with 429 detection."""

    def __init__(
        self,
        endpoint: str | None,
        cooldown: CooldownTracker,
        api_key: str | None = None,
        use_proxy: bool = True,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize graph client.

        Args:
            endpoint: Proxy or gateway URL; None disables the client
            cooldown: Shared cooldown tracker
            api_key: Gateway API key (direct mode only)
            use_proxy: Proxy mode reports gateway failures inside the body
            session: Externally managed aiohttp session
        """
        self.endpoint = endpoint
        self.cooldown = cooldown
        self.api_key = api_key
        self.use_proxy = use_proxy
        self._session = session

    @property
    def configured(self) -> bool:
        return bool(self.endpoint)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=GRAPH_HTTP_TIMEOUT)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def query(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Execute a query and return its ``data`` object.

        Raises:
            GraphCooldownError: Refused locally during cooldown
            GraphRateLimitedError: Service answered 429 (cooldown recorded)
            GraphQueryError: GraphQL errors, missing data or HTTP failure
        """
        if not self.configured:
            raise GraphQueryError("Indexed graph endpoint not configured")
        if self.cooldown.in_cooldown():
            raise GraphCooldownError(
                f"Indexed graph in cooldown ({self.cooldown.remaining_seconds()}s remaining)"
            )

        headers = {"Content-Type": "application/json"}
        if self.api_key and not self.use_proxy:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"query": query, "variables": variables or {}}
        logger.debug(f"[GraphClient] POST {self.endpoint} variables={variables}")

        try:
            session = await self._get_session()
            async with session.post(self.endpoint, json=payload, headers=headers) as response:
                status = response.status
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            if _mentions_rate_limit(str(e)):
                self.cooldown.record_rate_limit()
                raise GraphRateLimitedError() from e
            raise GraphQueryError(f"Indexed graph request failed: {e}") from e

        return self._unwrap(status, body)

    def _unwrap(self, status: int, body: Any) -> dict[str, Any]:
        if status == 429:
            self.cooldown.record_rate_limit()
            raise GraphRateLimitedError()

        if not isinstance(body, dict):
            raise GraphQueryError(f"Unexpected response (HTTP {status})")

        proxy_error = body.get("error")
        if isinstance(proxy_error, str):
            if _mentions_rate_limit(proxy_error):
                self.cooldown.record_rate_limit()
                raise GraphRateLimitedError(f"Proxy reported rate limit: {proxy_error}")
            raise GraphQueryError(f"Proxy error: {proxy_error}")

        errors = body.get("errors")
        if errors:
            message = errors[0].get("message", str(errors[0])) if isinstance(errors[0], dict) else str(errors[0])
            if _mentions_rate_limit(message):
                self.cooldown.record_rate_limit()
                raise GraphRateLimitedError(message)
            raise GraphQueryError(f"Indexed graph query error: {message}")

        if status >= 400:
            raise GraphQueryError(f"Indexed graph HTTP {status}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise GraphQueryError("Indexed graph returned no data")

        self.cooldown.record_success()
        return data
