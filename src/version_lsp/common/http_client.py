"""Shared async HTTP helpers used by every registry client.

Encapsulates session lifetime, timeouts and the translation of transport
failures into the FetchError taxonomy so registry modules avoid
duplicating try/except blocks. No retries happen here; a failed fetch
simply leaves the cache as it was.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..constants import Constants
from ..errors import MalformedResponseError, TransientFetchError, UpstreamNotFoundError
from .logging_utils import Timer, extra_context, is_debug_enabled, redact, safe_url

logger = logging.getLogger(__name__)


class HttpClient:
    """Thin wrapper over one aiohttp session shared by all registries."""

    def __init__(self, timeout: float = Constants.REQUEST_TIMEOUT, user_agent: str = Constants.USER_AGENT):
        """Initialize the client.

        Args:
            timeout: Total per-request timeout in seconds.
            user_agent: User-Agent header sent with every request.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": self._user_agent},
            )

    async def stop(self) -> None:
        """Stop the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get_text(
        self,
        url: str,
        *,
        registry_type: str,
        package_name: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """GET a URL and return the body text of a 2xx response.

        Raises:
            UpstreamNotFoundError: on HTTP 404 (and 410, used by the Go proxy)
            TransientFetchError: on other statuses, connection errors and timeouts
            MalformedResponseError: when the body cannot be decoded as text
        """
        await self.start()
        assert self._session is not None
        target = safe_url(url)
        with Timer() as timer:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(event="http_request", component="http_client",
                                        action="GET", target=target, registry=registry_type),
                )
            try:
                async with self._session.get(url, headers=headers) as response:
                    status = response.status
                    # Error bodies are never read, so a 404 stays a 404 whatever its encoding.
                    body = await response.text() if 200 <= status < 300 else ""
            except asyncio.TimeoutError as exc:
                logger.warning(
                    "%s request timed out after %s seconds", registry_type, self._timeout.total,
                    extra=extra_context(event="http_exception", outcome="timeout", target=target),
                )
                raise TransientFetchError(registry_type, package_name, "request timed out") from exc
            except (UnicodeDecodeError, LookupError) as exc:
                logger.warning(
                    "%s response could not be decoded: %s", registry_type, exc,
                    extra=extra_context(event="http_exception", outcome="decode_error", target=target),
                )
                raise MalformedResponseError(registry_type, package_name, f"undecodable body: {exc}") from exc
            except aiohttp.ClientError as exc:
                logger.warning(
                    "%s connection error: %s", registry_type, redact(str(exc)),
                    extra=extra_context(event="http_exception", outcome="client_error", target=target),
                )
                raise TransientFetchError(
                    registry_type, package_name, f"connection error: {redact(str(exc))}") from exc

        logger.debug(
            "HTTP response",
            extra=extra_context(event="http_response", component="http_client", action="GET",
                                status_code=status, duration_ms=timer.duration_ms(), target=target),
        )
        if status in (404, 410):
            raise UpstreamNotFoundError(registry_type, package_name)
        if not 200 <= status < 300:
            raise TransientFetchError(
                registry_type, package_name, f"unexpected status: {status}", status_code=status)
        return body

    async def get_json(
        self,
        url: str,
        *,
        registry_type: str,
        package_name: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """GET a URL and decode the JSON body.

        Raises:
            MalformedResponseError: when the body is not valid JSON
            plus everything get_text raises
        """
        request_headers = {"Accept": "application/json"}
        request_headers.update(headers or {})
        text = await self.get_text(url, registry_type=registry_type,
                                   package_name=package_name, headers=request_headers)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning(
                "Failed to parse %s registry response: %s", registry_type, exc,
                extra=extra_context(event="parse", outcome="json_decode_error", target=safe_url(url)),
            )
            raise MalformedResponseError(registry_type, package_name, f"invalid JSON: {exc}") from exc

    async def __aenter__(self) -> "HttpClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
