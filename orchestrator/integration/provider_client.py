"""HTTP client for the external scraping provider.

Wraps the five provider endpoints:

    POST /scrape              synchronous fetch, payload in the response
    POST /task                submit one URL, returns a task id
    POST /task/batch          submit a list of task bodies, returns a batch id
    GET  /task/{id}           poll a task
    GET  /task/batch/{id}     poll a batch

Request bodies start from the platform profile (YAML) and are overlaid with
the caller's options. When proxying is enabled every call is routed through
an endpoint taken from the proxy pool, and the outcome is reported back to
the pool.

SECURITY: Never logs the provider key or proxy credentials.
"""

from __future__ import annotations

import logging
import time
from typing import Any
from uuid import uuid4

import httpx

from orchestrator.config.platform_profiles import PlatformProfile, resolve_profile
from orchestrator.middleware.error_handler import (
    ConfigurationError,
    DispatchError,
    ProxyPoolExhaustedError,
)
from orchestrator.models.requests import ScrapeOptions
from orchestrator.proxy.manager import ProxyPoolManager
from orchestrator.proxy.types import ProxyEndpoint

logger = logging.getLogger(__name__)

# Provider statuses that point at the egress endpoint rather than the request
_PROXY_FAULT_STATUSES = frozenset({407, 429})


class ProviderClient:
    """Async client for the scraping provider API.

    Parameters
    ----------
    api_url:
        Base URL of the provider (e.g. "https://scraper-api.decodo.com/v2").
    api_key:
        Credential sent in the ``Authorization`` header.
    auth_scheme:
        ``Basic`` (default) or ``Bearer``.
    timeout_seconds:
        Per-request timeout.
    profiles:
        Platform profiles keyed by platform name, with a ``default`` entry.
    proxy_pool:
        Pool used for egress when *use_proxies* is true.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        auth_scheme: str = "Basic",
        timeout_seconds: float = 60.0,
        profiles: dict[str, PlatformProfile] | None = None,
        proxy_pool: ProxyPoolManager | None = None,
        use_proxies: bool = False,
    ) -> None:
        if use_proxies and proxy_pool is None:
            raise ConfigurationError("Proxy routing enabled without a proxy pool")

        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._auth_scheme = auth_scheme
        self._timeout_seconds = timeout_seconds
        self._profiles = profiles or {"default": PlatformProfile()}
        self._proxy_pool = proxy_pool
        self._use_proxies = use_proxies

    # ------------------------------------------------------------------
    # Request bodies
    # ------------------------------------------------------------------

    def build_body(
        self,
        url: str,
        platform: str,
        options: ScrapeOptions | None = None,
    ) -> dict[str, Any]:
        """Provider request body: profile defaults overlaid with *options*."""
        profile = resolve_profile(self._profiles, platform)
        body: dict[str, Any] = {"url": url, "platform": platform, **profile.model_dump()}
        if options is not None:
            body.update(options.model_dump(exclude_none=True))
        body.setdefault("session_id", uuid4().hex)
        return body

    # ------------------------------------------------------------------
    # Provider endpoints
    # ------------------------------------------------------------------

    async def scrape(
        self, url: str, platform: str, options: ScrapeOptions | None = None
    ) -> Any:
        """Synchronous fetch. Returns the provider payload."""
        body = self.build_body(url, platform, options)
        return await self._request("POST", "/scrape", mode="sync", platform=platform, body=body)

    async def submit_task(
        self, url: str, platform: str, options: ScrapeOptions | None = None
    ) -> dict:
        body = self.build_body(url, platform, options)
        return await self._request("POST", "/task", mode="async", platform=platform, body=body)

    async def submit_batch(
        self, urls: list[str], platform: str, options: ScrapeOptions | None = None
    ) -> dict:
        bodies = [self.build_body(url, platform, options) for url in urls]
        return await self._request(
            "POST", "/task/batch", mode="batch", platform=platform, body=bodies
        )

    async def get_task(self, task_id: str) -> dict:
        return await self._request("GET", f"/task/{task_id}", mode="async")

    async def get_batch(self, batch_id: str) -> dict:
        return await self._request("GET", f"/task/batch/{batch_id}", mode="batch")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"{self._auth_scheme} {self._api_key}",
        }

    def _select_proxy(self, mode: str) -> ProxyEndpoint | None:
        if not self._use_proxies:
            return None
        endpoint = self._proxy_pool.select_endpoint()
        if endpoint is None:
            raise ProxyPoolExhaustedError(mode=mode)
        return endpoint

    async def _request(
        self,
        method: str,
        path: str,
        *,
        mode: str,
        platform: str | None = None,
        body: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises
        ------
        ConfigurationError
            If no provider key is configured.
        ProxyPoolExhaustedError
            If proxying is enabled and no endpoint is available.
        DispatchError
            On transport failure, a non-2xx status, or a body that is not JSON.
        """
        if not self._api_key:
            raise ConfigurationError("Provider API key is not configured")

        endpoint = self._select_proxy(mode)
        proxy_label = endpoint.masked() if endpoint is not None else None
        url = f"{self._api_url}{path}"
        started = time.monotonic()

        try:
            async with httpx.AsyncClient(
                proxy=endpoint.url if endpoint is not None else None
            ) as client:
                if method == "GET":
                    response = await client.get(
                        url, headers=self._headers(), timeout=self._timeout_seconds
                    )
                else:
                    response = await client.post(
                        url,
                        json=body,
                        headers=self._headers(),
                        timeout=self._timeout_seconds,
                    )
        except httpx.HTTPError as exc:
            if endpoint is not None:
                self._proxy_pool.report_failure(endpoint, blacklist=True)
            logger.warning(
                "Provider %s %s unreachable: %s",
                method,
                path,
                exc.__class__.__name__,
                extra={"mode": mode, "platform": platform, "proxy_used": proxy_label},
            )
            raise DispatchError(
                f"Provider request failed: {exc.__class__.__name__}", mode=mode
            ) from exc

        duration_ms = round((time.monotonic() - started) * 1000, 1)

        if not response.is_success:
            if endpoint is not None:
                self._proxy_pool.report_failure(
                    endpoint, blacklist=response.status_code in _PROXY_FAULT_STATUSES
                )
            logger.warning(
                "Provider %s %s returned status %d",
                method,
                path,
                response.status_code,
                extra={
                    "mode": mode,
                    "platform": platform,
                    "proxy_used": proxy_label,
                    "duration_ms": duration_ms,
                },
            )
            raise DispatchError(
                f"Provider returned HTTP {response.status_code}",
                mode=mode,
                provider_status=response.status_code,
            )

        if endpoint is not None:
            self._proxy_pool.report_success(endpoint)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DispatchError(
                "Provider returned a malformed JSON body",
                mode=mode,
                provider_status=response.status_code,
            ) from exc

        logger.info(
            "Provider %s %s completed",
            method,
            path,
            extra={
                "mode": mode,
                "platform": platform,
                "proxy_used": proxy_label,
                "duration_ms": duration_ms,
            },
        )
        return payload
