"""
Bounded HTTP Client for Delivery Partner Calls

- Hard per-request timeout so checkout never hangs on the partner
- Exponential backoff with jitter for transient connect errors and 502/503/504
- Timeouts are NEVER retried: a retry would double the worst-case latency
- Overall deadline: every attempt gets only what is left of the timeout budget,
  and a retry is skipped if its backoff would use up the rest
- httpx transport errors are translated into the shipping exception hierarchy

The client is constructed by the caller (application lifespan or tests) and
injected into partner implementations. Nothing here is module-global.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from storefront_backend.core.config import Settings
from storefront_backend.core.exceptions import (
    PartnerTimeoutError,
    PartnerUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 1
    base_delay: float = 0.5           # Base delay in seconds
    max_delay: float = 2.0            # Maximum delay cap
    exponential_base: float = 2.0     # Exponential backoff multiplier
    jitter_factor: float = 0.5        # Random jitter (0-1)

    # Gateway errors are usually a partner deploy or LB hiccup
    retryable_status_codes: tuple = (502, 503, 504)


class PartnerHTTPClient:
    """
    Async HTTP client for one delivery partner.

    Usage:
        async with PartnerHTTPClient("delhivery", timeout=8.0) as client:
            response = await client.get("https://track.delhivery.com/...")
    """

    def __init__(
        self,
        partner_name: str,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 8.0,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.partner_name = partner_name
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.default_headers = default_headers or {"Accept": "application/json"}
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self._transport,
            )
        return self

    async def close(self):
        """Close the client. Use this when not using context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def _calculate_backoff(self, attempt: int) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Formula: min(base * (exp_base ^ attempt) + jitter, max_delay)
        """
        cfg = self.retry_config

        delay = cfg.base_delay * (cfg.exponential_base ** attempt)
        jitter = delay * cfg.jitter_factor * (2 * random.random() - 1)
        delay += jitter

        return max(0.0, min(delay, cfg.max_delay))

    async def request(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """
        Make an HTTP request to the partner.

        4xx responses are returned to the caller, which knows how the partner
        reports validation and auth problems.

        Raises:
            PartnerTimeoutError: The partner did not answer within the timeout
            PartnerUnavailableError: Network failure or 5xx after retries
        """
        if not self._client:
            await self.init()

        cfg = self.retry_config
        deadline = time.monotonic() + self.timeout
        last_error: Optional[str] = None
        last_status: Optional[int] = None

        for attempt in range(cfg.max_retries + 1):
            remaining = deadline - time.monotonic()
            try:
                if remaining <= 0:
                    raise httpx.TimeoutException("Timeout budget exhausted before retry")
                logger.debug(f"[HTTP] {self.partner_name}: {method} {url} (attempt {attempt + 1}/{cfg.max_retries + 1})")
                response = await self._client.request(
                    method,
                    url,
                    timeout=httpx.Timeout(remaining),
                    **kwargs,
                )

            except httpx.TimeoutException as e:
                logger.warning(f"[HTTP] {self.partner_name}: Timeout after {self.timeout}s on {method} {url}")
                raise PartnerTimeoutError(
                    f"{self.partner_name} did not respond within {self.timeout:g}s",
                    partner=self.partner_name,
                    timeout_seconds=self.timeout,
                ) from e

            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                last_status = None
                if await self._should_retry(attempt, deadline, "Connection error"):
                    continue
                break

            if response.status_code in cfg.retryable_status_codes:
                last_error = f"HTTP {response.status_code}"
                last_status = response.status_code
                if await self._should_retry(attempt, deadline, f"Status {response.status_code}"):
                    continue
                break

            if response.status_code >= 500:
                logger.error(f"[HTTP] {self.partner_name}: Status {response.status_code}, not retrying")
                raise PartnerUnavailableError(
                    f"{self.partner_name} returned HTTP {response.status_code}",
                    partner=self.partner_name,
                    status_code=response.status_code,
                )

            return response

        logger.error(f"[HTTP] {self.partner_name}: Giving up on {method} {url} ({last_error})")
        raise PartnerUnavailableError(
            f"{self.partner_name} is unavailable ({last_error})",
            partner=self.partner_name,
            status_code=last_status,
        )

    async def _should_retry(self, attempt: int, deadline: float, reason: str) -> bool:
        """Sleep for the backoff and return True if another attempt fits in the budget."""
        if attempt >= self.retry_config.max_retries:
            return False

        delay = self._calculate_backoff(attempt)
        remaining = deadline - time.monotonic()
        if delay >= remaining:
            logger.warning(
                f"[HTTP] {self.partner_name}: {reason}, no time left for a retry "
                f"({remaining:.2f}s remaining)"
            )
            return False

        logger.warning(f"[HTTP] {self.partner_name}: {reason}, retrying in {delay:.2f}s (attempt {attempt + 1})")
        await asyncio.sleep(delay)
        return True

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)


def get_delhivery_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PartnerHTTPClient:
    """
    Get client configured for the Delhivery APIs.

    Uses the configured timeout and retry budget.
    """
    return PartnerHTTPClient(
        "delhivery",
        retry_config=RetryConfig(
            max_retries=settings.PARTNER_MAX_RETRIES,
            base_delay=settings.PARTNER_RETRY_BASE_DELAY,
            max_delay=2.0,
        ),
        timeout=settings.PARTNER_TIMEOUT_SECONDS,
        transport=transport,
    )
