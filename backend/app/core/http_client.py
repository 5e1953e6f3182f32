"""
Shared outbound HTTP client for webhook delivery
"""

import ipaddress
import json
import logging
from typing import Dict, Any, Optional
from urllib.parse import urlparse
import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from app.core.config import settings
from app.core.security_utils import InputValidator

logger = logging.getLogger(__name__)


def encode_json(payload: Dict[str, Any]) -> bytes:
    """Compact JSON body, the exact bytes that are sent and signed"""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode()


class HTTPClientConfig:
    """Configuration for HTTP client"""

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 2,
        user_agent: str = None,
        headers: Dict[str, str] = None,
        verify_ssl: bool = True,
        follow_redirects: bool = True
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent or settings.WEBHOOK_USER_AGENT
        self.headers = headers or {}
        self.verify_ssl = verify_ssl
        self.follow_redirects = follow_redirects


class UnifiedHTTPClient:
    """httpx client with URL validation and retries on transport errors"""

    def __init__(self, config: HTTPClientConfig = None, transport: httpx.AsyncBaseTransport = None):
        self.config = config or HTTPClientConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={
                    "User-Agent": self.config.user_agent,
                    "Content-Type": "application/json",
                    **self.config.headers
                },
                verify=self.config.verify_ssl,
                follow_redirects=self.config.follow_redirects,
                transport=self._transport
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _validate_url(self, url: str) -> str:
        if not InputValidator.validate_url(url):
            raise ValueError(f"Invalid URL: {url}")

        parsed = urlparse(url)

        # Block localhost and private ranges outside development
        if parsed.hostname and settings.ENVIRONMENT != "development":
            if parsed.hostname == 'localhost':
                raise ValueError("Localhost URLs not allowed in production")
            try:
                address = ipaddress.ip_address(parsed.hostname)
            except ValueError:
                return url  # a domain name
            if address.is_loopback or address.is_unspecified:
                raise ValueError("Localhost URLs not allowed in production")
            if address.is_private or address.is_link_local:
                raise ValueError("Private IP addresses not allowed")

        return url

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str] = None
    ) -> httpx.Response:
        """POST a JSON body, retrying connection failures and timeouts"""
        validated_url = self._validate_url(url)
        client = await self._get_client()
        body = encode_json(payload)

        @retry(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True
        )
        async def _send() -> httpx.Response:
            return await client.post(validated_url, content=body, headers=headers or {})

        try:
            return await _send()
        except httpx.HTTPError as e:
            logger.error(f"HTTP POST failed for {url}: {e}")
            raise
