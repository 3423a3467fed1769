"""
Kube Actuator - HTTP Service Client
===================================

Async HTTP client for talking to the upstream analysis service.
Propagates the correlation ID and supports basic auth, which the
analysis service requires.

Usage:
    from shared.utils.http_client import ServiceClient, ServiceClientConfig

    client = ServiceClient(
        "https://analysis:9443",
        ServiceClientConfig(username="agent", password="secret"),
    )
    response = await client.post("/api/v1/actions/results", data=payload)
"""

import httpx
from typing import Any, Optional
from dataclasses import dataclass

from shared.utils.logging import get_logger, get_correlation_id

logger = get_logger(__name__)


@dataclass
class ServiceClientConfig:
    """Configuration for the HTTP service client."""
    timeout_seconds: float = 30.0
    username: str = ""
    password: str = ""
    verify_tls: bool = True


class ServiceClient:
    """
    Async HTTP client for the upstream analysis service.

    Features:
    - Automatic correlation ID propagation
    - Optional basic auth
    - Connection pooling through a lazily created httpx.AsyncClient
    - Async context manager support
    """

    def __init__(
        self,
        base_url: str,
        config: Optional[ServiceClientConfig] = None
    ):
        """
        Args:
            base_url: Base URL of the target service
            config: Optional configuration overrides
        """
        self.base_url = base_url.rstrip("/")
        self.config = config or ServiceClientConfig()
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            auth = None
            if self.config.username:
                auth = httpx.BasicAuth(self.config.username, self.config.password)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                auth=auth,
                verify=self.config.verify_tls,
                follow_redirects=True
            )
        return self._client

    def _build_headers(self, extra_headers: Optional[dict] = None) -> dict:
        """Build request headers with correlation ID."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "KubeActuator-ServiceClient/1.0",
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        if extra_headers:
            headers.update(extra_headers)

        return headers

    async def post(
        self,
        path: str,
        data: Optional[dict[str, Any]] = None,
        headers: Optional[dict] = None
    ) -> httpx.Response:
        """
        Make a POST request to the service.

        Args:
            path: API path (e.g., "/api/v1/actions/results")
            data: JSON payload to send
            headers: Optional additional headers

        Returns:
            httpx.Response object
        """
        client = await self._get_client()

        logger.debug(
            f"POST {self.base_url}{path}",
            extra={"payload_keys": list(data.keys()) if data else []}
        )

        response = await client.post(
            path,
            json=data,
            headers=self._build_headers(headers)
        )

        logger.debug(
            f"Response: {response.status_code}",
            extra={"path": path, "status": response.status_code}
        )

        return response

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
