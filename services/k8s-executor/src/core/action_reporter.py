"""
Kube Actuator - Action Reporter
===============================

Reports finished action records back to the analysis service. Delivery
is retried with backoff; a report that still fails is logged and
dropped, it never changes the outcome of the action.
"""

from dataclasses import replace
from typing import Optional

import httpx

from shared.schemas.actions import TurboAction
from shared.utils.http_client import ServiceClient, ServiceClientConfig
from shared.utils.logging import get_logger
from shared.utils.retry import RetryConfig, with_retry

logger = get_logger(__name__)

RESULTS_PATH = "/api/v1/actions/results"


class ActionReporter:
    """Posts action records to the analysis service."""

    def __init__(
        self,
        base_url: str,
        client_config: Optional[ServiceClientConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._client = ServiceClient(base_url, client_config)
        retry_config = replace(retry_config or RetryConfig(), retryable_exceptions=(httpx.HTTPError,))
        self._post = with_retry(retry_config)(self._post_once)

    async def _post_once(self, payload: dict) -> None:
        response = await self._client.post(RESULTS_PATH, data=payload)
        response.raise_for_status()

    async def report(self, action: TurboAction) -> bool:
        """Send ``action``; returns whether the analysis service accepted it."""
        try:
            await self._post(action.model_dump(mode="json"))
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to report action {action.uid}: {e}",
                extra={"status": action.status.value}
            )
            return False

        logger.info(f"Reported action {action.uid}", extra={"status": action.status.value})
        return True

    async def close(self) -> None:
        await self._client.close()
