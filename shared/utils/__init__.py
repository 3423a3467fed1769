"""
Kube Actuator - Shared Utilities Package
========================================

Logging, retry and HTTP client helpers.
"""

from shared.utils.logging import get_logger, setup_logging, action_context
from shared.utils.http_client import ServiceClient, ServiceClientConfig
from shared.utils.retry import with_retry, RetryConfig

__all__ = [
    "get_logger",
    "setup_logging",
    "action_context",
    "ServiceClient",
    "ServiceClientConfig",
    "with_retry",
    "RetryConfig",
]
