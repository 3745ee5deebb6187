"""Resilient HTTP request layer."""

from __future__ import annotations

from typing import Optional

import httpx

from ..config import OpsflowConfig, load_config
from .api import ServiceAPI
from .cancellation import CancellationHandle, CancellationRegistry
from .client import RequestClient


def get_client(
    config: Optional[OpsflowConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RequestClient:
    """Factory function building a request client from configuration."""

    config = config or load_config()
    return RequestClient(config.client, http_client=http_client)


__all__ = [
    "CancellationHandle",
    "CancellationRegistry",
    "RequestClient",
    "ServiceAPI",
    "get_client",
]
