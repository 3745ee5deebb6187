from __future__ import annotations

import os
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_DEPLOY_DOMAIN,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY_MS,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_RETRY_DELAY_MULTIPLIER,
    DEFAULT_STEP_LATENCY,
    DEFAULT_TIMEOUT_MS,
)


class ClientConfig(BaseModel):
    """Configuration for the resilient request client.

    Delays and timeouts are expressed in milliseconds.
    """

    base_url: str = DEFAULT_BASE_URL
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delay: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0)
    retry_delay_multiplier: float = Field(default=DEFAULT_RETRY_DELAY_MULTIPLIER, ge=1)
    max_retry_delay: int = Field(default=DEFAULT_MAX_RETRY_DELAY_MS, ge=0)
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)


class WorkflowConfig(BaseModel):
    """Workflow engine settings."""

    templates_path: Optional[str] = None
    deploy_domain: str = DEFAULT_DEPLOY_DOMAIN
    step_latency: Tuple[float, float] = DEFAULT_STEP_LATENCY


class OpsflowConfig(BaseModel):
    """Top-level configuration model."""

    client: ClientConfig = Field(default_factory=ClientConfig)
    workflows: WorkflowConfig = Field(default_factory=WorkflowConfig)
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> OpsflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to OPSFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("OPSFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = OpsflowConfig(**data)
    else:
        config = OpsflowConfig()

    env_base_url = os.getenv("OPSFLOW_BASE_URL")
    if env_base_url:
        config.client.base_url = env_base_url
    return config
