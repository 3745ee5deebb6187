"""Explicit application context wiring the client, store and engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from .client import RequestClient, ServiceAPI
from .config import OpsflowConfig, load_config
from .contracts import WorkflowTemplate
from .operations import OperationStore
from .workflows import WorkflowEngine, default_actions, template_catalog


@dataclass
class Runtime:
    """One request client, operation store and workflow engine.

    Build it once at application start and pass it to consumers; tests build
    a fresh one per case.
    """

    config: OpsflowConfig
    client: RequestClient
    operations: OperationStore = field(default_factory=OperationStore)
    workflows: WorkflowEngine = field(default_factory=WorkflowEngine)
    templates: Dict[str, WorkflowTemplate] = field(default_factory=dict)

    @property
    def api(self) -> ServiceAPI:
        return ServiceAPI(self.client)

    async def aclose(self) -> None:
        self.client.cancel_all_requests()
        await self.client.aclose()

    async def __aenter__(self) -> "Runtime":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_runtime(
    config: Optional[OpsflowConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Runtime:
    """Factory building a :class:`Runtime` from configuration."""

    config = config or load_config()
    actions = default_actions(
        latency=config.workflows.step_latency,
        deploy_domain=config.workflows.deploy_domain,
    )
    return Runtime(
        config=config,
        client=RequestClient(config.client, http_client=http_client),
        workflows=WorkflowEngine(actions),
        templates=template_catalog(config.workflows.templates_path),
    )
