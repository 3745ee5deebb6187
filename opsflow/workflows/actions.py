"""Pluggable step actions keyed by step id."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from pydantic import BaseModel

from ..constants import DEFAULT_DEPLOY_DOMAIN
from ..contracts import Workflow, WorkflowResult, WorkflowStep

if TYPE_CHECKING:
    from ..client import RequestClient

logger = logging.getLogger(__name__)


class StepOutcome(BaseModel):
    """What a step action produced."""

    output: Optional[str] = None
    result: Optional[WorkflowResult] = None


StepAction = Callable[
    [Workflow, WorkflowStep], Awaitable[Union[str, StepOutcome, None]]
]


def deploy_url_for(name: str, domain: str = DEFAULT_DEPLOY_DOMAIN) -> str:
    """Derive the public URL a workflow named ``name`` deploys to."""
    slug = re.sub(r"\s+", "-", name.lower())
    return f"https://{slug}.{domain}"


async def generic_step(workflow: Workflow, step: WorkflowStep) -> str:
    return f"Step {step.name} completed successfully"


class StepActionRegistry:
    """Resolve step ids to actions, falling back to a generic success."""

    def __init__(
        self,
        actions: Optional[Mapping[str, StepAction]] = None,
        fallback: StepAction = generic_step,
    ) -> None:
        self._actions: Dict[str, StepAction] = dict(actions or {})
        self._fallback = fallback

    def register(self, step_id: str, action: Optional[StepAction] = None):
        """Register ``action`` for ``step_id``; usable as a decorator."""

        def decorator(func: StepAction) -> StepAction:
            self._actions[step_id] = func
            return func

        if action is not None:
            return decorator(action)
        return decorator

    def resolve(self, step_id: str) -> StepAction:
        return self._actions.get(step_id, self._fallback)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._actions

    async def run(self, workflow: Workflow, step: WorkflowStep) -> StepOutcome:
        value = await self.resolve(step.id)(workflow, step)
        if isinstance(value, StepOutcome):
            return value
        return StepOutcome(output=value)


def default_actions(
    latency: Tuple[float, float] = (0.0, 0.0),
    deploy_domain: str = DEFAULT_DEPLOY_DOMAIN,
) -> StepActionRegistry:
    """Simulated actions for the catalog's common step ids.

    Each action sleeps for a random duration within ``latency`` seconds to
    stand in for real work.
    """

    async def pause() -> None:
        low, high = latency
        if high > 0:
            await asyncio.sleep(random.uniform(low, high))

    async def generic(workflow: Workflow, step: WorkflowStep) -> str:
        await pause()
        return await generic_step(workflow, step)

    registry = StepActionRegistry(fallback=generic)

    @registry.register("init")
    async def init(workflow: Workflow, step: WorkflowStep) -> str:
        await pause()
        return f"Project initialized: {workflow.name}"

    @registry.register("deps")
    async def deps(workflow: Workflow, step: WorkflowStep) -> str:
        await pause()
        return "Dependencies installed: @mui/material, axios, react, typescript"

    @registry.register("components")
    async def components(workflow: Workflow, step: WorkflowStep) -> str:
        await pause()
        return "Generated 5 components from specifications"

    @registry.register("build")
    async def build(workflow: Workflow, step: WorkflowStep) -> str:
        await pause()
        return "Build successful: dist/bundle.js (245kb)"

    @registry.register("deploy")
    async def deploy(workflow: Workflow, step: WorkflowStep) -> StepOutcome:
        await pause()
        url = deploy_url_for(workflow.name, deploy_domain)
        return StepOutcome(
            output=f"Deployed to: {url}", result=WorkflowResult(deploy_url=url)
        )

    return registry


def http_step(
    client: "RequestClient",
    endpoint: str,
    method: str = "POST",
    body: Any = None,
    **options: Any,
) -> StepAction:
    """Build an action that performs a resilient request.

    The step fails with the request's error message once the client gives up.
    """

    async def action(workflow: Workflow, step: WorkflowStep) -> str:
        payload = body if body is not None else {"workflowId": workflow.id, "step": step.id}
        logger.debug(f"Step {step.id} of {workflow.id}: {method} {endpoint}")
        data = await client.request(endpoint, method=method, body=payload, **options)
        return data if isinstance(data, str) else json.dumps(data)

    return action
