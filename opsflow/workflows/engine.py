"""Sequential workflow execution engine."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from ..contracts import (
    Status,
    Workflow,
    WorkflowResult,
    WorkflowStep,
    WorkflowTemplate,
    new_workflow_id,
    utcnow,
)
from ..errors import WorkflowNotFoundError
from ..events import EventBus
from .actions import StepActionRegistry, StepOutcome

logger = logging.getLogger(__name__)

WorkflowListener = Callable[[Workflow], None]


class WorkflowEngine:
    """Create workflows from templates and drive their steps in order.

    Steps never run concurrently and are never retried. The first failing
    step stops the workflow; later steps stay ``pending``. Listeners receive
    a snapshot of the workflow at every state change.
    """

    def __init__(self, actions: Optional[StepActionRegistry] = None) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._actions = actions or StepActionRegistry()
        self._events: EventBus[Workflow] = EventBus("workflows")

    @property
    def actions(self) -> StepActionRegistry:
        return self._actions

    def subscribe(self, listener: WorkflowListener) -> Callable[[], None]:
        return self._events.subscribe(listener)

    def _publish(self, workflow: Workflow) -> None:
        workflow.updated_at = utcnow()
        self._events.publish(workflow.model_copy(deep=True))

    # ------------------------------------------------------------------
    def create_workflow(
        self, template: WorkflowTemplate, name: Optional[str] = None
    ) -> Workflow:
        workflow = Workflow(
            id=new_workflow_id(),
            name=name or template.name,
            description=template.description,
            type=template.type,
            steps=[WorkflowStep(**step.model_dump()) for step in template.steps],
        )
        self._workflows[workflow.id] = workflow
        logger.info(f"Created workflow {workflow.id} from template {template.id}")
        return workflow.model_copy(deep=True)

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    def list_workflows(self) -> List[Workflow]:
        return [wf.model_copy(deep=True) for wf in self._workflows.values()]

    def remove_workflow(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    def clear_terminal(self) -> int:
        """Forget every completed, failed or cancelled workflow."""
        finished = [wid for wid, wf in self._workflows.items() if wf.status.is_terminal]
        for wid in finished:
            del self._workflows[wid]
        return len(finished)

    # ------------------------------------------------------------------
    async def execute_workflow(self, workflow_id: str) -> Workflow:
        """Run every step of the workflow in order.

        Step failures are recorded on the step and workflow rather than
        raised; inspect ``status`` and ``error`` on the returned snapshot.

        Raises:
            WorkflowNotFoundError: If ``workflow_id`` is unknown.
        """
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        if workflow.status != Status.PENDING:
            logger.warning(
                f"Workflow {workflow_id} already {workflow.status.value}; not executing again"
            )
            return workflow.model_copy(deep=True)

        workflow.status = Status.RUNNING
        self._publish(workflow)

        for step in workflow.steps:
            if workflow.status == Status.CANCELLED:
                logger.info(f"Workflow {workflow_id} cancelled before step {step.id}")
                break

            step.status = Status.RUNNING
            step.started_at = utcnow()
            self._publish(workflow)
            logger.info(f"Workflow {workflow_id}: running step {step.id}")

            try:
                outcome = await self._actions.run(
                    workflow.model_copy(deep=True), step.model_copy(deep=True)
                )
            except asyncio.CancelledError:
                step.status = Status.FAILED
                step.error = "Cancelled"
                step.completed_at = utcnow()
                workflow.status = Status.CANCELLED
                self._publish(workflow)
                logger.warning(f"Workflow {workflow_id}: interrupted during step {step.id}")
                raise
            except Exception as exc:
                step.status = Status.FAILED
                step.error = str(exc) or type(exc).__name__
                step.completed_at = utcnow()
                if workflow.status == Status.RUNNING:
                    workflow.status = Status.FAILED
                self._publish(workflow)
                logger.error(f"Workflow {workflow_id}: step {step.id} failed: {step.error}")
                return workflow.model_copy(deep=True)

            step.status = Status.COMPLETED
            step.completed_at = utcnow()
            step.output = outcome.output
            self._merge_result(workflow, outcome)
            self._publish(workflow)

        if workflow.status == Status.RUNNING:
            workflow.status = Status.COMPLETED
            self._publish(workflow)
            logger.info(f"Workflow {workflow_id} completed")
        return workflow.model_copy(deep=True)

    @staticmethod
    def _merge_result(workflow: Workflow, outcome: StepOutcome) -> None:
        if outcome.result is None:
            return
        if workflow.result is None:
            workflow.result = WorkflowResult()
        workflow.result = workflow.result.model_copy(
            update=outcome.result.model_dump(exclude_unset=True)
        )

    def cancel_workflow(self, workflow_id: str) -> bool:
        """Flag a running workflow as cancelled.

        A step already in flight runs to completion; no later step starts.
        Returns ``False`` unless the workflow was running.
        """
        workflow = self._workflows.get(workflow_id)
        if workflow is None or workflow.status != Status.RUNNING:
            return False
        workflow.status = Status.CANCELLED
        self._publish(workflow)
        logger.info(f"Workflow {workflow_id} cancelled")
        return True
