"""Tests for the workflow engine."""

import asyncio
import re

import pytest

from opsflow.contracts import Status, StepDefinition, WorkflowTemplate
from opsflow.errors import WorkflowNotFoundError
from opsflow.workflows import (
    StepActionRegistry,
    StepOutcome,
    WorkflowEngine,
    default_actions,
    deploy_url_for,
)

STEP_IDS = ["init", "deps", "components", "build", "deploy"]


@pytest.fixture
def template():
    return WorkflowTemplate(
        id="site",
        name="Marketing Site",
        description="Static site",
        type="frontend",
        steps=[StepDefinition(id=s, name=s.title(), description=f"{s} step") for s in STEP_IDS],
        tags=["web"],
    )


def test_create_workflow_from_template(template):
    engine = WorkflowEngine(default_actions())
    workflow = engine.create_workflow(template)

    assert workflow.id.startswith("wf-")
    assert workflow.name == "Marketing Site"
    assert workflow.type == "frontend"
    assert workflow.status == Status.PENDING
    assert [s.id for s in workflow.steps] == STEP_IDS
    assert all(s.status == Status.PENDING for s in workflow.steps)
    assert engine.create_workflow(template, "Other").name == "Other"


@pytest.mark.asyncio
async def test_all_steps_succeed(template):
    engine = WorkflowEngine(default_actions())
    workflow = engine.create_workflow(template, "My Cool  App")

    result = await engine.execute_workflow(workflow.id)

    assert result.status == Status.COMPLETED
    assert [s.status for s in result.steps] == [Status.COMPLETED] * 5
    assert result.steps[0].output == "Project initialized: My Cool  App"
    assert re.fullmatch(r"https://[a-z0-9-]+\.grudge\.site", result.result.deploy_url)
    assert result.result.deploy_url == "https://my-cool-app.grudge.site"
    assert result.steps[-1].output == f"Deployed to: {result.result.deploy_url}"

    finished = [s.completed_at for s in result.steps]
    assert finished == sorted(finished)
    assert all(s.started_at <= s.completed_at for s in result.steps)


@pytest.mark.asyncio
async def test_failing_step_stops_workflow(template):
    actions = default_actions()

    @actions.register("build")
    async def build(workflow, step):
        raise OSError("disk full")

    engine = WorkflowEngine(actions)
    workflow = engine.create_workflow(template)
    result = await engine.execute_workflow(workflow.id)

    statuses = {s.id: s.status for s in result.steps}
    assert statuses == {
        "init": Status.COMPLETED,
        "deps": Status.COMPLETED,
        "components": Status.COMPLETED,
        "build": Status.FAILED,
        "deploy": Status.PENDING,
    }
    build_step = result.step("build")
    assert build_step.error == "disk full"
    assert build_step.completed_at is not None
    assert result.step("deploy").started_at is None
    assert result.status == Status.FAILED
    assert result.result is None


@pytest.mark.asyncio
async def test_unknown_workflow_raises(template):
    engine = WorkflowEngine()
    with pytest.raises(WorkflowNotFoundError):
        await engine.execute_workflow("wf-missing")


@pytest.mark.asyncio
async def test_unregistered_steps_use_generic_output():
    template = WorkflowTemplate(
        id="t",
        name="T",
        type="api",
        steps=[StepDefinition(id="styling", name="Apply Theme")],
    )
    engine = WorkflowEngine()
    workflow = engine.create_workflow(template)

    result = await engine.execute_workflow(workflow.id)
    assert result.steps[0].output == "Step Apply Theme completed successfully"


@pytest.mark.asyncio
async def test_publishes_every_transition(template):
    engine = WorkflowEngine(default_actions())
    snapshots = []
    engine.subscribe(snapshots.append)

    workflow = engine.create_workflow(template)
    await engine.execute_workflow(workflow.id)

    assert len(snapshots) == 1 + 2 * len(STEP_IDS) + 1
    assert snapshots[0].status == Status.RUNNING
    assert snapshots[1].steps[0].status == Status.RUNNING
    assert snapshots[2].steps[0].status == Status.COMPLETED
    assert snapshots[-1].status == Status.COMPLETED
    for snap in snapshots[:-1]:
        assert snap.status == Status.RUNNING


@pytest.mark.asyncio
async def test_broken_listener_does_not_break_execution(template):
    engine = WorkflowEngine(default_actions())

    def broken(workflow):
        raise RuntimeError("ui crashed")

    engine.subscribe(broken)
    workflow = engine.create_workflow(template)
    result = await engine.execute_workflow(workflow.id)
    assert result.status == Status.COMPLETED


@pytest.mark.asyncio
async def test_cancel_does_not_interrupt_in_flight_step(template):
    release = asyncio.Event()
    entered = asyncio.Event()
    actions = StepActionRegistry()

    @actions.register("deps")
    async def deps(workflow, step):
        entered.set()
        await release.wait()
        return "installed"

    engine = WorkflowEngine(actions)
    workflow = engine.create_workflow(template)
    assert engine.cancel_workflow(workflow.id) is False

    task = asyncio.create_task(engine.execute_workflow(workflow.id))
    await entered.wait()
    assert engine.cancel_workflow(workflow.id) is True
    assert engine.cancel_workflow(workflow.id) is False
    release.set()
    result = await task

    assert result.status == Status.CANCELLED
    assert result.step("deps").status == Status.COMPLETED
    assert result.step("deps").output == "installed"
    assert result.step("components").status == Status.PENDING
    assert engine.cancel_workflow("wf-missing") is False


@pytest.mark.asyncio
async def test_interrupted_execution_marks_workflow_cancelled(template):
    entered = asyncio.Event()
    actions = StepActionRegistry()

    @actions.register("deps")
    async def deps(workflow, step):
        entered.set()
        await asyncio.sleep(10)

    engine = WorkflowEngine(actions)
    snapshots = []
    engine.subscribe(snapshots.append)
    workflow = engine.create_workflow(template)

    task = asyncio.create_task(engine.execute_workflow(workflow.id))
    await entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    stored = engine.get_workflow(workflow.id)
    assert stored.status == Status.CANCELLED
    assert stored.step("deps").status == Status.FAILED
    assert stored.step("deps").error == "Cancelled"
    assert stored.step("components").status == Status.PENDING
    assert snapshots[-1].status == Status.CANCELLED


@pytest.mark.asyncio
async def test_finished_workflow_is_not_executed_again(template):
    runs = []
    actions = StepActionRegistry()

    @actions.register("init")
    async def init(workflow, step):
        runs.append(step.id)
        return "ok"

    engine = WorkflowEngine(actions)
    workflow = engine.create_workflow(template)
    first = await engine.execute_workflow(workflow.id)
    second = await engine.execute_workflow(workflow.id)

    assert runs == ["init"]
    assert second == first


@pytest.mark.asyncio
async def test_step_results_merge_into_workflow_result(template):
    actions = default_actions(deploy_domain="example.dev")

    @actions.register("build")
    async def build(workflow, step):
        return StepOutcome(output="built", result={"artifacts": ["dist/app.js"]})

    engine = WorkflowEngine(actions)
    workflow = engine.create_workflow(template, "Shop")
    result = await engine.execute_workflow(workflow.id)

    assert result.result.artifacts == ["dist/app.js"]
    assert result.result.deploy_url == "https://shop.example.dev"


@pytest.mark.asyncio
async def test_registry_lookup_and_snapshots(template):
    engine = WorkflowEngine(default_actions())
    done = engine.create_workflow(template)
    pending = engine.create_workflow(template)
    await engine.execute_workflow(done.id)

    snapshot = engine.get_workflow(done.id)
    snapshot.status = Status.FAILED
    assert engine.get_workflow(done.id).status == Status.COMPLETED

    assert {wf.id for wf in engine.list_workflows()} == {done.id, pending.id}
    assert engine.clear_terminal() == 1
    assert engine.get_workflow(done.id) is None
    assert engine.remove_workflow(pending.id) is True
    assert engine.remove_workflow(pending.id) is False
    assert engine.list_workflows() == []


def test_deploy_url_slug():
    assert deploy_url_for("Hello   World App") == "https://hello-world-app.grudge.site"
    assert deploy_url_for("api", "example.dev") == "https://api.example.dev"
