"""Command line interface for opsflow."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Optional

import typer

from opsflow import APIError, Workflow, create_runtime, get_client, load_config
from opsflow.config import OpsflowConfig
from opsflow.constants import LOG_FORMAT
from opsflow.contracts import Status
from opsflow.workflows import template_catalog

app = typer.Typer(help="CLI for opsflow requests and workflows")

workflow_app = typer.Typer(help="Commands for running workflows")
app.add_typer(workflow_app, name="workflow")

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")

STATUS_COLORS = {
    Status.PENDING: typer.colors.WHITE,
    Status.RUNNING: typer.colors.CYAN,
    Status.COMPLETED: typer.colors.GREEN,
    Status.FAILED: typer.colors.RED,
    Status.CANCELLED: typer.colors.YELLOW,
}


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to a YAML configuration file"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override the configured log level"
    ),
) -> None:
    """opsflow CLI entry point."""
    settings = load_config(config)
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(), format=LOG_FORMAT
    )
    ctx.obj = settings


def _settings(ctx: typer.Context) -> OpsflowConfig:
    return ctx.obj if isinstance(ctx.obj, OpsflowConfig) else load_config()


@workflow_app.command("templates")
def workflow_templates(ctx: typer.Context) -> None:
    """
    List the workflow templates available to ``workflow run``.

    Example:
        opsflow workflow templates
        # Output: frontend-react-mui    React + MUI Frontend (frontend)
        #           steps: init, deps, components, styling, build, deploy
    """
    settings = _settings(ctx)
    for template in template_catalog(settings.workflows.templates_path).values():
        typer.echo(f"{template.id}\t{template.name} ({template.type})")
        typer.echo(f"  steps: {', '.join(step.id for step in template.steps)}")


@workflow_app.command("run")
def workflow_run(
    ctx: typer.Context,
    template_id: str,
    name: Optional[str] = typer.Option(None, help="Workflow name (default: template name)"),
    fail_step: Optional[str] = typer.Option(None, help="Make the given step id fail"),
    fail_message: str = typer.Option("Step failed", help="Error raised by --fail-step"),
    fast: bool = typer.Option(False, help="Skip the simulated step latency"),
) -> None:
    """
    Execute a workflow from a template using simulated step actions.

    Prints every step transition as it happens and the deploy URL when the
    template has a deploy step. Exits with code 1 when the workflow fails.

    Example:
        opsflow workflow run frontend-react-mui --name "My Shop" --fast
        opsflow workflow run frontend-react-mui --fail-step build --fail-message "disk full"
    """
    settings = _settings(ctx)
    if fast:
        settings.workflows.step_latency = (0.0, 0.0)
    template = template_catalog(settings.workflows.templates_path).get(template_id)
    if template is None:
        typer.secho(f"Template not found: {template_id}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    runtime = create_runtime(settings)

    if fail_step:

        async def failing(workflow, step):
            raise RuntimeError(fail_message)

        runtime.workflows.actions.register(fail_step, failing)

    seen: Dict[str, Status] = {}

    def report(workflow: Workflow) -> None:
        for step in workflow.steps:
            if seen.get(step.id) == step.status:
                continue
            seen[step.id] = step.status
            if step.status == Status.PENDING:
                continue
            detail = step.error or step.output or ""
            typer.secho(
                f"- {step.id}: {step.status.value}" + (f" ({detail})" if detail else ""),
                fg=STATUS_COLORS[step.status],
            )

    async def _run() -> Workflow:
        async with runtime:
            workflow = runtime.workflows.create_workflow(template, name)
            typer.echo(f"Workflow {workflow.id}: {workflow.name}")
            unsubscribe = runtime.workflows.subscribe(report)
            try:
                return await runtime.workflows.execute_workflow(workflow.id)
            finally:
                unsubscribe()

    workflow = asyncio.run(_run())
    typer.secho(
        f"Workflow {workflow.id}: {workflow.status.value}",
        fg=STATUS_COLORS[workflow.status],
    )
    if workflow.result and workflow.result.deploy_url:
        typer.echo(f"Deploy URL: {workflow.result.deploy_url}")
    if workflow.status != Status.COMPLETED:
        raise typer.Exit(code=1)


@app.command("request")
def request(
    ctx: typer.Context,
    endpoint: str,
    method: str = typer.Option("GET", help="HTTP method"),
    base_url: Optional[str] = typer.Option(None, help="Override the configured base URL"),
    retries: Optional[int] = typer.Option(None, help="Retry budget for this call"),
    timeout: Optional[int] = typer.Option(None, help="Per-attempt timeout in milliseconds"),
    data: Optional[str] = typer.Option(None, help="JSON request body"),
) -> None:
    """
    Issue a single request with retry and timeout handling.

    Example:
        opsflow request /health/status --retries 1 --timeout 5000
        opsflow request /ai-worker/chat --method POST --data '{"message": "hi"}'
    """
    settings = _settings(ctx)
    if base_url:
        settings.client.base_url = base_url
    method = method.upper()
    if method not in HTTP_METHODS:
        raise typer.BadParameter(f"method must be one of {', '.join(HTTP_METHODS)}")
    try:
        body = json.loads(data) if data else None
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--data is not valid JSON: {exc}")

    async def _run():
        async with get_client(settings) as client:
            return await client.request(
                endpoint, method=method, body=body, retries=retries, timeout=timeout
            )

    try:
        result = asyncio.run(_run())
    except APIError as exc:
        typer.secho(f"Request failed ({exc.status}): {exc.message}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(result if isinstance(result, str) else json.dumps(result, indent=2))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
