"""Workflow templates, step actions and the execution engine."""

from .actions import (
    StepAction,
    StepActionRegistry,
    StepOutcome,
    default_actions,
    deploy_url_for,
    http_step,
)
from .engine import WorkflowEngine
from .templates import WORKFLOW_TEMPLATES, get_template, load_templates, template_catalog

__all__ = [
    "StepAction",
    "StepActionRegistry",
    "StepOutcome",
    "WORKFLOW_TEMPLATES",
    "WorkflowEngine",
    "default_actions",
    "deploy_url_for",
    "get_template",
    "http_step",
    "load_templates",
    "template_catalog",
]
