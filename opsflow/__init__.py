"""opsflow: resilient requests, operation tracking and workflow execution."""

from .client import CancellationRegistry, RequestClient, ServiceAPI, get_client
from .config import ClientConfig, OpsflowConfig, load_config
from .contracts import (
    Operation,
    RequestOptions,
    Status,
    Workflow,
    WorkflowStep,
    WorkflowTemplate,
)
from .errors import (
    APIError,
    HTTPError,
    NetworkError,
    NotFoundError,
    OperationNotFoundError,
    RequestCancelledError,
    RequestTimeoutError,
    WorkflowNotFoundError,
)
from .events import EventBus
from .operations import OperationStore, get_overall_progress
from .runtime import Runtime, create_runtime
from .utils.retry import RetryPolicy
from .workflows import WORKFLOW_TEMPLATES, StepActionRegistry, WorkflowEngine

__version__ = "0.1.0"
__all__ = [
    "APIError",
    "CancellationRegistry",
    "ClientConfig",
    "EventBus",
    "HTTPError",
    "NetworkError",
    "NotFoundError",
    "Operation",
    "OperationNotFoundError",
    "OperationStore",
    "OpsflowConfig",
    "RequestCancelledError",
    "RequestClient",
    "RequestOptions",
    "RequestTimeoutError",
    "RetryPolicy",
    "Runtime",
    "ServiceAPI",
    "Status",
    "StepActionRegistry",
    "WORKFLOW_TEMPLATES",
    "Workflow",
    "WorkflowEngine",
    "WorkflowNotFoundError",
    "WorkflowStep",
    "WorkflowTemplate",
    "create_runtime",
    "get_client",
    "get_overall_progress",
    "load_config",
]
