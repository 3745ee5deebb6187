"""Catalog of workflow templates."""

from __future__ import annotations

import os
from typing import Dict, List, Optional

import yaml

from ..contracts import StepDefinition, WorkflowTemplate


def _steps(*entries: tuple) -> List[StepDefinition]:
    return [StepDefinition(id=i, name=n, description=d) for i, n, d in entries]


WORKFLOW_TEMPLATES: List[WorkflowTemplate] = [
    WorkflowTemplate(
        id="frontend-react-mui",
        name="React + MUI Frontend",
        description="Build a modern React frontend with Material-UI components",
        type="frontend",
        tags=["react", "mui", "typescript"],
        steps=_steps(
            ("init", "Initialize Project", "Set up React + TypeScript project structure"),
            ("deps", "Install Dependencies", "Install MUI, Axios, and required packages"),
            ("components", "Generate Components", "Create UI components from specifications"),
            ("styling", "Apply Theme", "Configure MUI theme and global styles"),
            ("build", "Build", "Compile and bundle the application"),
            ("deploy", "Deploy", "Deploy to hosting platform"),
        ),
    ),
    WorkflowTemplate(
        id="backend-express-api",
        name="Express API Backend",
        description="Build a RESTful API with Express.js",
        type="backend",
        tags=["express", "nodejs", "rest"],
        steps=_steps(
            ("init", "Initialize Project", "Set up Express + TypeScript project"),
            ("routes", "Define Routes", "Create API endpoints from specifications"),
            ("middleware", "Configure Middleware", "Set up auth, validation, error handling"),
            ("database", "Database Setup", "Configure database connections and models"),
            ("test", "Run Tests", "Execute API tests"),
            ("deploy", "Deploy", "Deploy to server"),
        ),
    ),
    WorkflowTemplate(
        id="fullstack-app",
        name="Full-Stack Application",
        description="Complete frontend + backend application",
        type="fullstack",
        tags=["react", "express", "fullstack"],
        steps=_steps(
            ("plan", "Generate Plan", "AI analyzes requirements and creates architecture"),
            ("backend-init", "Backend Setup", "Initialize Express API with routes"),
            ("frontend-init", "Frontend Setup", "Initialize React frontend with components"),
            ("integration", "API Integration", "Connect frontend to backend APIs"),
            ("testing", "End-to-End Tests", "Run integration tests"),
            ("deploy", "Deploy", "Deploy full application"),
        ),
    ),
    WorkflowTemplate(
        id="ai-vector-search",
        name="AI Vector Search",
        description="Build semantic search with Qdrant + embeddings",
        type="data",
        tags=["qdrant", "ai", "embeddings"],
        steps=_steps(
            ("collection", "Create Collection", "Set up Qdrant vector collection"),
            ("embeddings", "Generate Embeddings", "Convert data to vector embeddings"),
            ("ingest", "Ingest Vectors", "Upload vectors to Qdrant"),
            ("search-api", "Search API", "Create search endpoint"),
            ("test", "Test Search", "Validate search quality"),
            ("deploy", "Deploy", "Deploy search service"),
        ),
    ),
]


def load_templates(path: str) -> List[WorkflowTemplate]:
    """Read templates from a YAML file.

    The file holds either a list of templates or a mapping with a
    ``templates`` key.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("templates", [])
    return [WorkflowTemplate.model_validate(entry) for entry in data]


def template_catalog(extra_path: Optional[str] = None) -> Dict[str, WorkflowTemplate]:
    """Built-in templates keyed by id, overlaid with those from ``extra_path``."""
    catalog = {t.id: t for t in WORKFLOW_TEMPLATES}
    if extra_path and os.path.exists(extra_path):
        catalog.update({t.id: t for t in load_templates(extra_path)})
    return catalog


def get_template(template_id: str, extra_path: Optional[str] = None) -> Optional[WorkflowTemplate]:
    return template_catalog(extra_path).get(template_id)
