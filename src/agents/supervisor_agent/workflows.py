"""
Built-in workflows and the YAML workflow loader.

A workflows file looks like:

    workflows:
      - name: ingest_only
        steps: [parser, "cleaner:clean_data"]
        parallel: false
        retry_on_failure: true
"""

import logging
from typing import Any

import yaml

from src.agents.supervisor_agent.models import Workflow
from src.core.errors import InvalidWorkflowError
from src.core.models import AgentName

logger = logging.getLogger(__name__)

# Task type run by a step that names only an agent.
DEFAULT_TASK_TYPES: dict[str, str] = {
    AgentName.PARSER.value: "parse_csv",
    AgentName.CLEANER.value: "clean_data",
    AgentName.LABELER.value: "label_transactions",
    AgentName.REVIEWER.value: "review_data",
    AgentName.TRAINER.value: "train_model",
}

DEFAULT_WORKFLOWS: list[Workflow] = [
    Workflow(
        name="data_processing",
        description="Data Processing Pipeline",
        steps=["parser", "cleaner", "labeler", "reviewer"],
        parallel=False,
        retry_on_failure=True,
    ),
    Workflow(
        name="quality_assurance",
        description="Quality Assurance Pipeline",
        steps=["reviewer", "trainer"],
        parallel=True,
        retry_on_failure=False,
    ),
]


def load_workflows_file(path: str) -> list[Workflow]:
    """
    Read workflow definitions from a YAML file.

    Entries that fail validation are logged and skipped; a file that cannot be
    read or parsed raises InvalidWorkflowError.
    """
    try:
        with open(path, encoding="utf-8") as handle:
            content = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as e:
        raise InvalidWorkflowError(f"Cannot load workflows file {path}: {e}", {"path": path}) from e

    if not isinstance(content, dict) or not isinstance(content.get("workflows"), list):
        logger.warning(f"No workflows found in {path}")
        return []

    workflows = []
    for entry in content["workflows"]:
        if not isinstance(entry, dict):
            continue
        try:
            workflows.append(_parse_workflow(entry))
        except (ValueError, InvalidWorkflowError) as e:
            logger.error(f"Error parsing workflow {entry.get('name', 'unknown')}: {e}")

    logger.info(f"Loaded {len(workflows)} workflows from {path}")
    return workflows


def _parse_workflow(entry: dict[str, Any]) -> Workflow:
    if "name" not in entry or "steps" not in entry:
        raise InvalidWorkflowError("Workflow must have 'name' and 'steps' fields")
    return Workflow.model_validate(entry)
