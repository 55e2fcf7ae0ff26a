"""
Operator configuration loader.

An operator is a YAML file describing one briefing: which sources to gather
and which tasks (prompts) to run over the gathered context.

Example operator file:

    id: support-lead
    name: Support Lead
    sources:
      - connector: support-desk
        fetch: open_tickets
        params:
          days_back: 14
    tasks:
      daily:
        name: Daily briefing
        prompt: Summarize what needs attention today.
        default: true
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from briefops.connectors.errors import InvalidSourceError
from briefops.connectors.types import LegacySource, OperatorSource, parse_source
from briefops.utils.logger import get_logger

from .config_loader import ConfigLoader

logger = get_logger(__name__)

OPERATOR_SUFFIXES = (".yaml", ".yml")


class OperatorConfigError(ValueError):
    """An operator file is missing, unreadable or malformed."""


@dataclass
class Task:
    """A named briefing prompt."""
    name: str
    prompt: str
    default: bool = False


@dataclass
class OperatorConfig:
    """A loaded operator: its sources and briefing tasks."""
    id: str
    name: str
    description: Optional[str] = None
    sources: List[OperatorSource] = field(default_factory=list)
    tasks: Dict[str, Task] = field(default_factory=dict)
    briefing_prompt: Optional[str] = None

    def default_task(self) -> Optional[Task]:
        """The task flagged ``default``, else the first task, else None."""
        for task in self.tasks.values():
            if task.default:
                return task
        return next(iter(self.tasks.values()), None)

    def get_task(self, key: str) -> Task:
        try:
            return self.tasks[key]
        except KeyError:
            raise OperatorConfigError(
                f"Operator {self.id} has no task {key!r}. Available tasks: {', '.join(self.tasks) or 'none'}"
            ) from None


def find_operator(name_or_path: Union[str, Path]) -> Path:
    """
    Locate an operator file by path or by name.

    Names are looked up in ``./config/operators/examples``,
    ``./config/operators`` and ``<home>/operators``.

    Raises:
        OperatorConfigError: If no file is found.
    """
    candidate = Path(name_or_path).expanduser()
    if candidate.suffix in OPERATOR_SUFFIXES:
        if not candidate.exists():
            raise OperatorConfigError(f"Operator file not found: {candidate}")
        return candidate.resolve()

    locations = [
        Path("config/operators/examples"),
        Path("config/operators"),
        ConfigLoader.home_dir() / "operators",
    ]
    for directory in locations:
        for suffix in OPERATOR_SUFFIXES:
            path = directory / f"{name_or_path}{suffix}"
            if path.exists():
                return path.resolve()

    raise OperatorConfigError(f"Operator not found: {name_or_path}")


def _expand_legacy_env(source: LegacySource) -> None:
    # Legacy connections may reference process env as "$VAR"
    for key, value in source.connection.env.items():
        if isinstance(value, str) and value.startswith("$"):
            source.connection.env[key] = os.environ.get(value[1:], "")


def _parse_tasks(operator_id: str, raw: Any) -> Dict[str, Task]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise OperatorConfigError(f"Operator {operator_id}: 'tasks' must be a mapping")

    tasks: Dict[str, Task] = {}
    for key, task_data in raw.items():
        if not isinstance(task_data, dict) or not task_data.get("prompt"):
            raise OperatorConfigError(f"Operator {operator_id}: task {key!r} needs a 'prompt'")
        tasks[key] = Task(
            name=task_data.get("name") or key,
            prompt=task_data["prompt"],
            default=bool(task_data.get("default", False)),
        )
    return tasks


def parse_operator(data: Any) -> OperatorConfig:
    """
    Build an OperatorConfig from parsed YAML.

    Raises:
        OperatorConfigError: If required fields are missing, a source
            reference is malformed or two sources share an id.
    """
    if not isinstance(data, dict):
        raise OperatorConfigError("Operator definition must be a mapping")
    if not data.get("id"):
        raise OperatorConfigError("Operator definition missing 'id' field")

    operator_id = str(data["id"])
    raw_sources = data.get("sources") or []
    if not isinstance(raw_sources, list):
        raise OperatorConfigError(f"Operator {operator_id}: 'sources' must be a list")

    sources: List[OperatorSource] = []
    seen_ids = set()
    for index, raw in enumerate(raw_sources):
        try:
            source = parse_source(raw)
        except InvalidSourceError as e:
            raise OperatorConfigError(f"Operator {operator_id}: source #{index + 1}: {e}") from e
        if source.effective_id in seen_ids:
            raise OperatorConfigError(
                f"Operator {operator_id}: source #{index + 1}: Duplicate source ID: {source.effective_id}"
            )
        seen_ids.add(source.effective_id)
        if isinstance(source, LegacySource):
            _expand_legacy_env(source)
        sources.append(source)

    briefing = data.get("briefing") or {}
    return OperatorConfig(
        id=operator_id,
        name=data.get("name") or operator_id,
        description=data.get("description"),
        sources=sources,
        tasks=_parse_tasks(operator_id, data.get("tasks")),
        briefing_prompt=briefing.get("prompt") if isinstance(briefing, dict) else None,
    )


def load_operator(name_or_path: Union[str, Path]) -> OperatorConfig:
    """
    Load an operator from a YAML file path or an operator name.

    Args:
        name_or_path: ``.yaml``/``.yml`` path, or a bare operator name

    Returns:
        Parsed OperatorConfig

    Raises:
        OperatorConfigError: If the file cannot be found, read or parsed.
    """
    path = find_operator(name_or_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise OperatorConfigError(f"Failed to read operator {path}: {e}") from e

    operator = parse_operator(data)
    logger.debug("operator_loaded", operator=operator.id, path=str(path), sources=len(operator.sources))
    return operator
