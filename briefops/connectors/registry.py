"""Connector Registry for declarative connector definitions.

Definitions are YAML files discovered in an ordered list of directories.
The first definition found for an id wins; later duplicates are ignored
with a warning.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from briefops.core.config_loader import ConfigLoader
from briefops.utils.logger import LogCategory, get_logger

from .errors import ConnectorDefinitionError
from .types import ConnectorDefinition


logger = get_logger(__name__, category=LogCategory.REGISTRY)

YAML_SUFFIXES = (".yaml", ".yml")


class ConnectorRegistry:
    """Registry of connector definitions loaded from YAML files.

    Example:
        >>> registry = ConnectorRegistry()
        >>> registry.load()
        >>> registry.list_ids()
        ['gong', 'hubspot', 'support-desk']
        >>> registry.get("support-desk").type
        'api'
    """

    def __init__(
        self,
        search_paths: list[str | Path] | None = None,
        config: ConfigLoader | None = None,
    ):
        """Initialize connector registry.

        Args:
            search_paths: Explicit directories to scan, in priority order.
                When omitted, the default search path list is used.
            config: Config loader for the override path and home directory
        """
        self._config = config
        self._search_paths = [Path(p) for p in search_paths] if search_paths is not None else None
        self._connectors: dict[str, ConnectorDefinition] = {}
        self._sources: dict[str, Path] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get_search_paths(self) -> list[Path]:
        """Directories scanned by load(), highest priority first."""
        if self._search_paths is not None:
            candidates = list(self._search_paths)
        else:
            config = self._config or ConfigLoader()
            candidates = []

            override = os.getenv("BRIEFOPS_CONNECTORS_PATH") or config.get("connectors.path")
            if override:
                candidates.append(Path(override).expanduser())

            candidates.append(Path("./connectors"))
            # Workspace layouts where the caller runs from a nested package
            candidates.append(Path("../connectors"))
            candidates.append(Path("../../connectors"))
            candidates.append(config.home_dir() / "connectors")

        paths: list[Path] = []
        seen: set[Path] = set()
        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved not in seen:
                seen.add(resolved)
                paths.append(resolved)
        return paths

    def load(self) -> None:
        """Load all connector definitions from the search paths.

        Idempotent: subsequent calls are no-ops until reset().
        """
        if self._loaded:
            return

        for directory in self.get_search_paths():
            self._load_directory(directory)

        self._loaded = True
        logger.info("connectors_loaded", count=len(self._connectors), ids=self.list_ids())

    def _load_directory(self, directory: Path) -> None:
        if not directory.is_dir():
            logger.debug("connector_dir_missing", path=str(directory))
            return

        files = sorted(p for p in directory.iterdir() if p.suffix in YAML_SUFFIXES and p.is_file())
        for path in files:
            self._load_file(path)

    def _load_file(self, path: Path) -> None:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
            connector = ConnectorDefinition.from_dict(data)
        except (OSError, yaml.YAMLError, ConnectorDefinitionError, TypeError, AttributeError) as e:
            logger.warning("connector_load_failed", path=str(path), error=str(e))
            return

        if connector.id in self._connectors:
            logger.warning(
                "duplicate_connector_ignored",
                connector=connector.id,
                path=str(path),
                kept=str(self._sources.get(connector.id)),
            )
            return

        self._connectors[connector.id] = connector
        self._sources[connector.id] = path
        logger.debug("connector_registered", connector=connector.id, path=str(path))

    def register(self, connector: ConnectorDefinition) -> None:
        """Register a connector directly, replacing any with the same id."""
        self._connectors[connector.id] = connector
        self._sources.pop(connector.id, None)

    def get(self, connector_id: str) -> ConnectorDefinition | None:
        return self._connectors.get(connector_id)

    def has(self, connector_id: str) -> bool:
        return connector_id in self._connectors

    def list(self) -> list[ConnectorDefinition]:
        return list(self._connectors.values())

    def list_ids(self) -> list[str]:
        return list(self._connectors.keys())

    def source_path(self, connector_id: str) -> Path | None:
        """File a connector was loaded from (None for registered ones)."""
        return self._sources.get(connector_id)

    def reset(self) -> None:
        """Forget all connectors and allow load() to run again."""
        self._connectors.clear()
        self._sources.clear()
        self._loaded = False


_registry: ConnectorRegistry | None = None


def get_registry() -> ConnectorRegistry:
    """Get the default registry handle (not loaded until load() is called)."""
    global _registry
    if _registry is None:
        _registry = ConnectorRegistry()
    return _registry


def init_registry() -> ConnectorRegistry:
    """Get the default registry, loading it if needed."""
    registry = get_registry()
    registry.load()
    return registry


def reset_registry() -> None:
    """Drop the default registry (for tests)."""
    global _registry
    if _registry is not None:
        _registry.reset()
    _registry = None
