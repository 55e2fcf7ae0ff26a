"""
Connector YAML generator.

Builds connector definitions from a discovered MCP server and writes them to
the user's local connectors directory, where the registry picks them up.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from briefops.core.config_loader import ConfigLoader
from briefops.mcp.client import DiscoveredTool
from briefops.utils.logger import LogCategory, get_logger

from .credentials import sanitize_connector_id
from .types import (
    PARAM_TYPES,
    AuthConfig,
    AuthField,
    ConnectorDefinition,
    FetchDefinition,
    MCPConfig,
    ParamDefinition,
)

logger = get_logger(__name__, category=LogCategory.REGISTRY)


def get_local_connectors_dir(config: Optional[ConfigLoader] = None) -> Path:
    return (config or ConfigLoader()).home_dir() / "connectors"


def ensure_local_connectors_dir(config: Optional[ConfigLoader] = None) -> Path:
    directory = get_local_connectors_dir(config)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_connector_path(connector_id: str, config: Optional[ConfigLoader] = None) -> Path:
    return get_local_connectors_dir(config) / f"{sanitize_connector_id(connector_id)}.yaml"


def tool_schema_to_params(input_schema: Optional[Dict[str, Any]]) -> Dict[str, ParamDefinition]:
    """Map a tool's JSON input schema onto fetch parameter definitions."""
    properties = (input_schema or {}).get("properties") or {}
    required = set((input_schema or {}).get("required") or [])

    params: Dict[str, ParamDefinition] = {}
    for name, schema in properties.items():
        schema = schema if isinstance(schema, dict) else {}
        param_type = schema.get("type")
        if param_type == "integer":
            param_type = "number"
        params[name] = ParamDefinition(
            type=param_type if param_type in PARAM_TYPES else "string",
            required=name in required,
            description=schema.get("description"),
        )
    return params


def tools_to_fetches(tools: List[DiscoveredTool]) -> Dict[str, FetchDefinition]:
    return {
        tool.name: FetchDefinition(
            tool=tool.name,
            description=tool.description,
            params=tool_schema_to_params(tool.input_schema),
        )
        for tool in tools
    }


def generate_connector_definition(
    connector_id: str,
    package_name: str,
    tools: List[DiscoveredTool],
    env_vars: List[str],
) -> ConnectorDefinition:
    """
    Generate an MCP connector definition from a discovery run.

    Each required env var becomes a password auth field and an env mapping
    ``VAR: "{{credentials.VAR}}"``; each tool becomes a fetch.

    Args:
        connector_id: Id for the new connector
        package_name: npm package that runs the server
        tools: Tools reported by the server
        env_vars: Environment variables the server needs

    Returns:
        A validated ConnectorDefinition

    Raises:
        ConnectorDefinitionError: If the server reported no tools.
    """
    auth = None
    if env_vars:
        auth = AuthConfig(
            type="token",
            fields={var: AuthField(label=var, type="password", required=True) for var in env_vars},
        )

    connector = ConnectorDefinition(
        id=connector_id,
        name=connector_id[:1].upper() + connector_id[1:],
        type="mcp",
        description=f"Connected via {package_name}",
        auth=auth,
        mcp=MCPConfig(
            package=package_name,
            env={var: f"{{{{credentials.{var}}}}}" for var in env_vars},
        ),
        fetches=tools_to_fetches(tools),
    )
    connector.validate()
    return connector


def save_connector_definition(
    connector: ConnectorDefinition,
    config: Optional[ConfigLoader] = None,
) -> Path:
    """Write a connector definition as YAML; returns the file path."""
    ensure_local_connectors_dir(config)
    path = get_connector_path(connector.id, config)

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(connector.to_dict(), f, sort_keys=False, default_flow_style=False, width=1000)

    logger.info("connector_saved", connector=connector.id, path=str(path))
    return path
