"""
Connectors: declarative definitions of external data sources.

A connector is a YAML file naming a transport (an MCP server subprocess or
an HTTP API), the credentials it needs and the fetch operations it offers.
Operators reference ``connector`` + ``fetch`` pairs; this package resolves
those references and executes them.

Usage:
    from briefops.connectors import ConnectorRegistry, ConnectorSource, resolve_source

    registry = ConnectorRegistry()
    registry.load()
    context = resolve_source(
        ConnectorSource(connector="support-desk", fetch="open_tickets"),
        registry=registry,
    )
"""

# types and errors first: briefops.mcp.client depends on them
from .errors import (
    ConnectorDefinitionError,
    ConnectorError,
    ContractViolationError,
    DuplicateSourceError,
    InvalidParamsError,
    InvalidSourceError,
    TransportError,
    UnknownConnectorError,
    UnknownFetchError,
    describe_error,
)
from .types import (
    NO_DEFAULT,
    AdapterResult,
    APIAuth,
    APIConfig,
    AuthConfig,
    AuthField,
    ConnectorDefinition,
    ConnectorSource,
    ExecutionContext,
    FetchDefinition,
    LegacySource,
    MCPConfig,
    MCPConnection,
    OperatorSource,
    ParamDefinition,
    is_connector_source,
    is_legacy_source,
    parse_source,
)
from .templates import find_unresolved, has_unresolved, resolve_template, resolve_templates
from .credentials import CredentialStore, env_var_name, sanitize_connector_id
from .registry import ConnectorRegistry, get_registry, init_registry, reset_registry
from .resolver import merge_params, resolve_source, validate_params
from .mcp_adapter import execute_mcp_fetch
from .api_adapter import execute_api_fetch
from .discover import DiscoveryResult, check_package_exists, discover_mcp_server
from .generator import generate_connector_definition, save_connector_definition


__all__ = [
    # Errors
    "ConnectorError",
    "ConnectorDefinitionError",
    "ContractViolationError",
    "DuplicateSourceError",
    "InvalidParamsError",
    "InvalidSourceError",
    "TransportError",
    "UnknownConnectorError",
    "UnknownFetchError",
    "describe_error",
    # Types
    "NO_DEFAULT",
    "AdapterResult",
    "APIAuth",
    "APIConfig",
    "AuthConfig",
    "AuthField",
    "ConnectorDefinition",
    "ConnectorSource",
    "ExecutionContext",
    "FetchDefinition",
    "LegacySource",
    "MCPConfig",
    "MCPConnection",
    "OperatorSource",
    "ParamDefinition",
    "is_connector_source",
    "is_legacy_source",
    "parse_source",
    # Templates
    "find_unresolved",
    "has_unresolved",
    "resolve_template",
    "resolve_templates",
    # Credentials
    "CredentialStore",
    "env_var_name",
    "sanitize_connector_id",
    # Registry
    "ConnectorRegistry",
    "get_registry",
    "init_registry",
    "reset_registry",
    # Resolution and execution
    "merge_params",
    "resolve_source",
    "validate_params",
    "execute_mcp_fetch",
    "execute_api_fetch",
    # Discovery
    "DiscoveryResult",
    "check_package_exists",
    "discover_mcp_server",
    "generate_connector_definition",
    "save_connector_definition",
]
