"""
Connector type definitions.

Connector definitions are declarative: they are loaded from YAML files and
describe how to reach one external data source (transport, auth, and the
named fetch operations it exposes). YAML keys are camelCase (``baseUrl``),
attributes are snake_case (``base_url``).
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from .errors import ConnectorDefinitionError, InvalidSourceError, describe_error


CONNECTOR_TYPES = ("mcp", "api")
API_AUTH_TYPES = ("basic", "token", "none")
PARAM_TYPES = ("string", "number", "boolean", "object", "array")


class _NoDefault:
    """Marker for a parameter without a default (distinct from ``default: null``)."""

    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


@dataclass
class AuthField:
    """A named credential a connector needs (e.g. an access token)."""
    label: str
    type: str = "text"  # "text" or "password"
    required: bool = True

    @classmethod
    def from_dict(cls, name: str, data: Optional[Dict[str, Any]]) -> "AuthField":
        data = data or {}
        return cls(
            label=data.get("label", name),
            type=data.get("type", "text"),
            required=data.get("required", True) is not False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "type": self.type, "required": self.required}


@dataclass
class AuthConfig:
    """Credential schema for a connector."""
    type: str = "token"
    fields: Dict[str, AuthField] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthConfig":
        fields = {
            name: AuthField.from_dict(name, field_data)
            for name, field_data in (data.get("fields") or {}).items()
        }
        return cls(type=data.get("type", "token"), fields=fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "fields": {name: f.to_dict() for name, f in self.fields.items()},
        }


@dataclass
class ParamDefinition:
    """A parameter accepted by a fetch operation."""
    type: str = "string"
    default: Any = NO_DEFAULT
    required: bool = False
    description: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ParamDefinition":
        data = data or {}
        return cls(
            type=data.get("type", "string"),
            default=data["default"] if "default" in data else NO_DEFAULT,
            required=bool(data.get("required", False)),
            description=data.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "required": self.required}
        if self.has_default:
            result["default"] = self.default
        if self.description:
            result["description"] = self.description
        return result


@dataclass
class FetchDefinition:
    """One named operation on a connector: a tool call or an HTTP endpoint."""
    tool: Optional[str] = None
    endpoint: Optional[str] = None  # e.g. "GET /calls", "POST /deals"
    description: Optional[str] = None
    params: Dict[str, ParamDefinition] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FetchDefinition":
        data = data or {}
        return cls(
            tool=data.get("tool"),
            endpoint=data.get("endpoint"),
            description=data.get("description"),
            params={
                name: ParamDefinition.from_dict(param_data)
                for name, param_data in (data.get("params") or {}).items()
            },
            body=data.get("body"),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.tool:
            result["tool"] = self.tool
        if self.endpoint:
            result["endpoint"] = self.endpoint
        if self.description:
            result["description"] = self.description
        if self.params:
            result["params"] = {name: p.to_dict() for name, p in self.params.items()}
        if self.body is not None:
            result["body"] = self.body
        return result


@dataclass
class MCPConfig:
    """How to launch an MCP server: an npm package or an explicit command."""
    package: Optional[str] = None
    command: Optional[str] = None
    args: Optional[List[str]] = None
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MCPConfig":
        return cls(
            package=data.get("package"),
            command=data.get("command"),
            args=list(data["args"]) if data.get("args") is not None else None,
            env=dict(data.get("env") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.package:
            result["package"] = self.package
        if self.command:
            result["command"] = self.command
        if self.args is not None:
            result["args"] = list(self.args)
        if self.env:
            result["env"] = dict(self.env)
        return result


@dataclass
class APIAuth:
    """Auth descriptor for an HTTP connector. Values are template strings."""
    type: str = "none"
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    header: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "APIAuth":
        data = data or {}
        return cls(
            type=data.get("type", "none"),
            username=data.get("username"),
            password=data.get("password"),
            token=data.get("token"),
            header=data.get("header"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("type", self.type),
                ("username", self.username),
                ("password", self.password),
                ("token", self.token),
                ("header", self.header),
            )
            if value is not None
        }


@dataclass
class APIConfig:
    """Base URL, auth and static headers for an HTTP connector."""
    base_url: str
    auth: APIAuth = field(default_factory=APIAuth)
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "APIConfig":
        base_url = data.get("baseUrl") or data.get("base_url")
        if not base_url:
            raise ConnectorDefinitionError("API config missing 'baseUrl'")
        return cls(
            base_url=base_url,
            auth=APIAuth.from_dict(data.get("auth")),
            headers=dict(data.get("headers") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"baseUrl": self.base_url, "auth": self.auth.to_dict()}
        if self.headers:
            result["headers"] = dict(self.headers)
        return result


@dataclass
class ConnectorDefinition:
    """
    Complete connector definition, usually loaded from a YAML file.

    Exactly one of ``mcp``/``api`` is set and it matches ``type``; every
    fetch carries ``tool`` for mcp connectors and ``endpoint`` for api ones.
    """
    id: str
    name: str
    type: str
    fetches: Dict[str, FetchDefinition] = field(default_factory=dict)
    icon: Optional[str] = None
    description: Optional[str] = None
    mcp: Optional[MCPConfig] = None
    api: Optional[APIConfig] = None
    auth: Optional[AuthConfig] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ConnectorDefinition":
        """
        Build and validate a definition from parsed YAML.

        Raises:
            ConnectorDefinitionError: If required fields are missing or the
                transport invariants do not hold.
        """
        if not isinstance(data, dict):
            raise ConnectorDefinitionError("Connector definition must be a mapping")
        if not data.get("id"):
            raise ConnectorDefinitionError("Connector definition missing 'id' field")

        fetches = data.get("fetches") or {}
        if not isinstance(fetches, dict):
            raise ConnectorDefinitionError(f"Connector {data['id']}: 'fetches' must be a mapping")

        connector = cls(
            id=str(data["id"]),
            name=data.get("name") or str(data["id"]),
            type=data.get("type", ""),
            fetches={name: FetchDefinition.from_dict(fetch_data) for name, fetch_data in fetches.items()},
            icon=data.get("icon"),
            description=data.get("description"),
            mcp=MCPConfig.from_dict(data["mcp"]) if data.get("mcp") else None,
            api=APIConfig.from_dict(data["api"]) if data.get("api") else None,
            auth=AuthConfig.from_dict(data["auth"]) if data.get("auth") else None,
        )
        connector.validate()
        return connector

    def validate(self) -> None:
        """Check the transport invariants, raising ConnectorDefinitionError."""
        if self.type not in CONNECTOR_TYPES:
            raise ConnectorDefinitionError(
                f"Connector {self.id}: type must be one of {', '.join(CONNECTOR_TYPES)}, got {self.type!r}"
            )
        if self.type == "mcp" and (self.mcp is None or self.api is not None):
            raise ConnectorDefinitionError(f"Connector {self.id}: mcp connectors need an 'mcp' section only")
        if self.type == "api" and (self.api is None or self.mcp is not None):
            raise ConnectorDefinitionError(f"Connector {self.id}: api connectors need an 'api' section only")
        if self.api is not None and self.api.auth.type not in API_AUTH_TYPES:
            raise ConnectorDefinitionError(
                f"Connector {self.id}: unsupported auth type {self.api.auth.type!r}"
            )
        if not self.fetches:
            raise ConnectorDefinitionError(f"Connector {self.id}: no fetch operations defined")

        for name, fetch in self.fetches.items():
            if self.type == "mcp" and (not fetch.tool or fetch.endpoint):
                raise ConnectorDefinitionError(f"Connector {self.id}: fetch {name} needs 'tool' and no 'endpoint'")
            if self.type == "api" and (not fetch.endpoint or fetch.tool):
                raise ConnectorDefinitionError(f"Connector {self.id}: fetch {name} needs 'endpoint' and no 'tool'")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the YAML shape, omitting unset fields."""
        result: Dict[str, Any] = {"id": self.id, "name": self.name, "type": self.type}
        if self.icon:
            result["icon"] = self.icon
        if self.description:
            result["description"] = self.description
        if self.auth is not None:
            result["auth"] = self.auth.to_dict()
        if self.mcp is not None:
            result["mcp"] = self.mcp.to_dict()
        if self.api is not None:
            result["api"] = self.api.to_dict()
        result["fetches"] = {name: f.to_dict() for name, f in self.fetches.items()}
        return result


@dataclass
class MCPConnection:
    """A fully resolved subprocess launch: command, args and extra env."""
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class ConnectorSource:
    """A request to invoke one fetch on one registered connector."""
    kind: ClassVar[str] = "connector"

    connector: str
    fetch: str
    params: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    name: Optional[str] = None

    @property
    def effective_id(self) -> str:
        return self.id or f"{self.connector}-{self.fetch}"


@dataclass
class LegacySource:
    """Direct MCP invocation that bypasses the registry entirely."""
    kind: ClassVar[str] = "legacy"

    id: str
    name: str
    connection: MCPConnection
    tool: str
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def effective_id(self) -> str:
        return self.id


OperatorSource = Union[ConnectorSource, LegacySource]


def is_connector_source(raw: Mapping[str, Any]) -> bool:
    return "connector" in raw and "fetch" in raw


def is_legacy_source(raw: Mapping[str, Any]) -> bool:
    return "connection" in raw and "tool" in raw


def parse_source(raw: Any) -> OperatorSource:
    """
    Turn a raw source reference into its tagged variant.

    Already-parsed sources are returned unchanged.

    Raises:
        InvalidSourceError: If the mapping matches neither shape.
    """
    if isinstance(raw, (ConnectorSource, LegacySource)):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidSourceError(f"Source reference must be a mapping, got {type(raw).__name__}")

    if is_connector_source(raw):
        return ConnectorSource(
            connector=str(raw["connector"]),
            fetch=str(raw["fetch"]),
            params=dict(raw.get("params") or {}),
            id=raw.get("id"),
            name=raw.get("name"),
        )

    if is_legacy_source(raw):
        connection = raw["connection"] or {}
        if not connection.get("command"):
            raise InvalidSourceError(f"Legacy source {raw.get('id')}: connection.command is required")
        return LegacySource(
            id=str(raw.get("id") or raw["tool"]),
            name=str(raw.get("name") or raw.get("id") or raw["tool"]),
            connection=MCPConnection(
                command=connection["command"],
                args=list(connection.get("args") or []),
                env=dict(connection.get("env") or {}),
            ),
            tool=str(raw["tool"]),
            args=dict(raw.get("args") or {}),
        )

    raise InvalidSourceError("Unknown source format: expected 'connector'+'fetch' or 'connection'+'tool'")


@dataclass(frozen=True)
class ExecutionContext:
    """
    Everything an adapter needs for one invocation.

    Built fresh per call by ``resolve_source`` and never mutated: the
    credential and param maps are exposed as read-only mappings.
    """
    connector: ConnectorDefinition
    fetch: FetchDefinition
    fetch_name: str
    credentials: Mapping[str, str]
    params: Mapping[str, Any]
    source_id: str
    source_name: str

    def __post_init__(self):
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


@dataclass
class AdapterResult:
    """Outcome of one source fetch: data on success, error otherwise."""
    source_id: str
    source_name: str
    data: Any = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.error is not None and self.data is not None:
            raise ValueError("AdapterResult cannot carry both data and error")

    @classmethod
    def failure(cls, source_id: str, source_name: str, error: Any) -> "AdapterResult":
        message = describe_error(error) if isinstance(error, BaseException) else str(error)
        return cls(source_id=source_id, source_name=source_name, data=None, error=message)

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "data": self.data,
        }
        if self.error is not None:
            result["error"] = self.error
        return result
