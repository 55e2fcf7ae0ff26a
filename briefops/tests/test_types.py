"""Tests for connector definitions, source references and result records."""

import pytest

from briefops.connectors.errors import (
    ConnectorDefinitionError,
    InvalidParamsError,
    InvalidSourceError,
    UnknownConnectorError,
    describe_error,
)
from briefops.connectors.types import (
    NO_DEFAULT,
    AdapterResult,
    ConnectorDefinition,
    ConnectorSource,
    ExecutionContext,
    LegacySource,
    ParamDefinition,
    parse_source,
)


class TestConnectorDefinition:
    """Test cases for parsing and validating connector definitions."""

    def test_api_definition(self, support_desk_data):
        connector = ConnectorDefinition.from_dict(support_desk_data)

        assert connector.type == "api"
        assert connector.api.base_url == "https://api.example.test"
        assert connector.api.auth.type == "token"
        assert connector.mcp is None
        assert connector.fetches["open_tickets"].endpoint == "GET /tickets"
        assert connector.auth.fields["token"].type == "password"

    def test_mcp_definition(self, hubspot_data):
        connector = ConnectorDefinition.from_dict(hubspot_data)

        assert connector.mcp.package == "@hubspot/mcp-server"
        assert connector.mcp.args is None
        assert connector.fetches["recent_deals"].params["limit"].default == 10

    def test_missing_id(self, support_desk_data):
        del support_desk_data["id"]
        with pytest.raises(ConnectorDefinitionError, match="missing 'id'"):
            ConnectorDefinition.from_dict(support_desk_data)

    def test_unknown_type(self, support_desk_data):
        support_desk_data["type"] = "grpc"
        with pytest.raises(ConnectorDefinitionError, match="type must be one of"):
            ConnectorDefinition.from_dict(support_desk_data)

    def test_type_must_match_section(self, support_desk_data):
        support_desk_data["type"] = "mcp"
        with pytest.raises(ConnectorDefinitionError):
            ConnectorDefinition.from_dict(support_desk_data)

    def test_api_fetch_requires_endpoint(self, support_desk_data):
        support_desk_data["fetches"] = {"bad": {"tool": "x"}}
        with pytest.raises(ConnectorDefinitionError, match="needs 'endpoint'"):
            ConnectorDefinition.from_dict(support_desk_data)

    def test_mcp_fetch_requires_tool(self, hubspot_data):
        hubspot_data["fetches"] = {"bad": {"endpoint": "GET /x"}}
        with pytest.raises(ConnectorDefinitionError, match="needs 'tool'"):
            ConnectorDefinition.from_dict(hubspot_data)

    def test_requires_fetches(self, hubspot_data):
        hubspot_data["fetches"] = {}
        with pytest.raises(ConnectorDefinitionError, match="no fetch operations"):
            ConnectorDefinition.from_dict(hubspot_data)

    def test_unsupported_auth_type(self, support_desk_data):
        support_desk_data["api"]["auth"] = {"type": "oauth"}
        with pytest.raises(ConnectorDefinitionError, match="unsupported auth type"):
            ConnectorDefinition.from_dict(support_desk_data)

    def test_base_url_required(self, support_desk_data):
        del support_desk_data["api"]["baseUrl"]
        with pytest.raises(ConnectorDefinitionError, match="baseUrl"):
            ConnectorDefinition.from_dict(support_desk_data)

    def test_to_dict_round_trips_through_from_dict(self, support_desk_data):
        connector = ConnectorDefinition.from_dict(support_desk_data)
        assert ConnectorDefinition.from_dict(connector.to_dict()) == connector

    def test_param_default_null_is_a_default(self):
        assert ParamDefinition.from_dict({"default": None}).has_default
        assert ParamDefinition.from_dict({}).default is NO_DEFAULT


class TestParseSource:
    """Test cases for the source reference variants."""

    def test_connector_source(self):
        source = parse_source({"connector": "support-desk", "fetch": "open_tickets", "params": {"a": 1}})

        assert isinstance(source, ConnectorSource)
        assert source.kind == "connector"
        assert source.params == {"a": 1}
        assert source.effective_id == "support-desk-open_tickets"

    def test_explicit_id_wins(self):
        source = parse_source({"connector": "c", "fetch": "f", "id": "custom"})
        assert source.effective_id == "custom"

    def test_legacy_source(self):
        raw = {
            "id": "files",
            "name": "Files",
            "connection": {"command": "node", "args": ["server.js"], "env": {"A": "1"}},
            "tool": "list_files",
            "args": {"path": "/"},
        }
        source = parse_source(raw)

        assert isinstance(source, LegacySource)
        assert source.kind == "legacy"
        assert source.connection.command == "node"
        assert source.connection.args == ["server.js"]
        assert source.args == {"path": "/"}

    def test_connector_shape_takes_precedence(self):
        raw = {"connector": "c", "fetch": "f", "connection": {"command": "x"}, "tool": "t"}
        assert isinstance(parse_source(raw), ConnectorSource)

    def test_parsed_source_passes_through(self):
        source = ConnectorSource(connector="c", fetch="f")
        assert parse_source(source) is source

    @pytest.mark.parametrize(
        "raw",
        [
            {"connector": "c"},
            {"tool": "t"},
            {"connection": {}, "tool": "t"},
            "support-desk",
        ],
    )
    def test_invalid_sources(self, raw):
        with pytest.raises(InvalidSourceError):
            parse_source(raw)


class TestExecutionContext:
    """Test cases for the immutable execution context."""

    def test_maps_are_read_only(self, support_desk_data):
        connector = ConnectorDefinition.from_dict(support_desk_data)
        context = ExecutionContext(
            connector=connector,
            fetch=connector.fetches["open_tickets"],
            fetch_name="open_tickets",
            credentials={"token": "t"},
            params={"a": 1},
            source_id="s",
            source_name="S",
        )

        with pytest.raises(TypeError):
            context.params["a"] = 2
        with pytest.raises(TypeError):
            context.credentials["token"] = "other"
        with pytest.raises(AttributeError):
            context.source_id = "other"


class TestAdapterResult:
    """Test cases for result records."""

    def test_success_record(self):
        result = AdapterResult(source_id="s", source_name="S", data={"x": 1})

        assert result.success
        assert result.to_dict() == {"sourceId": "s", "sourceName": "S", "data": {"x": 1}}

    def test_failure_record(self):
        result = AdapterResult.failure("s", "S", RuntimeError("boom"))

        assert not result.success
        assert result.data is None
        assert result.to_dict()["error"] == "boom"

    def test_data_and_error_are_exclusive(self):
        with pytest.raises(ValueError):
            AdapterResult(source_id="s", source_name="S", data=1, error="e")


class TestErrors:
    """Test cases for error messages."""

    def test_unknown_connector_lists_available(self):
        error = UnknownConnectorError("nope", ["gong", "hubspot"])
        assert str(error) == "Unknown connector: nope. Available connectors: gong, hubspot"

    def test_invalid_params_lists_every_missing_key(self):
        error = InvalidParamsError("hubspot", "contact", ["k1", "k2"])
        assert "Missing required parameter: k1" in str(error)
        assert "Missing required parameter: k2" in str(error)

    def test_describe_error_unwraps_groups(self):
        group = ExceptionGroup("unhandled errors in a TaskGroup", [ConnectionError("server exited")])
        assert describe_error(group) == "server exited"

    def test_describe_error_falls_back_to_type_name(self):
        assert describe_error(TimeoutError()) == "TimeoutError"
