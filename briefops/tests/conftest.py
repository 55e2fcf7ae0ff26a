"""Shared test fixtures for briefops tests.

Connector definitions are built in-process and registered on registries that
never scan disk, so tests do not depend on the working directory or the
user's home.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, Mock

import pytest

from briefops.connectors.credentials import CredentialStore
from briefops.connectors.registry import ConnectorRegistry, reset_registry
from briefops.connectors.types import ConnectorDefinition
from briefops.core.config_loader import ConfigLoader


if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point BRIEFOPS_HOME at a temp dir and clear briefops env overrides."""
    home = tmp_path / "briefops-home"
    monkeypatch.setenv("BRIEFOPS_HOME", str(home))
    for var in ("BRIEFOPS_CONFIG", "BRIEFOPS_CONNECTORS_PATH", "BRIEFOPS_VERBOSE"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_default_registry():
    """Drop the module-level registry between tests."""
    yield
    reset_registry()


@pytest.fixture
def config(tmp_path: Path) -> ConfigLoader:
    """Config loader reading defaults only (no config file on disk)."""
    return ConfigLoader(str(tmp_path / "missing-briefops.yaml"))


@pytest.fixture
def credential_store(tmp_path: Path) -> CredentialStore:
    return CredentialStore(root=tmp_path / "credentials")


# =============================================================================
# Connector Fixtures
# =============================================================================


@pytest.fixture
def support_desk_data() -> dict:
    """Token-auth API connector used by the end-to-end examples."""
    return {
        "id": "support-desk",
        "name": "Support Desk",
        "type": "api",
        "auth": {
            "type": "token",
            "fields": {"token": {"label": "API token", "type": "password", "required": True}},
        },
        "api": {
            "baseUrl": "https://api.example.test",
            "auth": {"type": "token", "token": "{{credentials.token}}"},
        },
        "fetches": {
            "open_tickets": {"endpoint": "GET /tickets", "description": "Open tickets"},
            "recent": {
                "endpoint": "GET /tickets",
                "params": {"days_back": {"type": "number", "default": 7, "required": False}},
            },
        },
    }


@pytest.fixture
def hubspot_data() -> dict:
    """MCP connector launched from an npm package."""
    return {
        "id": "hubspot",
        "name": "HubSpot",
        "type": "mcp",
        "auth": {
            "type": "token",
            "fields": {"accessToken": {"label": "Access token", "type": "password", "required": True}},
        },
        "mcp": {
            "package": "@hubspot/mcp-server",
            "env": {"PRIVATE_APP_ACCESS_TOKEN": "{{credentials.accessToken}}"},
        },
        "fetches": {
            "recent_deals": {
                "tool": "search_deals",
                "description": "Recent deals",
                "params": {"limit": {"type": "number", "default": 10}},
            },
            "contact": {
                "tool": "get_contact",
                "params": {
                    "k1": {"type": "string", "required": True},
                    "k2": {"type": "string", "required": True},
                },
            },
        },
    }


@pytest.fixture
def connector_factory() -> Callable[..., ConnectorDefinition]:
    """Factory fixture for connector definitions.

    Usage:
        def test_something(connector_factory):
            connector = connector_factory(support_desk_data, id="other")
    """

    def _create(data: dict, **overrides: Any) -> ConnectorDefinition:
        return ConnectorDefinition.from_dict({**data, **overrides})

    return _create


@pytest.fixture
def registry(support_desk_data: dict, hubspot_data: dict) -> ConnectorRegistry:
    """Registry with support-desk and hubspot registered and no search paths."""
    reg = ConnectorRegistry(search_paths=[])
    reg.register(ConnectorDefinition.from_dict(support_desk_data))
    reg.register(ConnectorDefinition.from_dict(hubspot_data))
    return reg


# =============================================================================
# MCP Fixtures
# =============================================================================


@pytest.fixture
def mock_session() -> Mock:
    """MCP ClientSession stand-in with async tool methods."""
    session = Mock()
    session.call_tool = AsyncMock()
    session.list_tools = AsyncMock()
    return session


@pytest.fixture
def fake_open_client(mock_session: Mock) -> Callable[..., Any]:
    """Replacement for ``open_client`` that records connections.

    The recorded connections are available as ``fake_open_client.connections``.
    """
    connections = []

    @asynccontextmanager
    async def _open_client(connection, connect_timeout=None):
        connections.append(connection)
        yield mock_session

    _open_client.connections = connections
    return _open_client
