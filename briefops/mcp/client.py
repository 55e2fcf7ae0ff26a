"""
Thin MCP client wrapper over the ``mcp`` SDK's stdio transport.

A connection spawns the server subprocess, runs the MCP handshake and
hands back a session. ``open_client`` is an async context manager so the
subprocess is torn down on every exit path, including errors and timeouts.
"""
import asyncio
import json
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from briefops.connectors.errors import TransportError
from briefops.connectors.types import MCPConnection
from briefops.utils.logger import LogCategory, get_logger

logger = get_logger(__name__, category=LogCategory.ADAPTERS)

WORKSPACE_MARKERS = ("pnpm-workspace.yaml", "lerna.json")


@dataclass
class DiscoveredTool:
    """A tool advertised by an MCP server."""
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = field(default_factory=dict)


def _is_workspace_root(directory: Path) -> bool:
    if any((directory / marker).exists() for marker in WORKSPACE_MARKERS):
        return True

    package_json = directory / "package.json"
    if package_json.exists():
        try:
            return bool(json.loads(package_json.read_text(encoding="utf-8")).get("workspaces"))
        except (OSError, ValueError, AttributeError):
            return False
    return False


def find_workspace_root(start: Optional[Path] = None) -> Path:
    """
    Walk up from ``start`` (default: cwd) to the nearest JS workspace root.

    npx resolves packages relative to its working directory, so servers are
    always launched from the same place regardless of where the caller runs.
    Falls back to ``start`` when no marker is found.
    """
    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        if _is_workspace_root(directory):
            return directory
    return origin


@asynccontextmanager
async def open_client(
    connection: MCPConnection,
    connect_timeout: Optional[float] = None,
) -> AsyncIterator[ClientSession]:
    """
    Spawn an MCP server and yield an initialized session.

    Args:
        connection: Command, args and extra environment for the subprocess
        connect_timeout: Upper bound in seconds for the initialize handshake

    Yields:
        Initialized ClientSession
    """
    server = StdioServerParameters(
        command=connection.command,
        args=list(connection.args),
        env={**os.environ, **connection.env},
        cwd=str(find_workspace_root()),
    )

    logger.debug("mcp_spawn", command=connection.command, args=connection.args)
    async with stdio_client(server) as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            if connect_timeout:
                await asyncio.wait_for(session.initialize(), timeout=connect_timeout)
            else:
                await session.initialize()
            yield session
    logger.debug("mcp_closed", command=connection.command)


def _content_text(content: List[Any]) -> str:
    texts = [getattr(block, "text", "") for block in content]
    return " ".join(text for text in texts if text) or "no details"


async def call_tool(session: ClientSession, tool: str, args: Mapping[str, Any]) -> Any:
    """
    Call one tool and return its payload.

    Structured content is returned as-is when the server provides it;
    otherwise the content blocks are returned as JSON-ready dicts.

    Raises:
        TransportError: If the server flags the result as an error.
    """
    result = await session.call_tool(tool, arguments=dict(args))

    if result.isError:
        raise TransportError(f"Tool {tool} failed: {_content_text(result.content)}")

    structured = getattr(result, "structuredContent", None)
    if structured is not None:
        return structured

    return [block.model_dump(mode="json", exclude_none=True) for block in result.content]


async def list_tools(session: ClientSession) -> List[DiscoveredTool]:
    """List the tools an MCP server exposes."""
    result = await session.list_tools()
    return [
        DiscoveredTool(
            name=tool.name,
            description=tool.description,
            input_schema=dict(tool.inputSchema or {}),
        )
        for tool in result.tools
    ]
