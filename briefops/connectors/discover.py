"""
MCP server discovery.

Starts an npm-published MCP server that is not registered yet to learn
which tools it offers and, when it refuses to start, which environment
variables it wants.
"""
import asyncio
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from briefops.mcp import client as mcp_client
from briefops.mcp.client import DiscoveredTool
from briefops.utils.logger import LogCategory, get_logger

from .errors import describe_error
from .types import MCPConnection

logger = get_logger(__name__, category=LogCategory.ADAPTERS)

# Common phrasings of "missing env var" errors
ENV_VAR_PATTERNS = [
    re.compile(r"(\w+)\s+environment variable\s+(?:is\s+)?required", re.IGNORECASE),
    re.compile(r"missing\s+(?:required\s+)?(?:environment\s+)?(?:variable\s+)?[`\"']?(\w+)[`\"']?", re.IGNORECASE),
    re.compile(
        r"(?:env|environment)\s+(?:var|variable)\s+[`\"']?(\w+)[`\"']?\s+(?:is\s+)?(?:not\s+set|missing|required)",
        re.IGNORECASE,
    ),
    re.compile(r"[`\"']?(\w+)[`\"']?\s+(?:is\s+)?not\s+(?:set|defined)", re.IGNORECASE),
]


@dataclass
class DiscoveryResult:
    """Outcome of probing an MCP server."""
    success: bool
    tools: List[DiscoveredTool] = field(default_factory=list)
    error: Optional[str] = None
    required_env_vars: Optional[List[str]] = None


def parse_required_env_vars(error_message: str) -> List[str]:
    """Extract upper-case env var names from a server's startup error."""
    found: List[str] = []
    for pattern in ENV_VAR_PATTERNS:
        for match in pattern.finditer(error_message):
            name = match.group(1)
            if name and name == name.upper() and len(name) > 2 and name not in found:
                found.append(name)
    return found


async def discover_mcp_server(
    package_name: str,
    env: Optional[Dict[str, str]] = None,
    connect_timeout: Optional[float] = 60,
) -> DiscoveryResult:
    """
    Start ``npx -y <package>`` and list its tools.

    Args:
        package_name: npm package of the MCP server
        env: Extra environment for the server (e.g. credentials)
        connect_timeout: Bound on the handshake, in seconds

    Returns:
        DiscoveryResult; on failure ``required_env_vars`` holds any variable
        names the error message mentions.
    """
    connection = MCPConnection(command="npx", args=["-y", package_name], env=dict(env or {}))

    try:
        async with mcp_client.open_client(connection, connect_timeout=connect_timeout) as session:
            tools = await mcp_client.list_tools(session)
    except Exception as e:
        message = describe_error(e)
        logger.warning("mcp_discovery_failed", package=package_name, error=message)
        required = parse_required_env_vars(message)
        return DiscoveryResult(
            success=False,
            error=message,
            required_env_vars=required or None,
        )

    logger.info("mcp_discovered", package=package_name, tools=[t.name for t in tools])
    return DiscoveryResult(success=True, tools=tools)


async def check_package_exists(package_name: str, timeout: float = 10.0) -> bool:
    """Check that an npm package exists using ``npm view <package> name``."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "npm", "view", package_name, "name",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        logger.warning("npm_unavailable", error=str(e))
        return False

    try:
        return await asyncio.wait_for(proc.wait(), timeout=timeout) == 0
    except TimeoutError:
        proc.kill()
        await proc.wait()
        return False
