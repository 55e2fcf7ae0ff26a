"""
MCP adapter: executes fetch operations for process-based connectors.

The connector's MCP server is spawned per call, one tool is invoked with
the resolved params, and the subprocess is always torn down afterwards.
"""
import os
from typing import Dict, Optional

from briefops.mcp import client as mcp_client
from briefops.utils.logger import LogCategory, get_logger

from .errors import ContractViolationError, describe_error
from .templates import find_unresolved, resolve_template, resolve_templates
from .types import AdapterResult, ExecutionContext, MCPConnection

logger = get_logger(__name__, category=LogCategory.ADAPTERS)


def resolve_env(context: ExecutionContext) -> Dict[str, str]:
    """
    Resolve the connector's env templates for the subprocess.

    Entries that resolve to an empty string or still contain a placeholder
    are dropped, so a literal ``{{...}}`` never reaches the child process.
    """
    env: Dict[str, str] = {}
    if os.environ.get("BRIEFOPS_VERBOSE"):
        env["VERBOSE"] = "1"

    for key, template in context.connector.mcp.env.items():
        resolved = resolve_template(template, context.credentials, context.params)
        if resolved and "{{" not in resolved:
            env[key] = resolved
        else:
            logger.debug("mcp_env_dropped", connector=context.connector.id, key=key)
    return env


def build_connection(context: ExecutionContext) -> MCPConnection:
    """Explicit command/args win; otherwise run the package through npx."""
    mcp = context.connector.mcp
    env = resolve_env(context)

    if mcp.command and mcp.args is not None:
        return MCPConnection(command=mcp.command, args=list(mcp.args), env=env)
    if mcp.package:
        return MCPConnection(command="npx", args=["-y", mcp.package], env=env)

    raise ContractViolationError(
        f"Connector {context.connector.id} MCP config must specify either 'package' or 'command'/'args'"
    )


async def execute_mcp_fetch(
    context: ExecutionContext,
    *,
    connect_timeout: Optional[float] = None,
) -> AdapterResult:
    """
    Execute an MCP fetch operation.

    Args:
        context: Resolved execution context for an mcp connector
        connect_timeout: Bound on the server handshake, in seconds

    Returns:
        AdapterResult with the tool payload, or with ``error`` on failure

    Raises:
        ContractViolationError: If the context is not for an mcp connector
            or the fetch has no ``tool``.
    """
    connector, fetch = context.connector, context.fetch

    if connector.type != "mcp" or connector.mcp is None:
        raise ContractViolationError(f"Connector {connector.id} is not an MCP connector")
    if not fetch.tool:
        raise ContractViolationError(
            f"Fetch operation {context.fetch_name} for connector {connector.id} missing 'tool' field"
        )

    connection = build_connection(context)
    args = resolve_templates(dict(context.params), context.credentials, context.params)

    unresolved = find_unresolved(args)
    if unresolved:
        return AdapterResult.failure(
            context.source_id,
            context.source_name,
            f"Unresolved template placeholders in tool arguments: {', '.join(unresolved)}",
        )

    logger.info("mcp_fetch", source_id=context.source_id, tool=fetch.tool, command=connection.command)
    try:
        async with mcp_client.open_client(connection, connect_timeout=connect_timeout) as session:
            data = await mcp_client.call_tool(session, fetch.tool, args)
    except Exception as e:
        logger.warning("mcp_fetch_failed", source_id=context.source_id, tool=fetch.tool, error=describe_error(e))
        return AdapterResult.failure(context.source_id, context.source_name, e)

    return AdapterResult(source_id=context.source_id, source_name=context.source_name, data=data)
