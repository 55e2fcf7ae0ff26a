"""MCP stdio client used by the process adapter and server discovery."""

from .client import DiscoveredTool, call_tool, find_workspace_root, list_tools, open_client


__all__ = [
    "DiscoveredTool",
    "call_tool",
    "find_workspace_root",
    "list_tools",
    "open_client",
]
