"""briefops: connector resolution and execution for operator briefings.

Operators describe what context a briefing needs as a list of sources.
Each source names a declarative connector (an MCP server or an HTTP API,
defined in YAML) and one of its fetch operations. briefops resolves the
references, fills in credentials and parameters, runs every fetch
concurrently and hands the records to an LLM for the briefing.

Quick Start:
------------
    import asyncio
    from briefops import ContextAggregator, load_operator

    operator = load_operator("operator.yaml")
    results = asyncio.run(
        ContextAggregator().gather_context(operator.sources, {"days_back": 30})
    )
    for result in results:
        print(result.source_id, result.error or "ok")

Features:
---------
- YAML connector registry with ordered search paths
- Credential store with environment overrides
- ``{{credentials.x}}``, ``{{params.x}}`` and ``{{date.daysAgo.N}}`` templates
- MCP (stdio subprocess) and HTTP adapters
- Fault-isolated concurrent context gathering
- MCP server discovery and connector generation
"""

__version__ = "0.3.0"
__license__ = "MIT"

# connectors must be imported before anything that pulls in briefops.mcp
from .connectors import (
    AdapterResult,
    ConnectorDefinition,
    ConnectorRegistry,
    ConnectorSource,
    CredentialStore,
    ExecutionContext,
    LegacySource,
    get_registry,
    init_registry,
    resolve_source,
)
from .context import ContextAggregator, gather_context
from .core import ConfigLoader, OperatorConfig, load_operator
from .briefing import Briefing, generate_briefing


__all__ = [
    "__version__",
    "AdapterResult",
    "ConnectorDefinition",
    "ConnectorRegistry",
    "ConnectorSource",
    "CredentialStore",
    "ExecutionContext",
    "LegacySource",
    "get_registry",
    "init_registry",
    "resolve_source",
    "ContextAggregator",
    "gather_context",
    "ConfigLoader",
    "OperatorConfig",
    "load_operator",
    "Briefing",
    "generate_briefing",
]
