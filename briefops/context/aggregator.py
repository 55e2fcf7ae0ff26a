"""Context Aggregator - fan a list of sources out to their adapters.

Every source becomes exactly one result record, in input order. A failing
source (bad reference, unknown connector, transport error, timeout) only
affects its own record. A source whose id repeats an earlier one in the same
batch is not run and gets an error record.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Sequence

from briefops.connectors.api_adapter import execute_api_fetch
from briefops.connectors.credentials import CredentialStore
from briefops.connectors.errors import (
    ContractViolationError,
    DuplicateSourceError,
    TransportError,
    describe_error,
)
from briefops.connectors.mcp_adapter import execute_mcp_fetch
from briefops.connectors.registry import ConnectorRegistry, get_registry
from briefops.connectors.resolver import resolve_source
from briefops.connectors.types import (
    AdapterResult,
    ConnectorSource,
    LegacySource,
    OperatorSource,
    parse_source,
)
from briefops.core.config_loader import ConfigLoader
from briefops.mcp import client as mcp_client
from briefops.utils.logger import LogCategory, bind_context, get_logger


logger = get_logger(__name__, category=LogCategory.AGGREGATOR)


def fallback_identity(raw: Any) -> tuple[str, str]:
    """Best-effort source id/name for a reference that failed to resolve."""
    if isinstance(raw, ConnectorSource):
        return raw.effective_id, raw.name or raw.connector
    if isinstance(raw, LegacySource):
        return raw.id, raw.name
    if isinstance(raw, Mapping):
        if "connector" in raw and "fetch" in raw:
            source_id = raw.get("id") or f"{raw['connector']}-{raw['fetch']}"
            return str(source_id), str(raw.get("name") or raw["connector"])
        source_id = str(raw.get("id") or "unknown")
        return source_id, str(raw.get("name") or source_id)
    return "unknown", "unknown"


def find_duplicate_ids(sources: Sequence[Any]) -> set[int]:
    """Positions of sources whose effective id was already used earlier in the batch.

    Unparseable references are ignored here; they fail on their own.
    """
    seen: set[str] = set()
    duplicates: set[int] = set()
    for index, raw in enumerate(sources):
        try:
            source_id = parse_source(raw).effective_id
        except Exception:
            # Reported by the unit itself
            continue
        if source_id in seen:
            duplicates.add(index)
        seen.add(source_id)
    return duplicates


async def execute_legacy_source(
    source: LegacySource,
    connect_timeout: float | None = None,
) -> AdapterResult:
    """Run a legacy direct MCP invocation (no registry, no templates)."""
    try:
        async with mcp_client.open_client(source.connection, connect_timeout=connect_timeout) as session:
            data = await mcp_client.call_tool(session, source.tool, source.args)
    except Exception as e:
        logger.warning("legacy_source_failed", source_id=source.id, tool=source.tool, error=describe_error(e))
        return AdapterResult.failure(source.id, source.name, e)

    return AdapterResult(source_id=source.id, source_name=source.name, data=data)


class ContextAggregator:
    """Gathers context from connector-based and legacy sources concurrently.

    Example:
        >>> aggregator = ContextAggregator(registry=ConnectorRegistry())
        >>> results = await aggregator.gather_context(
        ...     [{"connector": "support-desk", "fetch": "open_tickets"}],
        ...     runtime_params={"days_back": 30},
        ... )
        >>> results[0].source_id
        'support-desk-open_tickets'
    """

    def __init__(
        self,
        registry: ConnectorRegistry | None = None,
        credential_store: CredentialStore | None = None,
        config: ConfigLoader | None = None,
    ):
        """Initialize the aggregator.

        Args:
            registry: Connector registry (the default registry if None)
            credential_store: Credential store used during resolution
            config: Config loader for timeouts and HTTP settings
        """
        self.config = config or ConfigLoader()
        self.registry = registry or get_registry()
        self.credential_store = credential_store or CredentialStore(config=self.config)
        self.source_timeout = self.config.get_aggregator_config()["source_timeout"]
        self.connect_timeout = self.config.get_mcp_config()["connect_timeout"]

    async def gather_context(
        self,
        sources: Sequence[Any],
        runtime_params: Mapping[str, Any] | None = None,
    ) -> list[AdapterResult]:
        """Fetch every source concurrently.

        Args:
            sources: Raw source mappings or parsed OperatorSource objects
            runtime_params: Params that override every source's own params

        Returns:
            One AdapterResult per source, in input order
        """
        self.registry.load()

        duplicates = find_duplicate_ids(sources)
        tasks = [
            self._reject_duplicate(raw) if index in duplicates else self._run_unit(raw, runtime_params)
            for index, raw in enumerate(sources)
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: list[AdapterResult] = []
        for raw, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                source_id, source_name = fallback_identity(raw)
                if isinstance(outcome, ContractViolationError):
                    logger.error("connector_contract_violation", source_id=source_id, error=str(outcome))
                else:
                    logger.warning("source_failed", source_id=source_id, error=describe_error(outcome))
                results.append(AdapterResult.failure(source_id, source_name, outcome))
            else:
                results.append(outcome)

        failed = sum(1 for r in results if not r.success)
        logger.info("context_gathered", total=len(results), failed=failed)
        return results

    async def _reject_duplicate(self, raw: Any) -> AdapterResult:
        raise DuplicateSourceError(parse_source(raw).effective_id)

    async def _run_unit(self, raw: Any, runtime_params: Mapping[str, Any] | None) -> AdapterResult:
        # Each unit runs in its own task, so the binding stays local to it
        bind_context(source_id=fallback_identity(raw)[0])
        if self.source_timeout:
            try:
                return await asyncio.wait_for(
                    self._execute(raw, runtime_params), timeout=float(self.source_timeout)
                )
            except TimeoutError as e:
                raise TransportError(f"Source timed out after {self.source_timeout}s") from e
        return await self._execute(raw, runtime_params)

    async def _execute(self, raw: Any, runtime_params: Mapping[str, Any] | None) -> AdapterResult:
        source: OperatorSource = parse_source(raw)

        match source:
            case ConnectorSource():
                context = resolve_source(
                    source,
                    runtime_params,
                    registry=self.registry,
                    credential_store=self.credential_store,
                )
                match context.connector.type:
                    case "mcp":
                        return await execute_mcp_fetch(context, connect_timeout=self.connect_timeout)
                    case "api":
                        return await execute_api_fetch(context, config=self.config)
                    case other:
                        raise ContractViolationError(
                            f"Connector {context.connector.id} has unsupported type {other!r}"
                        )
            case LegacySource():
                return await execute_legacy_source(source, connect_timeout=self.connect_timeout)


async def gather_context(
    sources: Sequence[Any],
    runtime_params: Mapping[str, Any] | None = None,
    *,
    registry: ConnectorRegistry | None = None,
) -> list[AdapterResult]:
    """Gather context with a one-off aggregator over the given (or default) registry."""
    return await ContextAggregator(registry=registry).gather_context(sources, runtime_params)
