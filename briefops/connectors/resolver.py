"""
Source resolution: turn a connector source reference into an ExecutionContext.

Steps: look up connector and fetch, resolve credentials, merge params
(defaults < source params < runtime params), validate required params and
derive the source identity.
"""
from typing import Any, Dict, List, Mapping, Optional

from briefops.utils.logger import LogCategory, get_logger

from .credentials import CredentialStore
from .errors import InvalidParamsError, UnknownConnectorError, UnknownFetchError
from .registry import ConnectorRegistry, get_registry
from .templates import resolve_templates
from .types import ConnectorSource, ExecutionContext, FetchDefinition

logger = get_logger(__name__, category=LogCategory.AGGREGATOR)


def merge_params(fetch: FetchDefinition, *layers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge fetch defaults with caller-supplied layers, later layers winning.

    Args:
        fetch: Fetch definition providing parameter defaults
        *layers: Parameter maps applied in order (None entries are skipped)

    Returns:
        Merged parameter dict
    """
    merged: Dict[str, Any] = {
        name: definition.default
        for name, definition in fetch.params.items()
        if definition.has_default
    }
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def validate_params(fetch: FetchDefinition, params: Mapping[str, Any]) -> List[str]:
    """Return the names of required params missing from ``params``.

    Only presence is checked: a falsy value still satisfies the requirement.
    """
    return [
        name
        for name, definition in fetch.params.items()
        if definition.required and name not in params
    ]


def resolve_source(
    source: ConnectorSource,
    runtime_params: Optional[Mapping[str, Any]] = None,
    *,
    registry: Optional[ConnectorRegistry] = None,
    credential_store: Optional[CredentialStore] = None,
) -> ExecutionContext:
    """
    Resolve a connector source reference into an execution context.

    When ``runtime_params`` is given, the merged params are passed through the
    template resolver with the runtime params as the ``params`` scope, so a
    static param like ``"{{params.since}}"`` picks up a value supplied at run
    time.

    Args:
        source: Connector-based source reference
        runtime_params: Parameters supplied for this run, overriding all others
        registry: Registry to look the connector up in (default registry if None)
        credential_store: Store used to resolve credentials

    Returns:
        Immutable ExecutionContext

    Raises:
        UnknownConnectorError: Connector id not registered
        UnknownFetchError: Fetch name not defined on the connector
        InvalidParamsError: Required params missing after merging (all listed)
    """
    registry = registry or get_registry()
    credential_store = credential_store or CredentialStore()

    connector = registry.get(source.connector)
    if connector is None:
        raise UnknownConnectorError(source.connector, registry.list_ids())

    fetch = connector.fetches.get(source.fetch)
    if fetch is None:
        raise UnknownFetchError(source.connector, source.fetch, list(connector.fetches))

    credentials = credential_store.resolve_credentials(connector)

    params = merge_params(fetch, source.params, runtime_params)
    if runtime_params is not None:
        params = resolve_templates(params, credentials, runtime_params)

    missing = validate_params(fetch, params)
    if missing:
        raise InvalidParamsError(source.connector, source.fetch, missing)

    source_id = source.effective_id
    source_name = source.name or f"{connector.name} {fetch.description or source.fetch}"

    logger.debug("source_resolved", source_id=source_id, connector=connector.id, fetch=source.fetch)

    return ExecutionContext(
        connector=connector,
        fetch=fetch,
        fetch_name=source.fetch,
        credentials=credentials,
        params=params,
        source_id=source_id,
        source_name=source_name,
    )
