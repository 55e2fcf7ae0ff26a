"""Exceptions raised by the connector engine."""


class ConnectorError(Exception):
    """Base exception for connector resolution and execution."""


class ConnectorDefinitionError(ConnectorError, ValueError):
    """A connector definition is malformed or violates its invariants."""


class InvalidSourceError(ConnectorError, ValueError):
    """A source reference matches neither the connector nor the legacy shape."""


class DuplicateSourceError(InvalidSourceError):
    """Two sources in one batch share an effective source id."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Duplicate source ID: {source_id}")


class UnknownConnectorError(ConnectorError):
    """The referenced connector id is not registered."""

    def __init__(self, connector_id: str, known_ids: list[str]):
        self.connector_id = connector_id
        self.known_ids = known_ids
        super().__init__(
            f"Unknown connector: {connector_id}. "
            f"Available connectors: {', '.join(known_ids) or 'none'}"
        )


class UnknownFetchError(ConnectorError):
    """The referenced fetch operation does not exist on the connector."""

    def __init__(self, connector_id: str, fetch_name: str, known_fetches: list[str]):
        self.connector_id = connector_id
        self.fetch_name = fetch_name
        self.known_fetches = known_fetches
        super().__init__(
            f"Unknown fetch operation: {fetch_name} for connector {connector_id}. "
            f"Available fetches: {', '.join(known_fetches) or 'none'}"
        )


class InvalidParamsError(ConnectorError):
    """One or more required parameters are missing after merging."""

    def __init__(self, connector_id: str, fetch_name: str, missing: list[str]):
        self.connector_id = connector_id
        self.fetch_name = fetch_name
        self.missing = missing
        details = ", ".join(f"Missing required parameter: {key}" for key in missing)
        super().__init__(f"Invalid params for {connector_id}.{fetch_name}: {details}")


class ContractViolationError(ConnectorError):
    """An adapter was handed a context it cannot execute.

    Signals a malformed definition that slipped past registry validation,
    not a runtime data problem.
    """


class TransportError(ConnectorError):
    """A subprocess or HTTP transport step failed."""


def describe_error(error: BaseException) -> str:
    """Human-readable message, unwrapping task-group exception groups."""
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return str(error) or type(error).__name__
