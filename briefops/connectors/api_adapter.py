"""
API adapter: executes fetch operations for HTTP-based connectors.

Endpoints are written as ``"METHOD /path"`` in the connector definition.
Mutating methods send the fetch's body template as JSON; GET requests send
the params as a query string instead.
"""
import asyncio
import base64
import json
from typing import Any, Dict, Mapping, Optional, Tuple

import aiohttp

from briefops.core.config_loader import ConfigLoader
from briefops.utils.logger import LogCategory, get_logger

from .errors import ContractViolationError, TransportError, describe_error
from .templates import find_unresolved, resolve_mapping, resolve_template, resolve_templates, stringify
from .types import AdapterResult, APIAuth, ExecutionContext

logger = get_logger(__name__, category=LogCategory.ADAPTERS)

BODY_METHODS = ("POST", "PUT", "PATCH")
ERROR_BODY_LIMIT = 500


def parse_endpoint(endpoint: str) -> Tuple[str, str]:
    """
    Split an endpoint string into method and path.

    Example:
        >>> parse_endpoint("POST /calls")
        ('POST', '/calls')
        >>> parse_endpoint("/tickets")
        ('GET', '/tickets')
    """
    parts = endpoint.strip().split()
    if len(parts) >= 2:
        return parts[0].upper(), parts[1]
    return "GET", parts[0] if parts else "/"


def build_auth_headers(
    auth: APIAuth,
    credentials: Mapping[str, str],
    params: Mapping[str, Any],
) -> Dict[str, str]:
    """Build the auth header for basic/token auth; ``none`` adds nothing."""
    header_name = auth.header or "Authorization"

    if auth.type == "basic":
        username = resolve_template(auth.username, credentials, params) if auth.username else ""
        password = resolve_template(auth.password, credentials, params) if auth.password else ""
        encoded = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        return {header_name: f"Basic {encoded}"}

    if auth.type == "token":
        token = resolve_template(auth.token, credentials, params) if auth.token else ""
        return {header_name: f"Bearer {token}"}

    return {}


def build_query(params: Mapping[str, Any]) -> Dict[str, str]:
    """Query string params for GET requests; None values are skipped."""
    return {key: stringify(value) for key, value in params.items() if value is not None}


def _find_unresolved_auth(
    auth: APIAuth,
    credentials: Mapping[str, str],
    params: Mapping[str, Any],
) -> list:
    # The basic header is base64-encoded, so check the inputs rather than the header
    templates = [t for t in (auth.username, auth.password) if t] if auth.type == "basic" else []
    return find_unresolved([resolve_template(t, credentials, params) for t in templates])


def _retry_delay(response: aiohttp.ClientResponse, attempt: int, base: float, cap: float) -> float:
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return min(max(float(retry_after), 0.0), cap)
        except ValueError:
            pass
    return min(base * (2 ** attempt), cap)


async def _send(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    headers: Dict[str, str],
    query: Optional[Dict[str, str]],
    body: Optional[str],
    timeout: float,
    max_retries: int,
    backoff_base: float,
    backoff_max: float,
) -> Any:
    """Send one request, retrying only on 429 with bounded backoff.

    Returns the decoded JSON body. Any other outcome, including an empty
    2xx body, raises TransportError.
    """
    attempt = 0
    while True:
        async with session.request(
            method,
            url,
            headers=headers,
            params=query,
            data=body,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            if response.status == 429 and attempt < max_retries:
                delay = _retry_delay(response, attempt, backoff_base, backoff_max)
                logger.warning("api_rate_limited", url=url, attempt=attempt + 1, delay=delay)
                attempt += 1
                await asyncio.sleep(delay)
                continue

            if not 200 <= response.status < 300:
                error_text = await response.text()
                raise TransportError(
                    f"API request failed: {response.status} {response.reason or ''} - "
                    f"{error_text[:ERROR_BODY_LIMIT]}"
                )

            text = await response.text()
            if not text.strip():
                raise TransportError(f"Empty response body from {url} ({response.status})")
            try:
                return json.loads(text)
            except ValueError as e:
                raise TransportError(f"Invalid JSON in response from {url}: {e}") from e


async def execute_api_fetch(
    context: ExecutionContext,
    *,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    config: Optional[ConfigLoader] = None,
) -> AdapterResult:
    """
    Execute an API fetch operation.

    Args:
        context: Resolved execution context for an api connector
        session: Shared aiohttp session (left open); a private one is used if None
        timeout: Total request timeout in seconds
        max_retries: Retries allowed on 429 responses
        config: Config loader supplying HTTP defaults

    Returns:
        AdapterResult with the decoded JSON body, or with ``error`` on failure

    Raises:
        ContractViolationError: If the context is not for an api connector
            or the fetch has no ``endpoint``.
    """
    connector, fetch = context.connector, context.fetch

    if connector.type != "api" or connector.api is None:
        raise ContractViolationError(f"Connector {connector.id} is not an API connector")
    if not fetch.endpoint:
        raise ContractViolationError(
            f"Fetch operation {context.fetch_name} for connector {connector.id} missing 'endpoint' field"
        )

    http_config = (config or ConfigLoader()).get_http_config()
    timeout = timeout if timeout is not None else http_config["timeout"]
    max_retries = max_retries if max_retries is not None else http_config["max_retries"]

    credentials = context.credentials
    # Param values may carry date helpers from their defaults
    params = resolve_templates(dict(context.params), credentials, context.params)
    api = connector.api

    method, path = parse_endpoint(fetch.endpoint)
    url = resolve_template(f"{api.base_url.rstrip('/')}{path}", credentials, params)

    headers = {"Content-Type": "application/json"}
    headers.update(build_auth_headers(api.auth, credentials, params))
    headers.update(resolve_mapping(api.headers, credentials, params))

    body: Optional[str] = None
    query: Optional[Dict[str, str]] = None
    resolved_body: Any = None
    if method in BODY_METHODS and fetch.body is not None:
        resolved_body = resolve_templates(fetch.body, credentials, params)
        body = json.dumps(resolved_body)
    elif method == "GET" and params:
        query = build_query(params)

    unresolved = find_unresolved([url, headers, query or {}, resolved_body])
    unresolved += _find_unresolved_auth(api.auth, credentials, params)
    if unresolved:
        return AdapterResult.failure(
            context.source_id,
            context.source_name,
            f"Unresolved template placeholders in request: {', '.join(dict.fromkeys(unresolved))}",
        )

    logger.info("api_fetch", source_id=context.source_id, method=method, url=url)
    owns_session = session is None
    try:
        if owns_session:
            session = aiohttp.ClientSession()
        data = await _send(
            session, method, url,
            headers=headers, query=query, body=body, timeout=timeout,
            max_retries=max_retries,
            backoff_base=http_config["backoff_base"],
            backoff_max=http_config["backoff_max"],
        )
    except Exception as e:
        logger.warning("api_fetch_failed", source_id=context.source_id, url=url, error=describe_error(e))
        return AdapterResult.failure(context.source_id, context.source_name, e)
    finally:
        if owns_session and session is not None:
            await session.close()

    return AdapterResult(source_id=context.source_id, source_name=context.source_name, data=data)
