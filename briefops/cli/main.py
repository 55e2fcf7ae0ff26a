"""
briefops CLI - Main command-line interface.

Provides commands for:
- Listing and inspecting connectors
- Managing connector credentials
- Gathering context and generating briefings for an operator
- Discovering and registering MCP servers as connectors
"""

import asyncio
import json
import os
import sys
from typing import Dict, Optional, Tuple

import click
import yaml

from briefops.briefing import BriefingError, generate_briefing
from briefops.connectors import (
    ConnectorDefinitionError,
    ConnectorRegistry,
    CredentialStore,
    check_package_exists,
    discover_mcp_server,
    generate_connector_definition,
    save_connector_definition,
)
from briefops.context import ContextAggregator
from briefops.core import ConfigLoader, OperatorConfigError, load_operator
from briefops.utils.logger import bind_context, clear_context, configure_logging


def get_version() -> str:
    """Get briefops version."""
    try:
        from briefops import __version__

        return __version__
    except ImportError:
        return "unknown"


def parse_pairs(pairs: Tuple[str, ...], option: str, typed: bool = True) -> Dict[str, object]:
    """Parse ``KEY=VALUE`` arguments; typed values are read as YAML scalars."""
    parsed: Dict[str, object] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint=option)
        if not typed or not value:
            parsed[key] = value
            continue
        try:
            parsed[key] = yaml.safe_load(value)
        except yaml.YAMLError:
            parsed[key] = value
    return parsed


def suggest_connector_id(package_name: str) -> str:
    """``@modelcontextprotocol/server-slack`` -> ``slack``."""
    name = package_name.split("/")[-1].lower()
    for prefix in ("server-", "mcp-"):
        if name.startswith(prefix):
            name = name[len(prefix):]
            break
    for suffix in ("-server", "-mcp"):
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name


@click.group()
@click.version_option(version=get_version(), prog_name="briefops")
@click.option("--config", "config_path", type=click.Path(), default=None, help="Path to briefops.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """
    briefops - Connector-driven operator briefings

    Gather context from declarative connectors and turn it into a briefing.

    \b
    Quick Start:
      briefops connectors                        # List available connectors
      briefops credentials set support-desk token=xyz
      briefops gather operator.yaml              # Print gathered context as JSON
      briefops brief operator.yaml               # Generate a briefing
    """
    if verbose:
        configure_logging(level="DEBUG")
    clear_context()
    ctx.obj = ConfigLoader(config_path)


def _registry(config: ConfigLoader) -> ConnectorRegistry:
    registry = ConnectorRegistry(config=config)
    registry.load()
    return registry


@cli.command("connectors")
@click.option("--verbose", "-v", is_flag=True, help="Show fetch operations and source files")
@click.pass_obj
def list_connectors(config: ConfigLoader, verbose: bool):
    """
    List registered connectors.

    \b
    Examples:
      briefops connectors           # One line per connector
      briefops connectors -v        # Include fetches and file paths
    """
    registry = _registry(config)
    connectors = registry.list()
    if not connectors:
        click.echo("No connectors found. Searched:")
        for path in registry.get_search_paths():
            click.echo(f"  {path}")
        return

    for connector in connectors:
        click.echo(f"{click.style(connector.id, fg='cyan', bold=True)}  {connector.name} ({connector.type})")
        if verbose:
            click.echo(f"  File: {registry.source_path(connector.id)}")
            for name, fetch in connector.fetches.items():
                click.echo(f"  - {name}: {fetch.description or fetch.tool or fetch.endpoint}")


@cli.command("show")
@click.argument("connector_id")
@click.pass_obj
def show(config: ConfigLoader, connector_id: str):
    """Print a connector definition as YAML."""
    connector = _registry(config).get(connector_id)
    if connector is None:
        click.echo(f"Error: Unknown connector '{connector_id}'", err=True)
        sys.exit(1)
    click.echo(yaml.safe_dump(connector.to_dict(), sort_keys=False, default_flow_style=False))


@cli.group("credentials")
def credentials():
    """Manage stored connector credentials."""


@credentials.command("set")
@click.argument("connector_id")
@click.argument("pairs", nargs=-1, required=True)
@click.pass_obj
def credentials_set(config: ConfigLoader, connector_id: str, pairs: Tuple[str, ...]):
    """
    Store credentials for a connector.

    \b
    Examples:
      briefops credentials set support-desk token=xyz
      briefops credentials set gong accessKey=ak accessKeySecret=sk
    """
    values = parse_pairs(pairs, "PAIRS", typed=False)
    try:
        path = CredentialStore(config=config).save_credentials(connector_id, values)
    except (OSError, ValueError) as e:
        click.echo(f"Error saving credentials: {e}", err=True)
        sys.exit(1)
    click.echo(click.style(f"Saved {len(values)} credential(s) to {path}", fg="green"))


@credentials.command("delete")
@click.argument("connector_id")
@click.pass_obj
def credentials_delete(config: ConfigLoader, connector_id: str):
    """Delete stored credentials for a connector."""
    try:
        deleted = CredentialStore(config=config).delete_credentials(connector_id)
    except (OSError, ValueError) as e:
        click.echo(f"Error deleting credentials: {e}", err=True)
        sys.exit(1)
    if deleted:
        click.echo(f"Deleted credentials for {connector_id}")
    else:
        click.echo(f"No stored credentials for {connector_id}")


def _load_operator_or_exit(operator: str):
    try:
        operator_config = load_operator(operator)
    except OperatorConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    bind_context(operator_id=operator_config.id)
    return operator_config


def _gather(config: ConfigLoader, operator, runtime_params):
    aggregator = ContextAggregator(registry=_registry(config), config=config)
    results = asyncio.run(aggregator.gather_context(operator.sources, runtime_params or None))

    failed = [r for r in results if not r.success]
    if failed:
        click.echo(click.style(f"Warning: {len(failed)} source(s) failed:", fg="yellow"), err=True)
        for result in failed:
            click.echo(f"  - {result.source_name}: {result.error}", err=True)
    return results


@cli.command("gather")
@click.argument("operator")
@click.option("--param", "-p", "params", multiple=True, help="Runtime param KEY=VALUE (repeatable)")
@click.pass_obj
def gather(config: ConfigLoader, operator: str, params: Tuple[str, ...]):
    """
    Gather context for an operator and print the records as JSON.

    \b
    Examples:
      briefops gather operator.yaml
      briefops gather support-lead -p days_back=30
    """
    operator_config = _load_operator_or_exit(operator)
    results = _gather(config, operator_config, parse_pairs(params, "--param"))
    click.echo(json.dumps([r.to_dict() for r in results], indent=2, default=str))


@cli.command("brief")
@click.argument("operator")
@click.option("--task", "-t", "task_key", default=None, help="Task to run (default task if omitted)")
@click.option("--param", "-p", "params", multiple=True, help="Runtime param KEY=VALUE (repeatable)")
@click.pass_obj
def brief(config: ConfigLoader, operator: str, task_key: Optional[str], params: Tuple[str, ...]):
    """
    Gather context for an operator and generate a briefing.

    \b
    Examples:
      briefops brief operator.yaml
      briefops brief support-lead --task weekly
    """
    operator_config = _load_operator_or_exit(operator)

    if task_key:
        try:
            prompt = operator_config.get_task(task_key).prompt
        except OperatorConfigError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    else:
        task = operator_config.default_task()
        prompt = task.prompt if task else operator_config.briefing_prompt

    results = _gather(config, operator_config, parse_pairs(params, "--param"))

    try:
        briefing = asyncio.run(generate_briefing(results, prompt, config=config))
    except BriefingError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(briefing.content)


@cli.command("discover")
@click.argument("package")
@click.option("--env", "-e", "env_pairs", multiple=True, help="Server env VAR=VALUE (repeatable)")
def discover(package: str, env_pairs: Tuple[str, ...]):
    """
    Start an MCP server package and list its tools.

    \b
    Examples:
      briefops discover @modelcontextprotocol/server-everything
    """
    env = parse_pairs(env_pairs, "--env", typed=False)
    result = asyncio.run(discover_mcp_server(package, env))

    if not result.success:
        click.echo(f"Error: Failed to connect: {result.error}", err=True)
        if result.required_env_vars:
            click.echo("The server may require these environment variables:", err=True)
            for var in result.required_env_vars:
                click.echo(f"  - {var}", err=True)
        sys.exit(1)

    click.echo(click.style(f"{package}: {len(result.tools)} tool(s)", fg="green", bold=True))
    for tool in result.tools:
        click.echo(f"  {click.style(tool.name, fg='cyan')}  {tool.description or ''}")


@cli.command("register")
@click.argument("package")
@click.option("--id", "connector_id", default=None, help="Connector id (derived from the package if omitted)")
@click.option("--env", "-e", "env_vars", multiple=True, help="Env var the server needs (repeatable)")
@click.option("--yes", "-y", is_flag=True, help="Never prompt; read credentials from the environment")
@click.pass_obj
def register(config: ConfigLoader, package: str, connector_id: Optional[str], env_vars: Tuple[str, ...], yes: bool):
    """
    Register an npm MCP server package as a connector.

    Discovers the server's tools, asks for any credentials it needs, stores them and
    writes a connector definition to the local connectors directory.

    \b
    Examples:
      briefops register @modelcontextprotocol/server-slack
      briefops register @acme/mcp-crm --id crm -e CRM_API_KEY
    """
    connector_id = connector_id or suggest_connector_id(package)
    interactive = sys.stdin.isatty() and not yes

    if not asyncio.run(check_package_exists(package)):
        click.echo(f"Error: Package not found: {package}", err=True)
        sys.exit(1)
    click.echo(f"Found {package}")

    def collect(names) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for name in names:
            value = os.environ.get(name)
            if not value and interactive:
                value = click.prompt(name, hide_input=True, default="", show_default=False)
            if value:
                values[name] = value
        return values

    credentials = collect(env_vars)
    result = asyncio.run(discover_mcp_server(package, credentials))

    if not result.success and result.required_env_vars:
        missing = [var for var in result.required_env_vars if var not in credentials]
        if missing and not interactive and not all(os.environ.get(var) for var in missing):
            click.echo("Error: Credentials required but running non-interactively:", err=True)
            for var in missing:
                click.echo(f"  - {var}", err=True)
            sys.exit(1)
        credentials.update(collect(missing))
        result = asyncio.run(discover_mcp_server(package, credentials))

    if not result.success:
        click.echo(f"Error: Failed to connect: {result.error}", err=True)
        sys.exit(1)

    try:
        connector = generate_connector_definition(connector_id, package, result.tools, list(credentials))
    except ConnectorDefinitionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if credentials:
        CredentialStore(config=config).save_credentials(connector_id, credentials)
    path = save_connector_definition(connector, config)

    click.echo(click.style(f"Registered {connector_id} with {len(connector.fetches)} fetch(es)", fg="green", bold=True))
    click.echo(f"  Definition: {path}")


@cli.command("config")
@click.pass_obj
def show_config(config: ConfigLoader):
    """Show the resolved configuration and search paths."""
    click.echo(click.style("Current Configuration:", fg="cyan", bold=True))
    click.echo(f"Config file: {config.config_path or 'none (defaults)'}")
    click.echo(f"Home: {config.home_dir()}")
    click.echo(f"Credentials: {config.get_credentials_dir()}")
    click.echo()

    click.echo("Connector search paths:")
    for path in ConnectorRegistry(config=config).get_search_paths():
        marker = "" if path.is_dir() else " (missing)"
        click.echo(f"  {path}{marker}")
    click.echo()

    http = config.get_http_config()
    click.echo("HTTP:")
    click.echo(f"  timeout: {http['timeout']}s, max_retries: {http['max_retries']}")
    llm = config.get_llm_config()
    click.echo("LLM:")
    click.echo(f"  model: {llm['model']}")
    click.echo(f"  api_key: {llm['api_key'][:8] + '...' if llm['api_key'] else 'Not set'}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
