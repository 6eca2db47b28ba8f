"""Command line interface for policy-driven requests.

Usage:
    guardedfetch get https://example.org/data.json --json
    guardedfetch resolve https://api.example.com/x --config ./guardedfetch.yaml
    guardedfetch settings show
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer

from .client import HttpClient
from .errors import GuardedFetchError, StructuredError
from .logging_config import setup_logging
from .network.resolver import get_network_settings
from .settings import Configuration, load_configuration

logger = logging.getLogger(__name__)

app = typer.Typer(help="Policy-driven HTTP requests", no_args_is_help=True)
settings_app = typer.Typer(help="Inspect the effective configuration")
app.add_typer(settings_app, name="settings")

ConfigOption = typer.Option(None, "--config", "-c", help="YAML configuration file")


def _load(config_path: Optional[Path]) -> Configuration:
    try:
        configuration = load_configuration(config_path)
    except GuardedFetchError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(2)
    setup_logging(configuration.logging)
    return configuration


def _fail(exc: GuardedFetchError) -> None:
    if isinstance(exc, StructuredError):
        typer.echo(exc.format_for_display(), err=True)
    else:
        typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


async def _fetch(target: str, configuration: Configuration, as_json: bool) -> Any:
    async with HttpClient() as client:
        return await client.get(target, configuration=configuration, json_response=as_json)


@app.command()
def get(
    target: str = typer.Argument(..., help="URL to fetch"),
    config_path: Optional[Path] = ConfigOption,
    as_json: bool = typer.Option(False, "--json", help="Decode and pretty-print a JSON body"),
) -> None:
    """Fetch TARGET under the configured network policy and print the body."""
    configuration = _load(config_path)
    try:
        body = asyncio.run(_fetch(target, configuration, as_json))
    except GuardedFetchError as exc:
        _fail(exc)
        return
    except json.JSONDecodeError as exc:
        typer.echo(f"Error: response is not valid JSON ({exc})", err=True)
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(body, indent=2))
    else:
        typer.echo(body, nl=False)


@app.command()
def resolve(
    target: str = typer.Argument(..., help="URL whose policy should be resolved"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Print the network policy resolved for TARGET as JSON."""
    configuration = _load(config_path)
    policy = get_network_settings(target, configuration)
    typer.echo(
        json.dumps(
            {
                "enable_network": policy.enable_network,
                "ca_file_path": str(policy.ca_file_path) if policy.ca_file_path else None,
                "http_proxy": policy.http_proxy,
                "https_proxy": policy.https_proxy,
            },
            indent=2,
        )
    )


@settings_app.command("show")
def settings_show(config_path: Optional[Path] = ConfigOption) -> None:
    """Display the effective configuration as JSON."""
    configuration = _load(config_path)
    payload = configuration.model_dump(mode="json")
    payload["config_hash"] = configuration.config_hash()
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def main() -> None:  # pragma: no cover - console entry point
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
