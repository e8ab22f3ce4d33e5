"""apiauth CLI - sign and send requests, run the echo service."""

import asyncio
import json
import sys
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import click
from rich.console import Console
from rich.table import Table

from apiauth.client.consumer import Consumer
from apiauth.client.signer import Credential, CredentialKind, Signer
from apiauth.common.errors import ConfigurationError, TransportError
from apiauth.common.settings import Settings

console = Console()

P = ParamSpec("P")
R = TypeVar("R")


def async_command(f: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, R]:
    """Decorator to run async commands."""

    @wraps(f)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def _parse_params(values: tuple[str, ...]) -> dict[str, str] | None:
    params: dict[str, str] = {}
    for item in values:
        if "=" not in item:
            raise click.BadParameter(f"Expected key=value, got {item!r}", param_hint="--param")
        key, value = item.split("=", 1)
        params[key] = value
    return params or None


def _parse_data(data: str | None) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except ValueError:
        return data


def request_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by commands that build a request."""
    f = click.option("--data", "-d", help="Request body (JSON or raw text)")(f)
    f = click.option("--param", "-p", "params", multiple=True, help="Query parameter key=value")(f)
    f = click.option("--header", "-H", "headers", multiple=True, help="Extra header Name:Value")(f)
    return f


def _parse_headers(values: tuple[str, ...]) -> dict[str, str] | None:
    headers: dict[str, str] = {}
    for item in values:
        if ":" not in item:
            raise click.BadParameter(f"Expected Name:Value, got {item!r}", param_hint="--header")
        name, value = item.split(":", 1)
        headers[name.strip()] = value.strip()
    return headers or None


@click.group()
@click.option("--base-url", default=None, help="Service base URL")
@click.option("--secret", default=None, help="Credential secret (HMAC key, user:pass or token)")
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in CredentialKind]),
    default=None,
    help="Credential kind",
)
@click.option("--algorithm", default=None, help="HMAC hash algorithm")
@click.pass_context
def cli(
    ctx: click.Context,
    base_url: str | None,
    secret: str | None,
    kind: str | None,
    algorithm: str | None,
) -> None:
    """apiauth CLI - Sign requests and talk to HMAC-protected services."""
    settings = Settings()
    kind = kind or settings.credential_kind
    secret = secret or settings.credential_secret

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["base_url"] = (base_url or settings.base_url).rstrip("/")
    ctx.obj["credential"] = Credential.from_config(kind, secret)
    ctx.obj["algorithm"] = algorithm or settings.hmac_algorithm
    ctx.obj["timeout"] = settings.http_timeout


@cli.command("sign")
@click.argument("method")
@click.argument("path")
@request_options
@click.pass_context
def sign_command(
    ctx: click.Context,
    method: str,
    path: str,
    data: str | None,
    params: tuple[str, ...],
    headers: tuple[str, ...],
) -> None:
    """Print the headers a signed request would carry."""
    try:
        signer = Signer(
            ctx.obj["credential"],
            base_url=ctx.obj["base_url"],
            algorithm=ctx.obj["algorithm"],
        )
    except ConfigurationError as exc:
        console.print(f"[red]Error: {exc.reason}[/red]")
        sys.exit(1)

    signed = signer.sign(
        method,
        path,
        _parse_data(data),
        _parse_params(params),
        _parse_headers(headers),
    )

    console.print(f"[bold]{signed.method}[/bold] {signed.url}")
    if signed.canonical is not None:
        console.print(f"Canonical: [cyan]{signed.canonical}[/cyan]")
    elif ctx.obj["credential"] is None:
        console.print("[yellow]No credential configured; request is unsigned[/yellow]")

    table = Table(title="Headers")
    table.add_column("Header", style="green")
    table.add_column("Value")
    for name, value in signed.headers.items():
        table.add_row(name, value)
    console.print(table)


@cli.command("request")
@click.argument("method")
@click.argument("path")
@request_options
@click.pass_context
@async_command
async def request_command(
    ctx: click.Context,
    method: str,
    path: str,
    data: str | None,
    params: tuple[str, ...],
    headers: tuple[str, ...],
) -> None:
    """Sign and send a request, then print the response."""
    try:
        consumer = Consumer(
            ctx.obj["base_url"],
            credential=ctx.obj["credential"],
            timeout=ctx.obj["timeout"],
            algorithm=ctx.obj["algorithm"],
        )
    except ConfigurationError as exc:
        console.print(f"[red]Error: {exc.reason}[/red]")
        sys.exit(1)

    async with consumer:
        try:
            response = await consumer.request(
                method,
                path,
                _parse_data(data),
                _parse_params(params),
                _parse_headers(headers),
            )
        except TransportError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)

    style = "green" if response.ok else "red"
    console.print(f"[{style}]HTTP {response.status_code}[/{style}]")
    if isinstance(response.body, (dict, list)):
        console.print_json(data=response.body)
    elif response.body:
        console.print(response.body)

    if not response.ok:
        sys.exit(1)


@cli.command("serve")
@click.option("--host", default=None, help="Bind host")
@click.option("--port", type=int, default=None, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the HMAC-protected echo service."""
    from apiauth.server.main import main as run_echo

    settings: Settings = ctx.obj["settings"]
    overrides: dict[str, Any] = {}
    if host:
        overrides["service_host"] = host
    if port:
        overrides["service_port"] = port
    run_echo(settings.model_copy(update=overrides))


def main() -> None:
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
