"""CLI commands for sending requests through the resilient dispatcher."""

import asyncio
import json
from typing import Optional

import click
from tabulate import tabulate

from expense_gateway.dispatcher import RequestDispatcher
from expense_gateway.errors import DispatchCancelled, DispatchError
from expense_gateway.observability.logging import init_logging
from expense_gateway.observability.metrics import init_metrics, render_metrics
from expense_gateway.observability.tracing import init_tracing
from expense_gateway.schemas.dispatch import DispatchResponse, RequestDescriptor
from expense_gateway.security.tokens import InMemoryTokenProvider
from expense_gateway.settings import get_settings


def _build_dispatcher(base_url: Optional[str], token: Optional[str]) -> RequestDispatcher:
    settings = get_settings()
    if base_url:
        settings = settings.model_copy(update={"API_BASE_URL": base_url})
    return RequestDispatcher.from_settings(settings, token_provider=InMemoryTokenProvider(token))


def _origin(response: DispatchResponse) -> str:
    if response.fallback:
        return "fallback"
    if response.from_cache:
        return f"cache ({response.cache_age:.1f}s old)"
    return "live"


def _stats_tables(stats: dict) -> str:
    circuits = [
        [endpoint, c["state"], c["failure_count"]]
        for endpoint, c in stats["circuit_breakers"].items()
    ]
    windows = [
        [endpoint, w["count"], "yes" if w["has_last_response"] else "no"]
        for endpoint, w in stats["throttle"].items()
    ]
    cache = stats["cache"]
    return "\n".join([
        tabulate(circuits, headers=["Endpoint", "Circuit", "Failures"], tablefmt="grid"),
        tabulate(windows, headers=["Endpoint", "Window Count", "Last Response"], tablefmt="grid"),
        f"Cache: {cache['valid_entries']}/{cache['entries']} valid entries (ttl {cache['ttl']:.0f}s)",
    ])


@click.group()
@click.option('--base-url', envvar='API_BASE_URL', help='API base URL')
@click.option('--token', envvar='EXPENSE_GATEWAY_TOKEN', help='Bearer token for the API')
@click.option('--log-level', default=None, help='Log level (defaults to LOG_LEVEL)')
@click.pass_context
def gateway(ctx: click.Context, base_url: Optional[str], token: Optional[str], log_level: Optional[str]):
    """Resilient expense API gateway commands."""
    settings = get_settings()
    init_logging(log_level or settings.LOG_LEVEL, log_to_files=settings.LOG_TO_FILES)
    init_tracing(
        settings.OTEL_SERVICE_NAME or settings.SERVICE_NAME,
        endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
        headers=settings.OTEL_EXPORTER_OTLP_HEADERS,
    )
    init_metrics()
    ctx.obj = {"base_url": base_url, "token": token}


@gateway.command()
@click.argument('method', type=click.Choice(["GET", "POST", "PUT", "PATCH", "DELETE"], case_sensitive=False))
@click.argument('path')
@click.option('--data', help='Request body as JSON string')
@click.option('--timeout', type=float, help='Give up after this many seconds')
@click.pass_obj
def request(obj: dict, method: str, path: str, data: Optional[str], timeout: Optional[float]):
    """Send one request and print the response."""
    try:
        body = json.loads(data) if data else None
    except json.JSONDecodeError:
        raise click.BadParameter("Invalid JSON data provided", param_hint="--data")

    async def run() -> int:
        async with _build_dispatcher(obj["base_url"], obj["token"]) as dispatcher:
            try:
                response = await dispatcher.dispatch(
                    RequestDescriptor(method=method, path=path, body=body),
                    timeout=timeout,
                )
            except DispatchError as e:
                click.echo(f"❌ {e.kind.value}: {e.user_message}", err=True)
                click.echo(json.dumps(e.to_dict(), indent=2), err=True)
                return 1
            except DispatchCancelled:
                click.echo(f"❌ Gave up after {timeout}s", err=True)
                return 1

            click.echo(f"✅ {response.status} {response.status_text} [{_origin(response)}]")
            click.echo(json.dumps(response.to_dict(), indent=2, default=str))
            return 0

    exit_code = asyncio.run(run())
    if exit_code:
        raise SystemExit(exit_code)


@gateway.command()
@click.argument('path')
@click.option('--times', default=12, show_default=True, type=click.IntRange(min=1), help='Number of GET requests')
@click.option('--interval', default=0.0, show_default=True, type=float, help='Seconds between requests')
@click.option('--metrics', 'show_metrics', is_flag=True, help='Print gateway Prometheus metrics afterwards')
@click.pass_obj
def probe(obj: dict, path: str, times: int, interval: float, show_metrics: bool):
    """Send repeated GETs and show how each one was answered."""

    async def run():
        rows = []
        async with _build_dispatcher(obj["base_url"], obj["token"]) as dispatcher:
            for i in range(1, times + 1):
                try:
                    response = await dispatcher.get(path)
                    rows.append([i, response.status, response.status_text, _origin(response), response.circuit_state])
                except DispatchError as e:
                    rows.append([i, e.status or "-", e.kind.value, "error", e.circuit_state])
                if interval and i < times:
                    await asyncio.sleep(interval)

            click.echo(tabulate(rows, headers=["#", "Status", "Status Text", "Source", "Circuit"], tablefmt="grid"))
            click.echo("\n" + _stats_tables(await dispatcher.stats()))

            if show_metrics:
                lines = [line for line in render_metrics().splitlines() if line.startswith("expense_gateway_")]
                click.echo("\n" + "\n".join(lines))

    asyncio.run(run())


def main():
    gateway()


if __name__ == '__main__':
    main()
