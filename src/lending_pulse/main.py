"""CLI entrypoint for lending-pulse."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Annotated

import typer

from .errors import AllProtocolsFailed
from .logger import setup_logging
from .report import (
    comparison_response,
    format_metrics_table,
    history_response,
    metrics_response,
    unavailable_response,
)
from .service import total_value_locked
from .settings import PulseSettings
from .state import AppState, build_state

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Lending protocol metrics and TVL change tracking.",
)


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("lending_pulse")


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("application state was not initialized")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [lending_pulse] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="RPC endpoint; overrides the chain default."),
    ] = None,
    protocols: Annotated[
        str | None,
        typer.Option(
            "--protocols",
            help="Comma separated protocols to query (aave, compound).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with credentials redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration and build the shared application state."""
    if config_path:
        os.environ["LENDING_PULSE_CONFIG"] = str(config_path)

    init_kwargs: dict[str, str] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if protocols is not None:
        init_kwargs["enabled_protocols"] = protocols
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = PulseSettings(**init_kwargs)

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    setup_logging(settings.log_level)
    if ctx.obj is None:
        ctx.obj = build_state(settings, logger=_build_logger())


@app.command()
def metrics(
    ctx: typer.Context,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the raw JSON payload.")
    ] = False,
):
    """Fetch and aggregate metrics from every enabled protocol once."""
    state = _state(ctx)
    try:
        result = asyncio.run(state.service.get_metrics())
    except AllProtocolsFailed as e:
        state.logger.error("No protocol returned metrics")
        typer.echo(
            json.dumps(unavailable_response(e.details, int(time.time())), indent=2)
        )
        raise typer.Exit(code=2)

    if as_json:
        typer.echo(json.dumps(metrics_response(result.payload), indent=2))
    else:
        format_metrics_table(result.payload, result.cache_hit)


async def _watch(state: AppState, iterations: int | None) -> None:
    service = state.service
    log = state.logger
    interval = state.settings.poll_interval

    done = 0
    while iterations is None or done < iterations:
        try:
            result = await service.get_metrics()
        except AllProtocolsFailed as e:
            log.error("Round skipped: %s", "; ".join(e.details))
        else:
            tvl = total_value_locked(result.payload)
            report = service.record_and_compare(float(tvl), result.payload.timestamp)
            typer.echo(json.dumps(comparison_response(report)))
        done += 1
        if iterations is None or done < iterations:
            await asyncio.sleep(interval)


@app.command()
def watch(
    ctx: typer.Context,
    iterations: Annotated[
        int | None,
        typer.Option(
            "--iterations",
            "-n",
            min=1,
            help="Stop after this many rounds (default: run until interrupted).",
        ),
    ] = None,
    show_history: Annotated[
        bool,
        typer.Option("--show-history", help="Print the recorded history on exit."),
    ] = False,
):
    """Poll metrics, record TVL, and print its change over the comparison window."""
    state = _state(ctx)
    try:
        asyncio.run(_watch(state, iterations))
    except KeyboardInterrupt:
        state.logger.info("Stopped")
    if show_history:
        typer.echo(json.dumps(history_response(state.service.get_history()), indent=2))


@app.command()
def health(ctx: typer.Context):
    """Print service health information."""
    typer.echo(json.dumps(_state(ctx).service.health(), indent=2))


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
