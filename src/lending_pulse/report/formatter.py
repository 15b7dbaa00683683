"""JSON payloads and rich console output for the query surface."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..domain import (
    AggregatedResponse,
    ComparisonReport,
    HistoryView,
    ProtocolMetrics,
)


def _amount(value: Decimal) -> str:
    """Token amounts travel as strings so large values stay exact."""
    return format(value.normalize(), "f") if value else "0"


def protocol_metrics_dict(metrics: ProtocolMetrics) -> dict[str, Any]:
    return {
        "totalSupplied": _amount(metrics.total_supplied),
        "totalBorrowed": _amount(metrics.total_borrowed),
        "supplyRatePct": float(metrics.supply_rate_pct),
        "borrowRatePct": float(metrics.borrow_rate_pct),
        "utilizationPct": float(metrics.utilization_pct),
    }


def metrics_response(response: AggregatedResponse) -> dict[str, Any]:
    body: dict[str, Any] = {
        "timestamp": response.timestamp,
        "chain": response.chain,
    }
    for name, metrics in response.per_protocol.items():
        body[name] = None if metrics is None else protocol_metrics_dict(metrics)
    if response.warnings:
        body["warnings"] = list(response.warnings)
    return body


def unavailable_response(details: list[str], timestamp: int) -> dict[str, Any]:
    return {
        "error": "All protocol data fetches failed",
        "details": list(details),
        "timestamp": timestamp,
    }


def comparison_response(report: ComparisonReport) -> dict[str, Any]:
    return {
        "currentValue": report.current_value,
        "currentTimestamp": report.current_timestamp,
        "comparisonValue": report.comparison_value,
        "comparisonTimestamp": report.comparison_timestamp,
        "changePercent": float(report.change_percent),
        "comparisonAgeMinutes": report.comparison_age_minutes,
        "sampleCount": report.sample_count,
    }


def history_response(history: HistoryView) -> dict[str, Any]:
    return {
        "samples": [
            {"value": s.value, "timestamp": s.timestamp} for s in history.samples
        ],
        "count": history.count,
        "oldestTimestamp": history.oldest_timestamp,
        "newestTimestamp": history.newest_timestamp,
    }


def format_metrics_table(
    response: AggregatedResponse, cache_hit: bool, console: Console | None = None
) -> None:
    """Print a per-protocol metrics table to the console."""
    console = console or Console()

    table = Table(expand=True)
    table.add_column("Protocol", style="cyan", no_wrap=True)
    table.add_column("Supplied", justify="right")
    table.add_column("Borrowed", justify="right")
    table.add_column("Supply %", justify="right", style="green")
    table.add_column("Borrow %", justify="right", style="yellow")
    table.add_column("Utilization %", justify="right")

    for name, metrics in response.per_protocol.items():
        if metrics is None:
            table.add_row(name, "[dim]<N/A>[/]", "", "", "", "")
            continue
        table.add_row(
            name,
            f"{metrics.total_supplied:,.2f}",
            f"{metrics.total_borrowed:,.2f}",
            f"{metrics.supply_rate_pct}",
            f"{metrics.borrow_rate_pct}",
            f"{metrics.utilization_pct}",
        )

    cache = "HIT" if cache_hit else "MISS"
    console.print(
        Panel(
            table,
            title=f"[bold]{response.chain}[/] @ {response.timestamp} (cache {cache})",
            border_style="blue",
        )
    )
    for warning in response.warnings:
        console.print(f"[yellow]warning:[/] {warning}")
