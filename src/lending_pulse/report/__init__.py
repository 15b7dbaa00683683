from __future__ import annotations

from .formatter import (
    comparison_response,
    format_metrics_table,
    history_response,
    metrics_response,
    unavailable_response,
)

__all__ = [
    "comparison_response",
    "format_metrics_table",
    "history_response",
    "metrics_response",
    "unavailable_response",
]
