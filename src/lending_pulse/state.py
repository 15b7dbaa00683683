"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .clients.chain import ChainClient, ChainReader
from .service import MetricsService
from .settings import PulseSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Created once at startup and passed to every handler, so the metrics
    cache and snapshot series are owned here rather than at module level.
    """

    settings: PulseSettings
    logger: logging.Logger
    service: MetricsService


def build_state(
    settings: PulseSettings,
    logger: logging.Logger | None = None,
    client: ChainReader | None = None,
) -> AppState:
    """Wire settings, chain client and service together."""
    client = client or ChainClient(settings)
    return AppState(
        settings=settings,
        logger=logger or logging.getLogger("lending_pulse"),
        service=MetricsService.from_settings(settings, client),
    )
