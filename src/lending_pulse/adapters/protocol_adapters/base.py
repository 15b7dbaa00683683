from __future__ import annotations

from abc import ABC, abstractmethod

from ...clients.chain import ChainReader
from ...domain import ProtocolMetrics
from ...settings import PulseSettings


class BaseProtocolAdapter(ABC):
    """Abstract base class for lending protocol adapters."""

    def __init__(self, config: PulseSettings, client: ChainReader):
        """Initialize the adapter with configuration.

        Args:
            config: Service configuration
            client: Chain reader used for every contract call
        """
        self.config = config
        self.client = client

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the key this adapter's metrics are published under."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Return the label used to prefix this adapter's warnings."""
        ...

    @abstractmethod
    async def fetch_metrics(self) -> ProtocolMetrics:
        """Fetch and normalize the protocol's current market metrics."""
        ...
