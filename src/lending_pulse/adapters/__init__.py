from __future__ import annotations

from .protocol_adapters import ADAPTER_REGISTRY, get_adapter_class

__all__ = ["ADAPTER_REGISTRY", "get_adapter_class"]
