from __future__ import annotations

from .aave import AaveAdapter
from .base import BaseProtocolAdapter
from .compound import CompoundAdapter

ADAPTER_REGISTRY: dict[str, type[BaseProtocolAdapter]] = {
    "aave": AaveAdapter,
    "compound": CompoundAdapter,
}


def get_adapter_class(adapter_name: str) -> type[BaseProtocolAdapter]:
    """Get adapter class by name.

    Args:
        adapter_name: Name of the adapter (case-insensitive)

    Returns:
        Adapter class

    Raises:
        ValueError: If adapter_name is not recognized
    """
    adapter_name_normalized = adapter_name.lower()
    if adapter_name_normalized not in ADAPTER_REGISTRY:
        raise ValueError(
            f"Unknown adapter '{adapter_name}'. "
            f"Available: {', '.join(ADAPTER_REGISTRY.keys())}"
        )
    return ADAPTER_REGISTRY[adapter_name_normalized]


__all__ = [
    "ADAPTER_REGISTRY",
    "AaveAdapter",
    "BaseProtocolAdapter",
    "CompoundAdapter",
    "get_adapter_class",
]
