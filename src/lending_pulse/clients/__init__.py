from __future__ import annotations

from .chain import CallResult, ChainClient, ChainReader

__all__ = ["CallResult", "ChainClient", "ChainReader"]
