"""Lending protocol metrics aggregation and TVL change tracking."""

__version__ = "0.1.0"
