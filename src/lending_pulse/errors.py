"""Error taxonomy shared by the fetchers, the aggregator and the query surface."""

from __future__ import annotations


class LendingPulseError(Exception):
    """Base class for all lending-pulse errors."""


class MalformedResponse(LendingPulseError, ValueError):
    """Raised when raw call data is too short or a field does not fit its type."""


class CallFailed(LendingPulseError):
    """Raised when a contract call fails at the transport or contract level."""


class AllProtocolsFailed(LendingPulseError):
    """Raised when no protocol produced metrics in an aggregation round."""

    def __init__(self, details: list[str]):
        self.details = list(details)
        super().__init__("All protocol data fetches failed")


class InvalidInput(LendingPulseError, ValueError):
    """Raised when a value supplied for recording cannot be parsed."""


def status_code_for(exc: BaseException | None) -> int:
    """Map an outcome to the HTTP-style status the outer API layer reports."""
    if exc is None:
        return 200
    if isinstance(exc, InvalidInput):
        return 400
    if isinstance(exc, AllProtocolsFailed):
        return 503
    return 500
