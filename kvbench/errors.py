from __future__ import annotations


class HarnessError(Exception):
    """Base class for every failure the benchmark harness reports."""


class ParseError(HarnessError):
    """Raised when a recognised generator line is missing a required segment."""

    def __init__(self, reason: str, line: str) -> None:
        super().__init__(f"{reason}: {line.strip()!r}")
        self.reason = reason
        self.line = line


class GeneratorIoError(HarnessError):
    """Raised on generator spawn/pipe failures or a missing workload profile."""


class ClientError(HarnessError):
    """Raised when a client process cannot be launched or written to."""


class ResponseTimeout(HarnessError):
    """Raised when the client does not answer a call within the per-call bound."""


class ChannelClosed(HarnessError):
    """Raised when the client's output stream closed while awaiting a response."""


class PhaseTimeout(HarnessError):
    """Raised when a driver does not signal completion within the phase bound."""


class JoinFailure(HarnessError):
    """Raised when a driver's worker thread died with an unexpected exception."""


class DriverFailed(HarnessError):
    """Raised when a driver finished without producing statistics."""


__all__ = [
    "HarnessError",
    "ParseError",
    "GeneratorIoError",
    "ClientError",
    "ResponseTimeout",
    "ChannelClosed",
    "PhaseTimeout",
    "JoinFailure",
    "DriverFailed",
]
