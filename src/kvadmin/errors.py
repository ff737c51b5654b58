"""Exception types and client status codes."""
from __future__ import annotations

from enum import IntEnum
from typing import Optional

__all__ = [
    "ErrorCode",
    "KVAdminError",
    "KVError",
    "ScanError",
    "ClusterQueryError",
    "MetricContractError",
    "MetricNameError",
    "UnknownMetricError",
    "describe_error_code",
]


class ErrorCode(IntEnum):
    """Status codes returned by the key-value client."""

    OK = 0
    SCAN_COMPLETE = 1
    UNKNOWN = -1
    TIMEOUT = -2
    OBJECT_NOT_FOUND = -3
    NETWORK_FAILURE = -4
    HANDLER_NOT_FOUND = -5
    APP_NOT_EXIST = -101
    APP_EXIST = -102
    SERVER_INTERNAL_ERROR = -103
    SERVER_CHANGED = -104
    INVALID_ARGUMENT = -105
    INVALID_VALUE = -106

    @property
    def label(self) -> str:
        return f"PERR_{self.name}"


class KVAdminError(Exception):
    """Base class for all kvadmin errors."""


class KVError(KVAdminError):
    """A key-value client call finished with a non-OK status."""

    def __init__(self, code: int, message: Optional[str] = None):
        self.code = int(code)
        if message is None:
            message = describe_error_code(self.code)
        self.message = message
        super().__init__(message)


class ScanError(KVAdminError):
    """A scan/apply run was misconfigured or could not be started."""


class ClusterQueryError(KVAdminError):
    """A cluster listing or broadcast failed; no partial result is returned."""


class MetricContractError(KVAdminError):
    """A node reported data that violates the counter naming or ownership contract."""


class MetricNameError(MetricContractError, ValueError):
    """A perf-counter wire name could not be parsed."""


class UnknownMetricError(MetricContractError, KeyError):
    """A counter name has no accumulator in the stat row."""

    def __str__(self) -> str:
        return Exception.__str__(self)


def describe_error_code(code: int) -> str:
    """Symbolic name of a client status code, e.g. ``PERR_TIMEOUT``."""
    try:
        return ErrorCode(code).label
    except ValueError:
        return f"PERR_CODE({code})"
