"""Custom exceptions for the gas tracker.

Per-sample and per-poll failures never escape a NetworkMonitor; these types
exist so each layer can tell transport loss apart from a single bad read.
"""


class TelemetryError(Exception):
    """Base exception for all gas tracker errors."""


class TransportError(TelemetryError):
    """Raised when a network's RPC connection or subscription fails."""


class QueryError(TelemetryError):
    """Raised when a single fee-data query fails or returns malformed data."""


class ConfigError(TelemetryError):
    """Raised when a network's endpoint or retention parameters are invalid."""


class PriceUnavailableError(TelemetryError):
    """Raised when a USD reference price is required but not known."""


class NetworkNotTrackedError(TelemetryError, KeyError):
    """Raised when a snapshot is requested for a network the engine does not track."""
