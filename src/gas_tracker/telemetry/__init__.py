"""Fee telemetry -- normalization, retention, aggregation, monitors, and the engine."""

from gas_tracker.telemetry.aggregator import aggregate, bucket_start
from gas_tracker.telemetry.engine import TelemetryEngine, default_client_factory
from gas_tracker.telemetry.monitor import NetworkMonitor
from gas_tracker.telemetry.normalizer import RawFeeObservation, normalize, observation_from_header
from gas_tracker.telemetry.retention import RetentionRing
from gas_tracker.telemetry.store import StateChange, StateSink, TelemetryStore

__all__ = [
    "NetworkMonitor",
    "RawFeeObservation",
    "RetentionRing",
    "StateChange",
    "StateSink",
    "TelemetryEngine",
    "TelemetryStore",
    "aggregate",
    "bucket_start",
    "default_client_factory",
    "normalize",
    "observation_from_header",
]
