from clustersim.metrics.definitions import MetricPoint, append_bounded
from clustersim.metrics.telemetry import TelemetryAggregator, NodeTelemetry
from clustersim.metrics.expressions import SymbolicLatencyModel, LatencyExpressions, LatencyEstimate
from clustersim.metrics.summary import build_tutor_context

__all__ = [
    "MetricPoint",
    "append_bounded",
    "TelemetryAggregator",
    "NodeTelemetry",
    "SymbolicLatencyModel",
    "LatencyExpressions",
    "LatencyEstimate",
    "build_tutor_context",
]
