from __future__ import annotations
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MetricPoint:
    tick: int
    total_throughput: float  # tokens/sec, decode
    avg_latency_ms: float  # smoothed end-to-end
    avg_ttft_ms: float  # smoothed time to first token
    cluster_utilization: float  # mean GPU %
    total_bandwidth: float  # GB/s inter-node
    total_nvlink_bandwidth: float  # GB/s intra-node
    network_limit: float  # GB/s ceiling across online workers
    queue_depth: int  # requests still transferring
    active_users: int
    estimated_cost_per_hour: float
    avg_gpu_temp: float
    throttle_factor: float = 1.0
    node_active_tokens: dict[str, int] = field(default_factory=dict)
    node_gpu_util: dict[str, float] = field(default_factory=dict)
    node_vram_util: dict[str, float] = field(default_factory=dict)
    node_net_util: dict[str, float] = field(default_factory=dict)
    node_temp: dict[str, float] = field(default_factory=dict)
    model_vram_usage: dict[str, float] = field(default_factory=dict)  # GB across the cluster

    def summary(self) -> dict:
        return {
            "tick": self.tick,
            "total_throughput": self.total_throughput,
            "avg_latency_ms": self.avg_latency_ms,
            "avg_ttft_ms": self.avg_ttft_ms,
            "cluster_utilization": self.cluster_utilization,
            "total_bandwidth": self.total_bandwidth,
            "network_limit": self.network_limit,
            "queue_depth": self.queue_depth,
            "active_users": self.active_users,
            "estimated_cost_per_hour": self.estimated_cost_per_hour,
            "avg_gpu_temp": self.avg_gpu_temp,
            "throttle_factor": self.throttle_factor,
        }


def append_bounded(history: list[MetricPoint], point: MetricPoint, max_length: int) -> list[MetricPoint]:
    """Return a new history with ``point`` appended and the oldest entries evicted."""
    updated = [*history, point]
    if len(updated) > max_length:
        updated = updated[-max_length:]
    return updated
