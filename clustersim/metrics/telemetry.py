from __future__ import annotations
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from clustersim.core.request import RequestStage
from clustersim.core.state import NodeStatus
from clustersim.metrics.definitions import MetricPoint

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog
    from clustersim.config.simulation import SimulationConfig
    from clustersim.core.pipeline import PipelineResult
    from clustersim.core.request import RequestPacket
    from clustersim.core.state import ClusterNode
    from clustersim.network.interconnect import BandwidthDemand, InterconnectModel


def smooth(current: float, target: float, factor: float) -> float:
    return current + (target - current) * factor


def clamp_percent(value: float) -> float:
    return float(np.clip(value, 0.0, 100.0))


@dataclass
class NodeTelemetry:
    model_vram_usage: dict[str, float] = field(default_factory=dict)
    total_bandwidth: float = 0.0
    total_nvlink_bandwidth: float = 0.0


class TelemetryAggregator:
    """Folds live request load into node readings and cluster metrics.

    Node readings move toward an instantaneous target by a fixed smoothing
    factor each tick. Offline nodes skip all of it and sit at baseline.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: SimulationConfig,
        interconnect: InterconnectModel,
        rng: random.Random | None = None,
    ):
        self.catalog = catalog
        self.config = config
        self.interconnect = interconnect
        self.rng = rng or random.Random()

    def update_nodes(
        self,
        nodes: list[ClusterNode],
        requests: list[RequestPacket],
        active_model_ids: list[str],
        demand: BandwidthDemand,
    ) -> NodeTelemetry:
        telemetry = NodeTelemetry(model_vram_usage={mid: 0.0 for mid in active_model_ids})

        for node in nodes:
            if not node.is_worker:
                self._update_head(node, requests)
            elif not node.is_online:
                node.take_offline(self.config.ambient_temp)
            else:
                self._update_worker(node, requests, active_model_ids, telemetry)
                node_demand = demand.network_for(node.id)
                telemetry.total_bandwidth += self.interconnect.delivered_bandwidth(node_demand)
                telemetry.total_nvlink_bandwidth += demand.nvlink_for(node.id)
                node.net_util = clamp_percent(
                    smooth(node.net_util, self.interconnect.net_util_target(node_demand), self.config.net_smoothing)
                )

        return telemetry

    def _update_head(self, node: ClusterNode, requests: list[RequestPacket]) -> None:
        transferring = sum(1 for r in requests if r.stage is RequestStage.TRANSFER)
        target = min(self.config.head_gpu_load_cap, transferring * self.config.head_gpu_load_per_transfer)
        node.gpu_util = clamp_percent(smooth(node.gpu_util, target, self.config.gpu_smoothing))
        node.status = NodeStatus.COMPUTING if transferring > 0 else NodeStatus.IDLE

    def _update_worker(
        self,
        node: ClusterNode,
        requests: list[RequestPacket],
        active_model_ids: list[str],
        telemetry: NodeTelemetry,
    ) -> None:
        cfg = self.config
        hosted = [r for r in requests if r.stage is not RequestStage.TRANSFER and r.targets(node.id)]

        gpu_target = 0.0
        for request in hosted:
            if request.stage is RequestStage.PREFILL:
                gpu_target += cfg.prefill_gpu_load
            else:
                gpu_target += cfg.decode_gpu_load
        node.gpu_util = clamp_percent(smooth(node.gpu_util, min(100.0, gpu_target), cfg.gpu_smoothing))

        vram_gb = 0.0
        for model_id in active_model_ids:
            model = self.catalog.get_model(model_id)
            if model.is_distributed:
                weights = model.vram_per_shard_gb
            elif model.vram_required_gb <= node.total_vram_gb:
                weights = model.vram_required_gb
            else:
                # Cannot host this model; placement refuses it here.
                weights = 0.0
            kv_cache = sum(1 for r in hosted if r.model_id == model_id) * cfg.kv_cache_gb_per_request
            used = weights + kv_cache
            vram_gb += used
            if used > 0:
                telemetry.model_vram_usage[model_id] = telemetry.model_vram_usage.get(model_id, 0.0) + used

        vram_target = vram_gb / node.total_vram_gb * 100.0
        node.vram_util = clamp_percent(smooth(node.vram_util, min(100.0, vram_target), cfg.vram_smoothing))

        node.temp = cfg.base_temp + node.gpu_util * cfg.temp_per_util + self.rng.random() * cfg.temp_jitter
        node.active_tokens = len(hosted)
        if vram_target > 100.0:
            node.status = NodeStatus.ERROR
        elif node.gpu_util > cfg.computing_threshold:
            node.status = NodeStatus.COMPUTING
        else:
            node.status = NodeStatus.IDLE

    def smoothed_latencies(
        self,
        previous: MetricPoint | None,
        pipeline: PipelineResult,
        live_requests: list[RequestPacket],
    ) -> tuple[float, float]:
        cfg = self.config
        latency = previous.avg_latency_ms if previous else 0.0
        ttft = previous.avg_ttft_ms if previous else 0.0

        if pipeline.latencies_ms:
            latency = smooth(latency, float(np.mean(pipeline.completed_latencies)), cfg.latency_ema_weight)
        if pipeline.ttfts_ms:
            ttft = smooth(ttft, float(np.mean(pipeline.ttfts_ms)), cfg.ttft_ema_weight)
        elif not live_requests:
            latency *= cfg.idle_decay
            ttft *= cfg.idle_decay

        return latency, ttft

    def estimated_cost_per_hour(self, requests: list[RequestPacket]) -> float:
        total = 0.0
        for request in requests:
            model = self.catalog.get_model(request.model_id)
            total += model.tokens_per_sec * 3600 / 1000 * model.cost_per_1k_tokens
        return total

    def roll_up(
        self,
        tick: int,
        nodes: list[ClusterNode],
        requests: list[RequestPacket],
        active_users: int,
        pipeline: PipelineResult,
        telemetry: NodeTelemetry,
        throttle: float,
        previous: MetricPoint | None,
    ) -> MetricPoint:
        latency, ttft = self.smoothed_latencies(previous, pipeline, requests)
        decoding = sum(1 for r in requests if r.stage is RequestStage.DECODE)
        transferring = sum(1 for r in requests if r.stage is RequestStage.TRANSFER)
        online_workers = sum(1 for n in nodes if n.is_worker and n.is_online)

        return MetricPoint(
            tick=tick,
            total_throughput=decoding * self.config.throughput_per_decode,
            avg_latency_ms=latency,
            avg_ttft_ms=ttft,
            cluster_utilization=float(np.mean([n.gpu_util for n in nodes])) if nodes else 0.0,
            total_bandwidth=telemetry.total_bandwidth,
            total_nvlink_bandwidth=telemetry.total_nvlink_bandwidth,
            network_limit=self.interconnect.capacity * online_workers,
            queue_depth=transferring,
            active_users=active_users,
            estimated_cost_per_hour=self.estimated_cost_per_hour(requests),
            avg_gpu_temp=float(np.mean([n.temp for n in nodes])) if nodes else 0.0,
            throttle_factor=throttle,
            node_active_tokens={n.id: n.active_tokens for n in nodes},
            node_gpu_util={n.id: n.gpu_util for n in nodes},
            node_vram_util={n.id: n.vram_util for n in nodes},
            node_net_util={n.id: n.net_util for n in nodes},
            node_temp={n.id: n.temp for n in nodes},
            model_vram_usage=dict(telemetry.model_vram_usage),
        )
