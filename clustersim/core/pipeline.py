from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clustersim.core.request import RequestPacket, RequestStage

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog
    from clustersim.config.model import ModelConfig
    from clustersim.config.simulation import SimulationConfig
    from clustersim.core.state import ClusterNode
    from clustersim.network.interconnect import InterconnectModel

logger = logging.getLogger(__name__)

# Absorbs float drift when a stage needs a whole number of ticks.
PROGRESS_TOLERANCE = 1e-9


def stage_complete(progress: float) -> bool:
    return progress >= 100 - PROGRESS_TOLERANCE


@dataclass
class PipelineResult:
    requests: list[RequestPacket] = field(default_factory=list)
    finished: dict[str, RequestPacket] = field(default_factory=dict)
    latencies_ms: dict[str, float] = field(default_factory=dict)
    ttfts_ms: list[float] = field(default_factory=list)
    timed_out: list[RequestPacket] = field(default_factory=list)

    @property
    def completed_latencies(self) -> list[float]:
        return list(self.latencies_ms.values())


class RequestPipeline:
    """Advances requests through transfer, prefill and decode.

    Stage progress is a percentage of the current stage and is reset to 0 at
    every boundary. Requests whose node(s) are offline do not advance; after
    ``stall_timeout_ticks`` consecutive stalled ticks they are failed.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: SimulationConfig,
        interconnect: InterconnectModel,
    ):
        self.catalog = catalog
        self.config = config
        self.interconnect = interconnect

    def is_stalled(self, request: RequestPacket, nodes_by_id: dict[str, ClusterNode]) -> bool:
        node_ids = request.node_ids
        if not node_ids:
            return True
        for node_id in node_ids:
            node = nodes_by_id.get(node_id)
            if node is None or not node.is_online:
                return True
        return False

    def host_perf(self, request: RequestPacket, nodes_by_id: dict[str, ClusterNode]) -> float:
        # A sharded request runs at the pace of its slowest GPU.
        factors = [
            self.catalog.get_gpu(nodes_by_id[node_id].gpu_type).perf_factor
            for node_id in request.node_ids
        ]
        return min(factors)

    def tokens_per_tick(
        self,
        model: ModelConfig,
        perf: float,
        throttle: float,
        amplification: float = 1.0,
    ) -> float:
        return model.tokens_per_sec * amplification * throttle * perf / self.config.ticks_per_second

    def elapsed_ms(self, request: RequestPacket, tick: int) -> float:
        return (tick - request.start_tick) * self.config.tick_interval_ms

    def advance(
        self,
        request: RequestPacket,
        tick: int,
        throttle: float,
        nodes_by_id: dict[str, ClusterNode],
    ) -> bool:
        """Move one request forward by a tick. Returns True when decode completes."""
        model = self.catalog.get_model(request.model_id)

        if request.stage is RequestStage.TRANSFER:
            request.progress += self.interconnect.transfer_speed()
            if stage_complete(request.progress):
                request.stage = RequestStage.PREFILL
                request.progress = 0.0
            return False

        elif request.stage is RequestStage.PREFILL:
            perf = self.host_perf(request, nodes_by_id)
            tokens = self.tokens_per_tick(model, perf, throttle, self.config.prefill_amplification)
            request.progress += tokens / request.prompt_tokens * 100
            if stage_complete(request.progress):
                request.ttft_ms = self.elapsed_ms(request, tick)
                request.stage = RequestStage.DECODE
                request.progress = 0.0
            return False

        elif request.stage is RequestStage.DECODE:
            perf = self.host_perf(request, nodes_by_id)
            tokens = self.tokens_per_tick(model, perf, throttle)
            request.progress += tokens / request.output_tokens * 100
            if stage_complete(request.progress):
                request.progress = 100.0
                return True
            return False

        raise ValueError(f"Unhandled stage: {request.stage}")

    def step(
        self,
        requests: list[RequestPacket],
        nodes: list[ClusterNode],
        tick: int,
        throttle: float,
    ) -> PipelineResult:
        nodes_by_id = {n.id: n for n in nodes}
        result = PipelineResult()
        timeout = self.config.stall_timeout_ticks

        for request in requests:
            if self.is_stalled(request, nodes_by_id):
                request.stalled_ticks += 1
                if timeout is not None and request.stalled_ticks >= timeout:
                    logger.debug("Request %s timed out after %d stalled ticks", request.id, request.stalled_ticks)
                    result.timed_out.append(request)
                else:
                    result.requests.append(request)
                continue

            request.stalled_ticks = 0
            was_prefill = request.stage is RequestStage.PREFILL
            if self.advance(request, tick, throttle, nodes_by_id):
                result.finished[request.id] = request
                result.latencies_ms[request.id] = self.elapsed_ms(request, tick)
                continue

            if was_prefill and request.stage is RequestStage.DECODE:
                result.ttfts_ms.append(request.ttft_ms)
            result.requests.append(request)

        return result
