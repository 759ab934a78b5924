from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from clustersim.config.simulation import SimulationConfig

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog
    from clustersim.config.model import ModelConfig
    from clustersim.config.network import NetworkFabric
    from clustersim.core.request import RequestPacket
    from clustersim.core.state import ClusterNode


@dataclass
class BandwidthDemand:
    network: dict[str, float] = field(default_factory=dict)  # GB/s inter-node per node
    nvlink: dict[str, float] = field(default_factory=dict)  # GB/s intra-node per node

    @property
    def max_network(self) -> float:
        return max(self.network.values(), default=0.0)

    def network_for(self, node_id: str) -> float:
        return self.network.get(node_id, 0.0)

    def nvlink_for(self, node_id: str) -> float:
        return self.nvlink.get(node_id, 0.0)


class InterconnectModel:
    def __init__(self, fabric: NetworkFabric, config: SimulationConfig | None = None):
        self.fabric = fabric
        self.config = config or SimulationConfig.default()

    @property
    def capacity(self) -> float:
        return self.fabric.bandwidth_gbps

    def transfer_speed(self) -> float:
        """Transfer-stage progress per tick; lower latency fabrics finish the hop sooner."""
        return self.config.transfer_base_speed / max(1.0, math.log2(self.fabric.latency_factor))

    def request_demand(self, model: ModelConfig) -> tuple[float, float]:
        # Sharded models pay for AllReduce on every layer.
        if model.is_distributed:
            return self.config.distributed_net_demand, self.config.distributed_nvlink_demand
        return self.config.single_net_demand, self.config.single_nvlink_demand

    def node_demands(
        self,
        workers: Iterable[ClusterNode],
        requests: list[RequestPacket],
        catalog: Catalog,
    ) -> BandwidthDemand:
        demand = BandwidthDemand()
        for node in workers:
            net = 0.0
            nvlink = 0.0
            for request in requests:
                if not request.targets(node.id):
                    continue
                req_net, req_nvlink = self.request_demand(catalog.get_model(request.model_id))
                net += req_net
                nvlink += req_nvlink
            demand.network[node.id] = net
            demand.nvlink[node.id] = nvlink
        return demand

    def throttle_factor(self, demand: BandwidthDemand) -> float:
        peak = demand.max_network
        if peak > self.capacity:
            return self.capacity / peak
        return 1.0

    def net_util_target(self, node_demand: float) -> float:
        return min(100.0, node_demand / self.capacity * 100.0)

    def delivered_bandwidth(self, node_demand: float) -> float:
        return min(node_demand, self.capacity)
