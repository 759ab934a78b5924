from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from clustersim.routing.placement import PlacementPolicy
from clustersim.routing.load_balancing import LoadBalancer

if TYPE_CHECKING:
    from clustersim.config.model import ModelConfig
    from clustersim.core.request import RequestPacket
    from clustersim.core.state import ClusterNode

logger = logging.getLogger(__name__)


@dataclass
class PlacementResult:
    success: bool
    target_node_id: str | None = None
    target_node_ids: tuple[str, ...] = field(default_factory=tuple)
    reason: str = ""

    @classmethod
    def single(cls, node_id: str) -> PlacementResult:
        return cls(success=True, target_node_id=node_id)

    @classmethod
    def group(cls, node_ids: list[str]) -> PlacementResult:
        return cls(success=True, target_node_ids=tuple(node_ids))

    @classmethod
    def failure(cls, reason: str) -> PlacementResult:
        return cls(success=False, reason=reason)


class Router:
    """Resolves target node(s) for a new request.

    Single-node models go through the placement policy (which rack) and then
    the load balancer (which node in the pool). Sharded models need
    ``tp_size`` online workers and bypass load balancing.
    """

    def __init__(self, placement: PlacementPolicy, balancer: LoadBalancer):
        self.placement = placement
        self.balancer = balancer

    @property
    def cursor(self) -> int:
        return self.balancer.cursor

    def place(
        self,
        model: ModelConfig,
        online_workers: list[ClusterNode],
        live_requests: Iterable[RequestPacket] = (),
    ) -> PlacementResult:
        if model.is_distributed:
            return self._place_distributed(model, online_workers)
        return self._place_single(model, online_workers, live_requests)

    def _place_single(
        self,
        model: ModelConfig,
        online_workers: list[ClusterNode],
        live_requests: Iterable[RequestPacket],
    ) -> PlacementResult:
        pool = self.placement.candidate_pool(online_workers)
        if not pool:
            logger.debug("Placement strategy %s rejected %s", self.placement.strategy.value, model.id)
            return PlacementResult.failure(
                f"Placement Failed: Strategy {self.placement.strategy.value} rejected request (Rack full/offline)."
            )

        pool = [n for n in pool if n.total_vram_gb >= model.vram_required_gb]
        if not pool:
            logger.debug("No node has %.1f GB for %s", model.vram_required_gb, model.id)
            return PlacementResult.failure(
                f"Placement Failed: {model.name} needs {model.vram_required_gb:g} GB VRAM on a single node."
            )

        node = self.balancer.pick(pool, live_requests)
        return PlacementResult.single(node.id)

    def _place_distributed(self, model: ModelConfig, online_workers: list[ClusterNode]) -> PlacementResult:
        group = self.placement.select_group(online_workers, model.tp_size)
        if group is None:
            logger.debug(
                "Need %d workers for %s, %d online", model.tp_size, model.id, len(online_workers)
            )
            return PlacementResult.failure(
                f"Placement Failed: Insufficient healthy nodes for TP={model.tp_size}"
            )
        return PlacementResult.group([n.id for n in group])
