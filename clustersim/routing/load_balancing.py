from __future__ import annotations
import random
from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from clustersim.core.request import RequestPacket
    from clustersim.core.state import ClusterNode


class LoadBalancingStrategy(Enum):
    RANDOM = "RANDOM"
    ROUND_ROBIN = "ROUND_ROBIN"
    LEAST_CONNECTIONS = "LEAST_CONNECTIONS"


class LoadBalancer:
    def __init__(
        self,
        strategy: LoadBalancingStrategy = LoadBalancingStrategy.RANDOM,
        cursor: int = 0,
        rng: random.Random | None = None,
    ):
        self.strategy = strategy
        self.cursor = cursor
        self.rng = rng or random.Random()

    def pick(self, pool: list[ClusterNode], live_requests: Iterable[RequestPacket] = ()) -> ClusterNode:
        if not pool:
            raise ValueError("Cannot balance over an empty pool")

        if self.strategy == LoadBalancingStrategy.RANDOM:
            return self._random(pool)
        elif self.strategy == LoadBalancingStrategy.ROUND_ROBIN:
            return self._round_robin(pool)
        elif self.strategy == LoadBalancingStrategy.LEAST_CONNECTIONS:
            return self._least_connections(pool, list(live_requests))
        raise ValueError(f"Unhandled load balancing strategy: {self.strategy}")

    def _random(self, pool: list[ClusterNode]) -> ClusterNode:
        return pool[self.rng.randrange(len(pool))]

    def _round_robin(self, pool: list[ClusterNode]) -> ClusterNode:
        self.cursor = (self.cursor + 1) % len(pool)
        return pool[self.cursor]

    def _least_connections(self, pool: list[ClusterNode], live_requests: list[RequestPacket]) -> ClusterNode:
        # min() keeps the first of equal keys, so ties go to pool order
        return min(
            pool,
            key=lambda node: sum(1 for r in live_requests if r.targets(node.id)),
        )
