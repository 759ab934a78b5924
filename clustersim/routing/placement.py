from __future__ import annotations
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from clustersim.topology.builder import RACK_1, RACK_2

if TYPE_CHECKING:
    from clustersim.core.state import ClusterNode


class PlacementStrategy(Enum):
    PACK = "PACK"  # fill rack-1 first, spill when hot
    SPREAD = "SPREAD"  # any online worker
    STRICT_PACK = "STRICT_PACK"  # rack-1 only, fail when full or offline


def mean_gpu_util(nodes: list[ClusterNode]) -> float:
    if not nodes:
        return 0.0
    return float(np.mean([n.gpu_util for n in nodes]))


def split_racks(nodes: list[ClusterNode]) -> tuple[list[ClusterNode], list[ClusterNode]]:
    rack1 = [n for n in nodes if n.rack_id == RACK_1]
    rack2 = [n for n in nodes if n.rack_id == RACK_2]
    return rack1, rack2


class PlacementPolicy:
    def __init__(
        self,
        strategy: PlacementStrategy = PlacementStrategy.PACK,
        pack_high_water: float = 85.0,
        strict_pack_high_water: float = 95.0,
    ):
        self.strategy = strategy
        self.pack_high_water = pack_high_water
        self.strict_pack_high_water = strict_pack_high_water

    def candidate_pool(self, online_workers: list[ClusterNode]) -> list[ClusterNode]:
        """Nodes a single-node request may land on. Empty means rejection."""
        rack1, rack2 = split_racks(online_workers)

        if self.strategy == PlacementStrategy.PACK:
            if rack1 and mean_gpu_util(rack1) < self.pack_high_water:
                return rack1
            if rack2 and mean_gpu_util(rack2) < self.pack_high_water:
                return rack2
            return list(online_workers)
        elif self.strategy == PlacementStrategy.STRICT_PACK:
            if rack1 and mean_gpu_util(rack1) < self.strict_pack_high_water:
                return rack1
            return []
        elif self.strategy == PlacementStrategy.SPREAD:
            return list(online_workers)
        raise ValueError(f"Unhandled placement strategy: {self.strategy}")

    def select_group(self, online_workers: list[ClusterNode], tp_size: int) -> list[ClusterNode] | None:
        """Pick ``tp_size`` workers for a sharded model, preferring a single rack."""
        if len(online_workers) < tp_size:
            return None

        rack1, rack2 = split_racks(online_workers)
        if len(rack1) >= tp_size:
            return rack1[:tp_size]
        if len(rack2) >= tp_size:
            return rack2[:tp_size]
        return list(online_workers[:tp_size])
