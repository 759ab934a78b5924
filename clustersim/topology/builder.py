from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Iterable

from clustersim.config.cluster import NodeGroupSpec
from clustersim.config.simulation import SimulationConfig
from clustersim.core.state import ClusterNode, NodeRole, NodeStatus
from clustersim.errors import ConfigurationError

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog

logger = logging.getLogger(__name__)

HEAD_NODE_ID = "head-1"
RACK_1 = "rack-1"
RACK_2 = "rack-2"


def rack_for_index(index: int) -> str:
    # Alternating racks so both exist for any cluster of two or more workers.
    return RACK_1 if index % 2 != 0 else RACK_2


def _head_node(config: SimulationConfig) -> ClusterNode:
    return ClusterNode(
        id=HEAD_NODE_ID,
        role=NodeRole.HEAD,
        name="Ray Head Node",
        gpu_type="L4",
        gpu_count=0,
        total_vram_gb=config.head_vram_gb,
        vram_util=config.head_idle_vram,
        temp=config.head_idle_temp,
        status=NodeStatus.IDLE,
    )


def generate_cluster(
    specs: Iterable[NodeGroupSpec],
    catalog: Catalog,
    config: SimulationConfig | None = None,
) -> list[ClusterNode]:
    """Build the head node followed by every worker described by ``specs``.

    Workers are numbered ``server-1`` .. ``server-N`` across all groups in
    order, so the same specs always produce the same ids, VRAM totals and
    rack assignments.
    """
    config = config or SimulationConfig.default()
    specs = list(specs)
    if not specs:
        raise ConfigurationError("Cluster needs at least one node group")

    workers: list[ClusterNode] = []
    index = 1
    for spec in specs:
        if spec.count < 1 or spec.gpus_per_node < 1:
            raise ConfigurationError(
                f"Node group needs positive counts, got {spec.count} x {spec.gpus_per_node}"
            )
        gpu = catalog.get_gpu(spec.gpu_type)
        for _ in range(spec.count):
            workers.append(
                ClusterNode(
                    id=f"server-{index}",
                    role=NodeRole.WORKER,
                    name=f"Server {index} ({spec.gpus_per_node}x {spec.gpu_type})",
                    gpu_type=spec.gpu_type,
                    gpu_count=spec.gpus_per_node,
                    total_vram_gb=gpu.vram_gb * spec.gpus_per_node,
                    rack_id=rack_for_index(index),
                    temp=config.base_temp,
                )
            )
            index += 1

    logger.debug("Generated cluster with %d workers from %d groups", len(workers), len(specs))
    return [_head_node(config), *workers]


def build_homogeneous(
    count: int,
    gpus_per_node: int,
    gpu_type: str,
    catalog: Catalog,
    config: SimulationConfig | None = None,
) -> list[ClusterNode]:
    return generate_cluster(
        [NodeGroupSpec(count=count, gpu_type=gpu_type, gpus_per_node=gpus_per_node)],
        catalog,
        config,
    )


def build_from_template(
    template_id: str,
    catalog: Catalog,
    config: SimulationConfig | None = None,
) -> list[ClusterNode]:
    template = catalog.get_template(template_id)
    return generate_cluster(template.specs, catalog, config)
