from clustersim.topology.builder import (
    generate_cluster,
    build_homogeneous,
    build_from_template,
    rack_for_index,
)

__all__ = [
    "generate_cluster",
    "build_homogeneous",
    "build_from_template",
    "rack_for_index",
]
