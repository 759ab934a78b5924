from clustersim.config import (
    Catalog,
    GPUSpec,
    HardwareTemplate,
    ModelConfig,
    NetworkFabric,
    NetworkSpeed,
    NodeGroupSpec,
    SimulationConfig,
)
from clustersim.core import Controls, SimulationEngine, SimulationState, calculate_next_tick
from clustersim.routing import LoadBalancingStrategy, PlacementStrategy
from clustersim.errors import CatalogLookupError, ConfigurationError

__all__ = [
    "Catalog",
    "GPUSpec",
    "HardwareTemplate",
    "ModelConfig",
    "NetworkFabric",
    "NetworkSpeed",
    "NodeGroupSpec",
    "SimulationConfig",
    "Controls",
    "SimulationEngine",
    "SimulationState",
    "calculate_next_tick",
    "LoadBalancingStrategy",
    "PlacementStrategy",
    "CatalogLookupError",
    "ConfigurationError",
]
