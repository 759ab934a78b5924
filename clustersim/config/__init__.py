from clustersim.config.model import ModelConfig
from clustersim.config.cluster import GPUSpec, NodeGroupSpec, HardwareTemplate
from clustersim.config.network import NetworkFabric, NetworkSpeed
from clustersim.config.workload import PromptTemplate
from clustersim.config.simulation import SimulationConfig
from clustersim.config.catalog import Catalog

__all__ = [
    "ModelConfig",
    "GPUSpec",
    "NodeGroupSpec",
    "HardwareTemplate",
    "NetworkFabric",
    "NetworkSpeed",
    "PromptTemplate",
    "SimulationConfig",
    "Catalog",
]
