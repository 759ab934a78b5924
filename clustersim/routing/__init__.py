from clustersim.routing.placement import PlacementPolicy, PlacementStrategy
from clustersim.routing.load_balancing import LoadBalancer, LoadBalancingStrategy
from clustersim.routing.router import Router, PlacementResult

__all__ = [
    "PlacementPolicy",
    "PlacementStrategy",
    "LoadBalancer",
    "LoadBalancingStrategy",
    "Router",
    "PlacementResult",
]
