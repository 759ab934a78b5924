from clustersim.workload.population import PopulationManager
from clustersim.workload.dispatch import RequestDispatcher, DispatchOutcome

__all__ = [
    "PopulationManager",
    "RequestDispatcher",
    "DispatchOutcome",
]
