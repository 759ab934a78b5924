from clustersim.core.state import (
    ClusterNode,
    LogEntry,
    LogKind,
    NodeRole,
    NodeStatus,
    SimulationState,
)
from clustersim.core.request import RequestPacket, RequestStage
from clustersim.core.user import UserState, VirtualUser
from clustersim.core.pipeline import RequestPipeline, PipelineResult
from clustersim.core.engine import (
    Controls,
    SimulationEngine,
    SimulationResult,
    TickResult,
    calculate_next_tick,
)

__all__ = [
    "ClusterNode",
    "LogEntry",
    "LogKind",
    "NodeRole",
    "NodeStatus",
    "SimulationState",
    "RequestPacket",
    "RequestStage",
    "UserState",
    "VirtualUser",
    "RequestPipeline",
    "PipelineResult",
    "Controls",
    "SimulationEngine",
    "SimulationResult",
    "TickResult",
    "calculate_next_tick",
]
