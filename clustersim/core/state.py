from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clustersim.core.request import RequestPacket
    from clustersim.core.user import VirtualUser
    from clustersim.metrics.definitions import MetricPoint


class NodeRole(Enum):
    HEAD = "head"
    WORKER = "worker"


class NodeStatus(Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    ERROR = "error"
    OFFLINE = "offline"


class LogKind(Enum):
    PROMPT = "prompt"
    RESPONSE = "response"
    ERROR = "error"


@dataclass
class ClusterNode:
    id: str
    role: NodeRole
    name: str
    gpu_type: str
    gpu_count: int
    total_vram_gb: float
    rack_id: str | None = None

    gpu_util: float = 0.0
    vram_util: float = 0.0
    net_util: float = 0.0
    temp: float = 30.0
    status: NodeStatus = NodeStatus.IDLE
    active_tokens: int = 0

    @property
    def is_worker(self) -> bool:
        return self.role is NodeRole.WORKER

    @property
    def is_online(self) -> bool:
        return self.status is not NodeStatus.OFFLINE

    def take_offline(self, ambient_temp: float) -> None:
        self.status = NodeStatus.OFFLINE
        self.gpu_util = 0.0
        self.vram_util = 0.0
        self.net_util = 0.0
        self.active_tokens = 0
        self.temp = ambient_temp

    def bring_online(self) -> None:
        self.status = NodeStatus.IDLE

    def copy(self) -> ClusterNode:
        return replace(self)


@dataclass(frozen=True)
class LogEntry:
    id: str
    tick: int
    user_id: str
    user_name: str
    user_avatar: str
    user_color: str
    kind: LogKind
    text: str
    latency_ms: float | None = None
    ttft_ms: float | None = None


SYSTEM_USER_NAME = "SYSTEM"
SYSTEM_AVATAR = "⚠️"
SYSTEM_COLOR = "#ef4444"


@dataclass
class SimulationState:
    nodes: list[ClusterNode] = field(default_factory=list)
    requests: list[RequestPacket] = field(default_factory=list)
    metrics_history: list[MetricPoint] = field(default_factory=list)
    tick: int = 0
    active_model_ids: list[str] = field(default_factory=list)
    users: list[VirtualUser] = field(default_factory=list)
    activity_log: list[LogEntry] = field(default_factory=list)
    next_user_serial: int = 1

    @property
    def workers(self) -> list[ClusterNode]:
        return [n for n in self.nodes if n.is_worker]

    @property
    def online_workers(self) -> list[ClusterNode]:
        return [n for n in self.nodes if n.is_worker and n.is_online]

    @property
    def latest_metrics(self) -> MetricPoint | None:
        return self.metrics_history[-1] if self.metrics_history else None

    def get_node(self, node_id: str) -> ClusterNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def copy(self) -> SimulationState:
        return SimulationState(
            nodes=[n.copy() for n in self.nodes],
            requests=[r.copy() for r in self.requests],
            metrics_history=list(self.metrics_history),
            tick=self.tick,
            active_model_ids=list(self.active_model_ids),
            users=[u.copy() for u in self.users],
            activity_log=list(self.activity_log),
            next_user_serial=self.next_user_serial,
        )

    @classmethod
    def initialize(cls, nodes: list[ClusterNode], active_model_ids: list[str]) -> SimulationState:
        return cls(nodes=nodes, active_model_ids=list(active_model_ids))
