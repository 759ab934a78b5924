from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class RequestStage(Enum):
    TRANSFER = "transfer"  # head -> worker network hop
    PREFILL = "prefill"  # prompt processing, ends at first token
    DECODE = "decode"  # output token generation

    @property
    def next_stage(self) -> RequestStage | None:
        if self is RequestStage.TRANSFER:
            return RequestStage.PREFILL
        elif self is RequestStage.PREFILL:
            return RequestStage.DECODE
        elif self is RequestStage.DECODE:
            return None
        raise ValueError(f"Unhandled stage: {self}")


@dataclass
class RequestPacket:
    id: str
    model_id: str
    user_id: str
    prompt_tokens: int
    output_tokens: int
    parallel_shards: int
    start_tick: int
    color: str = "#ffffff"
    target_node_id: str | None = None
    target_node_ids: tuple[str, ...] = ()

    stage: RequestStage = RequestStage.TRANSFER
    progress: float = 0.0
    ttft_ms: float | None = None
    stalled_ticks: int = 0

    @property
    def node_ids(self) -> tuple[str, ...]:
        if self.target_node_ids:
            return self.target_node_ids
        if self.target_node_id is not None:
            return (self.target_node_id,)
        return ()

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.output_tokens

    def targets(self, node_id: str) -> bool:
        return node_id in self.node_ids

    def copy(self) -> RequestPacket:
        return replace(self)
