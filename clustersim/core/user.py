from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class UserState(Enum):
    IDLE = "idle"  # thinking
    COMPOSING = "composing"  # typing a prompt
    WAITING = "waiting"  # request in flight
    READING = "reading"  # reading the response


@dataclass
class VirtualUser:
    id: str
    name: str
    avatar: str
    color: str
    state: UserState = UserState.IDLE
    timer: int = 0
    current_request_id: str | None = None
    total_cost: float = 0.0
    total_tokens: int = 0
    request_count: int = 0

    @property
    def is_idle(self) -> bool:
        return self.state is UserState.IDLE

    def become(self, state: UserState, timer: int = 0) -> None:
        self.state = state
        self.timer = timer
        if state is not UserState.WAITING:
            self.current_request_id = None

    def copy(self) -> VirtualUser:
        return replace(self)
