from __future__ import annotations
from typing import TYPE_CHECKING

from clustersim.core.state import (
    LogEntry,
    LogKind,
    SYSTEM_AVATAR,
    SYSTEM_COLOR,
    SYSTEM_USER_NAME,
)

if TYPE_CHECKING:
    from clustersim.core.user import VirtualUser


def prompt_entry(user: VirtualUser, text: str, tick: int) -> LogEntry:
    return LogEntry(
        id=f"log-{tick}-{user.id}",
        tick=tick,
        user_id=user.id,
        user_name=user.name,
        user_avatar=user.avatar,
        user_color=user.color,
        kind=LogKind.PROMPT,
        text=text,
    )


def response_entry(user: VirtualUser, tick: int, latency_ms: float, ttft_ms: float) -> LogEntry:
    return LogEntry(
        id=f"log-resp-{tick}-{user.id}",
        tick=tick,
        user_id=user.id,
        user_name=user.name,
        user_avatar=user.avatar,
        user_color=user.color,
        kind=LogKind.RESPONSE,
        text="Response received",
        latency_ms=latency_ms,
        ttft_ms=ttft_ms,
    )


def error_entry(user: VirtualUser, text: str, tick: int) -> LogEntry:
    return LogEntry(
        id=f"log-err-{tick}-{user.id}",
        tick=tick,
        user_id=user.id,
        user_name=SYSTEM_USER_NAME,
        user_avatar=SYSTEM_AVATAR,
        user_color=SYSTEM_COLOR,
        kind=LogKind.ERROR,
        text=text,
    )


def prepend_entries(log: list[LogEntry], new_entries: list[LogEntry], max_length: int) -> list[LogEntry]:
    """Newest first: ``new_entries`` is in chronological order."""
    return [*reversed(new_entries), *log][:max_length]
