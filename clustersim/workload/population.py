from __future__ import annotations
import logging
import random
from typing import TYPE_CHECKING, Callable

from clustersim.core import activity
from clustersim.core.user import UserState, VirtualUser

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog
    from clustersim.config.simulation import SimulationConfig
    from clustersim.core.pipeline import PipelineResult
    from clustersim.core.state import LogEntry
    from clustersim.workload.dispatch import DispatchOutcome

logger = logging.getLogger(__name__)


class PopulationManager:
    """Keeps the synthetic user population at its target size and runs each
    user's idle -> composing -> waiting -> reading cycle.

    Waiting users have no timer; they leave that state only when their
    request finishes (or disappears) in the pipeline.
    """

    def __init__(self, catalog: Catalog, config: SimulationConfig, rng: random.Random | None = None):
        self.catalog = catalog
        self.config = config
        self.rng = rng or random.Random()

    def random_idle_timer(self) -> int:
        return self.rng.randint(self.config.idle_timer_min, self.config.idle_timer_max)

    def create_user(self, user_id: str) -> VirtualUser:
        return VirtualUser(
            id=user_id,
            name=self.rng.choice(self.catalog.user_names),
            avatar=self.rng.choice(self.catalog.user_avatars),
            color=f"hsl({self.rng.randrange(360)}, 80%, 65%)",
            state=UserState.IDLE,
            timer=self.random_idle_timer(),
        )

    def resize(
        self,
        users: list[VirtualUser],
        target: int,
        next_serial: int = 1,
    ) -> tuple[list[VirtualUser], int]:
        """Grow or shrink ``users`` to ``target``. Returns the users and the next free id serial."""
        target = max(0, target)
        if len(users) < target:
            missing = target - len(users)
            new_users = [self.create_user(f"user-{next_serial + i}") for i in range(missing)]
            return [*users, *new_users], next_serial + missing

        resized = list(users)
        excess = len(resized) - target
        # Drop idle users from the back first, then truncate whatever is left.
        for i in range(len(resized) - 1, -1, -1):
            if excess <= 0:
                break
            if resized[i].is_idle:
                del resized[i]
                excess -= 1
        return resized[:target], next_serial

    def advance_users(
        self,
        users: list[VirtualUser],
        tick: int,
        dispatch: Callable[[VirtualUser], DispatchOutcome],
    ) -> list[LogEntry]:
        entries: list[LogEntry] = []
        for user in users:
            entries.extend(self.advance_user(user, tick, dispatch))
        return entries

    def advance_user(
        self,
        user: VirtualUser,
        tick: int,
        dispatch: Callable[[VirtualUser], DispatchOutcome],
    ) -> list[LogEntry]:
        cfg = self.config

        if user.state is UserState.IDLE:
            user.timer -= 1
            if user.timer <= 0:
                user.become(UserState.COMPOSING, cfg.composing_ticks)
            return []

        elif user.state is UserState.COMPOSING:
            user.timer -= 1
            if user.timer > 0:
                return []
            return self._send(user, tick, dispatch)

        elif user.state is UserState.WAITING:
            return []

        elif user.state is UserState.READING:
            user.timer -= 1
            if user.timer <= 0:
                user.become(UserState.IDLE, self.random_idle_timer())
            return []

        raise ValueError(f"Unhandled user state: {user.state}")

    def _send(
        self,
        user: VirtualUser,
        tick: int,
        dispatch: Callable[[VirtualUser], DispatchOutcome],
    ) -> list[LogEntry]:
        outcome = dispatch(user)
        entries: list[LogEntry] = []
        if outcome.prompt_text is not None:
            entries.append(activity.prompt_entry(user, outcome.prompt_text, tick))

        if outcome.skipped:
            user.become(UserState.IDLE, self.config.no_model_penalty_ticks)
        elif outcome.success:
            user.become(UserState.WAITING)
            user.current_request_id = outcome.request.id
        else:
            logger.debug("User %s request rejected: %s", user.id, outcome.error)
            entries.append(activity.error_entry(user, outcome.error, tick))
            user.become(UserState.IDLE, self.config.placement_penalty_ticks)
        return entries

    def complete_requests(
        self,
        users: list[VirtualUser],
        pipeline: PipelineResult,
        live_request_ids: set[str],
        tick: int,
    ) -> list[LogEntry]:
        """Bill users whose request finished; release those whose request is gone."""
        entries: list[LogEntry] = []
        timed_out = {r.id for r in pipeline.timed_out}

        for user in users:
            if user.state is not UserState.WAITING:
                continue
            request_id = user.current_request_id

            if request_id in pipeline.finished:
                request = pipeline.finished[request_id]
                model = self.catalog.get_model(request.model_id)
                latency = pipeline.latencies_ms[request_id]
                entries.append(activity.response_entry(user, tick, latency, request.ttft_ms or 0.0))
                user.total_cost += model.cost_for_tokens(request.total_tokens)
                user.total_tokens += request.total_tokens
                user.request_count += 1
                user.become(UserState.READING, self.config.reading_ticks)

            elif request_id in timed_out:
                entries.append(
                    activity.error_entry(user, "Request Failed: Assigned node(s) went offline.", tick)
                )
                user.become(UserState.IDLE, self.config.placement_penalty_ticks)

            elif request_id not in live_request_ids:
                # Cleared by a reconfiguration.
                user.become(UserState.IDLE, self.config.placement_penalty_ticks)

        return entries
