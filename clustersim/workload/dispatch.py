from __future__ import annotations
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from clustersim.core.request import RequestPacket

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog
    from clustersim.core.state import ClusterNode
    from clustersim.core.user import VirtualUser
    from clustersim.routing.router import Router


CLUSTER_OFFLINE_MESSAGE = "Request Failed: Cluster Offline."


@dataclass
class DispatchOutcome:
    request: RequestPacket | None = None
    prompt_text: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.request is not None

    @property
    def skipped(self) -> bool:
        # No active model to ask: not an error, the user just goes back to idle.
        return self.request is None and self.error is None


class RequestDispatcher:
    """Turns a user's finished prompt into a placed request, or a placement fault."""

    def __init__(self, catalog: Catalog, router: Router, rng: random.Random | None = None):
        self.catalog = catalog
        self.router = router
        self.rng = rng or random.Random()

    def dispatch(
        self,
        user: VirtualUser,
        tick: int,
        active_model_ids: list[str],
        online_workers: list[ClusterNode],
        live_requests: list[RequestPacket],
    ) -> DispatchOutcome:
        if not active_model_ids:
            return DispatchOutcome()

        prompt = self.rng.choice(self.catalog.prompts)
        model = self.catalog.get_model(self.rng.choice(active_model_ids))

        if not online_workers:
            return DispatchOutcome(prompt_text=prompt.text, error=CLUSTER_OFFLINE_MESSAGE)

        placement = self.router.place(model, online_workers, live_requests)
        if not placement.success:
            return DispatchOutcome(prompt_text=prompt.text, error=placement.reason)

        request = RequestPacket(
            id=f"req-{tick}-{user.id}",
            model_id=model.id,
            user_id=user.id,
            prompt_tokens=prompt.prompt_tokens,
            output_tokens=prompt.output_tokens,
            parallel_shards=model.tp_size,
            start_tick=tick,
            color=user.color,
            target_node_id=placement.target_node_id,
            target_node_ids=placement.target_node_ids,
        )
        return DispatchOutcome(request=request, prompt_text=prompt.text)
