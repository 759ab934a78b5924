from __future__ import annotations
import logging
import random
import time
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Callable, Iterator

from clustersim.config.catalog import Catalog
from clustersim.config.network import NetworkSpeed
from clustersim.config.simulation import SimulationConfig
from clustersim.core import activity
from clustersim.core.pipeline import RequestPipeline
from clustersim.core.state import ClusterNode, SimulationState
from clustersim.core.user import VirtualUser
from clustersim.errors import CatalogLookupError, ConfigurationError
from clustersim.metrics.definitions import MetricPoint, append_bounded
from clustersim.metrics.telemetry import TelemetryAggregator
from clustersim.network.interconnect import InterconnectModel
from clustersim.routing.load_balancing import LoadBalancer, LoadBalancingStrategy
from clustersim.routing.placement import PlacementPolicy, PlacementStrategy
from clustersim.routing.router import Router
from clustersim.topology.builder import build_from_template, build_homogeneous
from clustersim.workload.dispatch import DispatchOutcome, RequestDispatcher
from clustersim.workload.population import PopulationManager

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "tiny-llama"


@dataclass
class Controls:
    target_user_count: int = 5
    lb_strategy: LoadBalancingStrategy = LoadBalancingStrategy.RANDOM
    network_speed: NetworkSpeed = NetworkSpeed.IB_400G
    placement_strategy: PlacementStrategy = PlacementStrategy.PACK


@dataclass
class TickResult:
    state: SimulationState
    rr_cursor: int
    throttle_factor: float = 1.0
    completed_requests: int = 0
    placement_failures: int = 0
    timed_out_requests: int = 0


@dataclass
class SimulationResult:
    ticks_run: int
    completed_requests: int
    placement_failures: int
    timed_out_requests: int
    live_requests: int
    avg_latency_ms: float
    avg_ttft_ms: float
    peak_throughput: float
    total_user_cost: float
    total_user_tokens: int


def calculate_next_tick(
    state: SimulationState,
    controls: Controls,
    catalog: Catalog,
    config: SimulationConfig | None = None,
    rr_cursor: int = 0,
    rng: random.Random | None = None,
) -> TickResult:
    """Compute the next snapshot from ``state``. ``state`` itself is not modified."""
    config = config or SimulationConfig.default()
    rng = rng or random.Random()

    new = state.copy()
    tick = state.tick + 1

    interconnect = InterconnectModel(catalog.get_fabric(controls.network_speed), config)
    router = Router(
        PlacementPolicy(
            controls.placement_strategy,
            pack_high_water=config.pack_high_water,
            strict_pack_high_water=config.strict_pack_high_water,
        ),
        LoadBalancer(controls.lb_strategy, cursor=rr_cursor, rng=rng),
    )
    dispatcher = RequestDispatcher(catalog, router, rng)
    population = PopulationManager(catalog, config, rng)
    pipeline = RequestPipeline(catalog, config, interconnect)
    aggregator = TelemetryAggregator(catalog, config, interconnect, rng)

    users, new.next_user_serial = population.resize(
        new.users, controls.target_user_count, new.next_user_serial
    )

    online_workers = new.online_workers
    requests = new.requests
    placement_failures = 0

    def dispatch(user: VirtualUser) -> DispatchOutcome:
        nonlocal placement_failures
        outcome = dispatcher.dispatch(user, tick, new.active_model_ids, online_workers, requests)
        if outcome.success:
            requests.append(outcome.request)
        elif not outcome.skipped:
            placement_failures += 1
        return outcome

    entries = population.advance_users(users, tick, dispatch)

    demand = interconnect.node_demands(online_workers, requests, catalog)
    throttle = interconnect.throttle_factor(demand)
    result = pipeline.step(requests, new.nodes, tick, throttle)

    live_ids = {r.id for r in result.requests}
    entries.extend(population.complete_requests(users, result, live_ids, tick))

    telemetry = aggregator.update_nodes(new.nodes, result.requests, new.active_model_ids, demand)
    point = aggregator.roll_up(
        tick,
        new.nodes,
        result.requests,
        len(users),
        result,
        telemetry,
        throttle,
        state.latest_metrics,
    )

    new.tick = tick
    new.users = users
    new.requests = result.requests
    new.metrics_history = append_bounded(new.metrics_history, point, config.history_length)
    new.activity_log = activity.prepend_entries(new.activity_log, entries, config.activity_log_length)

    return TickResult(
        state=new,
        rr_cursor=router.cursor,
        throttle_factor=throttle,
        completed_requests=len(result.finished),
        placement_failures=placement_failures,
        timed_out_requests=len(result.timed_out),
    )


class SimulationEngine:
    """Owns the current snapshot and drives :func:`calculate_next_tick`.

    The engine is the only writer of its state. Reconfiguration methods pause
    the tick loop, apply the change, and resume it if it was running.
    """

    def __init__(
        self,
        catalog: Catalog | None = None,
        config: SimulationConfig | None = None,
        controls: Controls | None = None,
        nodes: list[ClusterNode] | None = None,
        active_model_ids: list[str] | None = None,
        seed: int | None = None,
    ):
        self.catalog = catalog or Catalog.default()
        self.config = config or SimulationConfig.default()
        self.controls = controls or Controls()
        self.rng = random.Random(seed)
        self.rr_cursor = 0
        self.is_running = False

        self._validate_controls(self.controls)
        if nodes is None:
            nodes = build_homogeneous(10, 2, "A100", self.catalog, self.config)
        if active_model_ids is None:
            active_model_ids = [DEFAULT_MODEL_ID]
        model_ids = self._validate_models(list(active_model_ids))
        self.state = SimulationState.initialize(nodes, model_ids)

        self.completed_requests = 0
        self.placement_failures = 0
        self.timed_out_requests = 0

    def _validate_models(self, model_ids: list[str]) -> list[str]:
        if not model_ids:
            raise ConfigurationError("At least one model must stay active")
        unique: list[str] = []
        for model_id in model_ids:
            self.catalog.get_model(model_id)
            if model_id not in unique:
                unique.append(model_id)
        return unique

    def _validate_controls(self, controls: Controls) -> None:
        if controls.target_user_count < 0:
            raise ConfigurationError(f"target_user_count must be >= 0, got {controls.target_user_count}")
        self.catalog.get_fabric(controls.network_speed)

    def start(self) -> None:
        if not self.is_running:
            logger.info("Simulation started at tick %d", self.state.tick)
        self.is_running = True

    def stop(self) -> None:
        if self.is_running:
            logger.info("Simulation stopped at tick %d", self.state.tick)
        self.is_running = False

    def step(self) -> MetricPoint:
        result = calculate_next_tick(
            self.state,
            self.controls,
            self.catalog,
            self.config,
            self.rr_cursor,
            self.rng,
        )
        self.state = result.state
        self.rr_cursor = result.rr_cursor
        self.completed_requests += result.completed_requests
        self.placement_failures += result.placement_failures
        self.timed_out_requests += result.timed_out_requests
        return self.state.metrics_history[-1]

    def run(self, num_ticks: int) -> SimulationResult:
        peak_throughput = 0.0
        for _ in range(num_ticks):
            point = self.step()
            peak_throughput = max(peak_throughput, point.total_throughput)
        return self._compute_results(num_ticks, peak_throughput)

    def run_realtime(
        self,
        max_ticks: int | None = None,
        on_tick: Callable[[SimulationState], None] | None = None,
    ) -> SimulationResult:
        """Tick every ``tick_interval_ms`` of wall time until stopped or ``max_ticks``."""
        self.start()
        interval = self.config.tick_interval_seconds
        next_fire = time.monotonic()
        ticks = 0
        peak_throughput = 0.0
        try:
            while self.is_running and (max_ticks is None or ticks < max_ticks):
                next_fire += interval
                point = self.step()
                ticks += 1
                peak_throughput = max(peak_throughput, point.total_throughput)
                if on_tick is not None:
                    on_tick(self.state)
                delay = next_fire - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
        finally:
            self.stop()
        return self._compute_results(ticks, peak_throughput)

    def _compute_results(self, ticks_run: int, peak_throughput: float) -> SimulationResult:
        latest = self.state.latest_metrics
        return SimulationResult(
            ticks_run=ticks_run,
            completed_requests=self.completed_requests,
            placement_failures=self.placement_failures,
            timed_out_requests=self.timed_out_requests,
            live_requests=len(self.state.requests),
            avg_latency_ms=latest.avg_latency_ms if latest else 0.0,
            avg_ttft_ms=latest.avg_ttft_ms if latest else 0.0,
            peak_throughput=peak_throughput,
            total_user_cost=sum(u.total_cost for u in self.state.users),
            total_user_tokens=sum(u.total_tokens for u in self.state.users),
        )

    @contextmanager
    def _reconfigure(self) -> Iterator[None]:
        was_running = self.is_running
        self.is_running = False
        try:
            yield
        finally:
            self.is_running = was_running

    def _replace_nodes(self, nodes: list[ClusterNode]) -> None:
        # Node ids change, so live requests and history would dangle.
        self.state = replace(
            self.state.copy(),
            nodes=nodes,
            requests=[],
            metrics_history=[],
            tick=0,
        )

    def rebuild_topology(self, count: int, gpus_per_node: int, gpu_type: str) -> None:
        nodes = build_homogeneous(count, gpus_per_node, gpu_type, self.catalog, self.config)
        with self._reconfigure():
            self._replace_nodes(nodes)
        logger.info("Rebuilt cluster: %d x %d %s", count, gpus_per_node, gpu_type)

    def apply_template(self, template_id: str) -> None:
        nodes = build_from_template(template_id, self.catalog, self.config)
        with self._reconfigure():
            self._replace_nodes(nodes)
        logger.info("Applied hardware template %s (%d nodes)", template_id, len(nodes))

    def toggle_node_status(self, node_id: str) -> ClusterNode:
        if self.state.get_node(node_id) is None:
            raise CatalogLookupError("node", node_id)

        with self._reconfigure():
            state = self.state.copy()
            node = state.get_node(node_id)
            if not node.is_worker:
                raise ConfigurationError("The head node cannot be taken offline")
            if node.is_online:
                node.take_offline(self.config.ambient_temp)
            else:
                node.bring_online()
            self.state = state

        logger.info("Node %s is now %s", node_id, node.status.value)
        return node

    def set_active_models(self, model_ids: list[str]) -> None:
        model_ids = self._validate_models(list(model_ids))
        with self._reconfigure():
            self.state = replace(
                self.state.copy(),
                active_model_ids=model_ids,
                requests=[],
                metrics_history=[],
                activity_log=[],
            )
        logger.info("Active models: %s", ", ".join(model_ids))

    def toggle_model(self, model_id: str) -> list[str]:
        self.catalog.get_model(model_id)
        current = list(self.state.active_model_ids)
        if model_id in current:
            if len(current) == 1:
                return current
            current.remove(model_id)
        else:
            current.append(model_id)
        self.set_active_models(current)
        return current

    def update_controls(self, **changes) -> Controls:
        known = {f.name for f in fields(Controls)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown controls: {', '.join(sorted(unknown))}")

        controls = replace(self.controls, **changes)
        self._validate_controls(controls)
        with self._reconfigure():
            self.controls = controls
        return controls
