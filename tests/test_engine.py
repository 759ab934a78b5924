import random

import pytest

from clustersim.config.catalog import Catalog
from clustersim.config.cluster import GPUSpec, HardwareTemplate
from clustersim.config.model import ModelConfig
from clustersim.config.network import NetworkFabric, NetworkSpeed
from clustersim.config.simulation import SimulationConfig
from clustersim.config.workload import PromptTemplate
from clustersim.core.engine import Controls, SimulationEngine, SimulationResult, calculate_next_tick
from clustersim.core.state import LogKind, NodeStatus, SimulationState
from clustersim.core.user import UserState
from clustersim.errors import CatalogLookupError, ConfigurationError
from clustersim.metrics.summary import build_tutor_context
from clustersim.routing.load_balancing import LoadBalancingStrategy
from clustersim.routing.placement import PlacementStrategy
from clustersim.topology.builder import build_homogeneous


def catalog_with(*models, prompts=None):
    return Catalog.from_entries(
        models=list(models),
        gpus=GPUSpec.builtin(),
        fabrics=NetworkFabric.builtin(),
        templates=HardwareTemplate.builtin(),
        prompts=prompts or PromptTemplate.builtin(),
    )


def sharded_model(tp_size, tokens_per_sec=50):
    return ModelConfig(
        id=f"sharded-tp{tp_size}",
        name=f"Sharded TP{tp_size}",
        param_size="400B",
        vram_required_gb=60 * tp_size,
        tp_size=tp_size,
        tokens_per_sec=tokens_per_sec,
        cost_per_1k_tokens=0.01,
    )


def run_until(engine, predicate, max_ticks=500):
    for _ in range(max_ticks):
        engine.step()
        if predicate(engine.state):
            return True
    return False


class TestCalculateNextTick:
    def setup_method(self):
        self.catalog = Catalog.default()
        self.controls = Controls(target_user_count=10)
        self.engine = SimulationEngine(self.catalog, controls=self.controls, seed=5)
        assert run_until(self.engine, lambda s: bool(s.requests))

    def test_input_state_is_not_mutated(self):
        state = self.engine.state
        assert state.requests
        before = state.copy()
        calculate_next_tick(state, self.controls, self.catalog, rng=random.Random(1))
        assert state.tick == before.tick
        assert state.requests == before.requests
        assert state.nodes == before.nodes
        assert state.users == before.users
        assert len(state.metrics_history) == len(before.metrics_history)

    def test_tick_advances_and_history_grows(self):
        result = calculate_next_tick(self.engine.state, self.controls, self.catalog, rng=random.Random(1))
        assert result.state.tick == self.engine.state.tick + 1
        assert result.state.metrics_history[-1].tick == result.state.tick
        assert len(result.state.metrics_history) == len(self.engine.state.metrics_history) + 1

    def test_round_robin_cursor_returned(self):
        controls = Controls(target_user_count=10, lb_strategy=LoadBalancingStrategy.ROUND_ROBIN)
        state = self.engine.state
        cursors = set()
        for _ in range(200):
            result = calculate_next_tick(state, controls, self.catalog, rr_cursor=0, rng=random.Random(2))
            state = result.state
            cursors.add(result.rr_cursor)
        assert cursors != {0}

    def test_same_seed_same_result(self):
        first = calculate_next_tick(self.engine.state, self.controls, self.catalog, rng=random.Random(9))
        second = calculate_next_tick(self.engine.state, self.controls, self.catalog, rng=random.Random(9))
        assert first.state.users == second.state.users
        assert first.state.requests == second.state.requests

    def test_empty_cluster_state(self):
        state = SimulationState.initialize(build_homogeneous(2, 1, "A100", self.catalog), ["tiny-llama"])
        result = calculate_next_tick(state, Controls(target_user_count=3), self.catalog)
        assert len(result.state.users) == 3
        assert result.state.next_user_serial == 4


class TestSimulationEngine:
    def setup_method(self):
        self.engine = SimulationEngine(controls=Controls(target_user_count=20), seed=11)

    def test_defaults(self):
        assert len(self.engine.state.workers) == 10
        assert self.engine.state.active_model_ids == ["tiny-llama"]
        assert not self.engine.is_running

    def test_run_returns_summary(self):
        result = self.engine.run(400)
        assert isinstance(result, SimulationResult)
        assert result.ticks_run == 400
        assert result.completed_requests > 0
        assert result.avg_latency_ms > 0
        assert result.total_user_cost > 0
        assert self.engine.state.tick == 400

    def test_history_and_log_are_bounded(self):
        config = SimulationConfig(history_length=10, activity_log_length=5)
        engine = SimulationEngine(config=config, controls=Controls(target_user_count=20), seed=1)
        engine.run(300)
        assert len(engine.state.metrics_history) == 10
        assert len(engine.state.activity_log) == 5
        ticks = [entry.tick for entry in engine.state.activity_log]
        assert ticks == sorted(ticks, reverse=True)

    def test_metrics_stay_in_bounds(self):
        for _ in range(300):
            self.engine.step()
            for node in self.engine.state.nodes:
                assert 0 <= node.gpu_util <= 100
                assert 0 <= node.vram_util <= 100
                assert 0 <= node.net_util <= 100

    def test_population_follows_target(self):
        self.engine.step()
        assert len(self.engine.state.users) == 20
        self.engine.update_controls(target_user_count=4)
        self.engine.step()
        assert len(self.engine.state.users) == 4

    def test_rebuild_topology_clears_requests_and_history(self):
        self.engine.run(150)
        self.engine.start()
        self.engine.rebuild_topology(3, 8, "H100")
        state = self.engine.state
        assert self.engine.is_running
        assert state.requests == []
        assert state.metrics_history == []
        assert state.tick == 0
        assert [n.id for n in state.workers] == ["server-1", "server-2", "server-3"]

    def test_rebuild_releases_waiting_users(self):
        assert run_until(self.engine, lambda s: any(u.state == UserState.WAITING for u in s.users))
        self.engine.rebuild_topology(2, 2, "A100")
        self.engine.step()
        live = {r.id for r in self.engine.state.requests}
        waiting = [u for u in self.engine.state.users if u.state == UserState.WAITING]
        assert all(u.current_request_id in live for u in waiting)

    def test_apply_template(self):
        self.engine.apply_template("dense-l40s")
        assert len(self.engine.state.workers) == 20
        assert all(n.gpu_type == "L40S" for n in self.engine.state.workers)

    def test_toggle_node_offline_resets_metrics(self):
        self.engine.run(200)
        node = self.engine.toggle_node_status("server-1")
        assert node.status == NodeStatus.OFFLINE
        assert node.gpu_util == 0
        assert node.vram_util == 0
        assert node.net_util == 0
        assert node.temp == self.engine.config.ambient_temp

        node = self.engine.toggle_node_status("server-1")
        assert node.status == NodeStatus.IDLE

    def test_toggle_does_not_mutate_previous_snapshot(self):
        before = self.engine.state
        self.engine.toggle_node_status("server-2")
        assert before.get_node("server-2").status != NodeStatus.OFFLINE

    def test_toggle_unknown_node(self):
        with pytest.raises(CatalogLookupError):
            self.engine.toggle_node_status("server-99")

    def test_toggle_head_node(self):
        with pytest.raises(ConfigurationError):
            self.engine.toggle_node_status("head-1")

    def test_toggle_model(self):
        self.engine.run(100)
        assert self.engine.toggle_model("gemma-2-27b") == ["tiny-llama", "gemma-2-27b"]
        assert self.engine.state.requests == []
        assert self.engine.state.activity_log == []
        assert self.engine.toggle_model("tiny-llama") == ["gemma-2-27b"]
        assert self.engine.toggle_model("gemma-2-27b") == ["gemma-2-27b"]

    def test_unknown_model_rejected(self):
        with pytest.raises(CatalogLookupError):
            self.engine.set_active_models(["gpt-17"])
        with pytest.raises(CatalogLookupError):
            SimulationEngine(active_model_ids=["gpt-17"])

    def test_empty_model_list_rejected(self):
        with pytest.raises(ConfigurationError):
            self.engine.set_active_models([])
        with pytest.raises(ConfigurationError):
            SimulationEngine(active_model_ids=[])

    def test_update_controls(self):
        controls = self.engine.update_controls(
            network_speed=NetworkSpeed.ETH_100G,
            placement_strategy=PlacementStrategy.SPREAD,
        )
        assert controls.network_speed == NetworkSpeed.ETH_100G
        assert self.engine.controls.placement_strategy == PlacementStrategy.SPREAD

    def test_update_controls_validation(self):
        with pytest.raises(ConfigurationError):
            self.engine.update_controls(target_user_count=-1)
        with pytest.raises(ConfigurationError):
            self.engine.update_controls(tick_rate=5)
        assert self.engine.controls.target_user_count == 20

    def test_start_stop(self):
        self.engine.start()
        assert self.engine.is_running
        self.engine.stop()
        assert not self.engine.is_running

    def test_run_realtime_stops_after_max_ticks(self):
        config = SimulationConfig(tick_interval_ms=1)
        engine = SimulationEngine(config=config, seed=3)
        seen = []
        result = engine.run_realtime(max_ticks=5, on_tick=lambda state: seen.append(state.tick))
        assert result.ticks_run == 5
        assert seen == [1, 2, 3, 4, 5]
        assert not engine.is_running

    def test_tutor_context(self):
        assert "No metrics yet." in build_tutor_context(self.engine.state, self.engine.catalog, self.engine.controls)
        self.engine.run(50)
        context = build_tutor_context(self.engine.state, self.engine.catalog, self.engine.controls)
        assert "Active Models: TinyLlama 1.1B." in context
        assert "10/10 workers online" in context
        assert "Uncontended estimate for TinyLlama 1.1B" in context


class TestStrictPackSaturation:
    def test_full_rack_rejects_every_request(self):
        engine = SimulationEngine(
            controls=Controls(target_user_count=30, placement_strategy=PlacementStrategy.STRICT_PACK),
            nodes=build_homogeneous(4, 2, "A100", Catalog.default()),
            seed=4,
        )
        for node in engine.state.workers:
            if node.rack_id == "rack-1":
                node.gpu_util = 100.0

        rejected = 0
        for _ in range(100):
            requests_before = {r.id for r in engine.state.requests}
            failures_before = engine.placement_failures
            engine.step()
            new_requests = {r.id for r in engine.state.requests} - requests_before
            assert new_requests == set()
            rejected += engine.placement_failures - failures_before
            for node in engine.state.workers:
                if node.rack_id == "rack-1":
                    node.gpu_util = 100.0

        assert rejected > 0
        errors = [e for e in engine.state.activity_log if e.kind == LogKind.ERROR]
        assert errors
        assert all("STRICT_PACK" in e.text for e in errors)


class TestStalledRequests:
    def test_offline_cluster_logs_prompt_then_error(self):
        engine = SimulationEngine(
            controls=Controls(target_user_count=1),
            nodes=build_homogeneous(1, 1, "A100", Catalog.default()),
            seed=8,
        )
        engine.toggle_node_status("server-1")
        assert run_until(engine, lambda s: bool(s.activity_log))
        error, prompt = engine.state.activity_log[:2]
        assert error.kind == LogKind.ERROR
        assert error.text == "Request Failed: Cluster Offline."
        assert prompt.kind == LogKind.PROMPT
        assert prompt.user_id == "user-1"
        assert engine.placement_failures == 1

    def test_offline_node_times_out_request(self):
        config = SimulationConfig(stall_timeout_ticks=10)
        engine = SimulationEngine(
            config=config,
            controls=Controls(target_user_count=1),
            nodes=build_homogeneous(1, 1, "A100", Catalog.default()),
            seed=8,
        )
        assert run_until(engine, lambda s: bool(s.requests))
        user = engine.state.users[0]
        assert user.state == UserState.WAITING

        engine.toggle_node_status("server-1")
        engine.run(10)

        assert engine.timed_out_requests == 1
        assert engine.state.requests == []
        assert engine.state.users[0].state != UserState.WAITING
        texts = [e.text for e in engine.state.activity_log]
        assert "Request Failed: Assigned node(s) went offline." in texts


class TestEndToEnd:
    def test_single_user_is_billed_exactly(self):
        catalog = Catalog.default()
        model = catalog.get_model("tiny-llama")
        engine = SimulationEngine(
            catalog,
            controls=Controls(target_user_count=1, lb_strategy=LoadBalancingStrategy.RANDOM),
            nodes=build_homogeneous(10, 1, "A100", catalog),
            seed=21,
        )
        assert run_until(engine, lambda s: s.users and s.users[0].request_count == 1)

        user = engine.state.users[0]
        valid_totals = {p.prompt_tokens + p.output_tokens for p in catalog.prompts}
        assert user.total_tokens in valid_totals
        assert user.total_cost == pytest.approx(user.total_tokens / 1000 * model.cost_per_1k_tokens)
        assert user.state == UserState.READING
        assert engine.state.activity_log[0].kind == LogKind.RESPONSE

    def test_tensor_parallel_group_uses_every_worker(self):
        model = sharded_model(10)
        catalog = catalog_with(model)
        engine = SimulationEngine(
            catalog,
            controls=Controls(target_user_count=1),
            nodes=build_homogeneous(10, 1, "A100", catalog),
            active_model_ids=[model.id],
            seed=2,
        )
        assert run_until(engine, lambda s: bool(s.requests))
        request = engine.state.requests[0]
        assert set(request.target_node_ids) == {n.id for n in engine.state.workers}
        assert request.target_node_id is None

    def test_tensor_parallel_fails_with_node_offline(self):
        model = sharded_model(10)
        catalog = catalog_with(model)
        engine = SimulationEngine(
            catalog,
            controls=Controls(target_user_count=1),
            nodes=build_homogeneous(10, 1, "A100", catalog),
            active_model_ids=[model.id],
            seed=2,
        )
        engine.toggle_node_status("server-7")
        assert run_until(engine, lambda s: any(e.kind == LogKind.ERROR for e in s.activity_log))
        assert engine.state.requests == []
        assert engine.placement_failures == 1
        assert engine.state.activity_log[0].text == "Placement Failed: Insufficient healthy nodes for TP=10"

    def test_slower_fabric_raises_latency(self):
        model = sharded_model(2, tokens_per_sec=500)
        catalog = catalog_with(model, prompts=[PromptTemplate("Ping", 40)])
        engine = SimulationEngine(
            catalog,
            controls=Controls(target_user_count=4, network_speed=NetworkSpeed.IB_400G),
            active_model_ids=[model.id],
            seed=13,
        )
        engine.run(300)
        baseline = engine.state.latest_metrics.avg_latency_ms
        assert engine.completed_requests > 0

        engine.update_controls(network_speed=NetworkSpeed.ETH_10G)
        latencies = [engine.step().avg_latency_ms for _ in range(100)]
        assert latencies[-1] > baseline
