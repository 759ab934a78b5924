import math

import pytest

from clustersim.config.catalog import Catalog
from clustersim.config.network import NetworkSpeed
from clustersim.config.simulation import SimulationConfig
from clustersim.core.pipeline import RequestPipeline
from clustersim.core.request import RequestPacket, RequestStage
from clustersim.core.state import NodeStatus
from clustersim.network.interconnect import InterconnectModel
from clustersim.topology.builder import build_from_template, build_homogeneous


def make_request(node_id="server-1", model_id="tiny-llama", prompt_tokens=85, output_tokens=150, **kwargs):
    return RequestPacket(
        id=kwargs.pop("id", "req-0-user-1"),
        model_id=model_id,
        user_id="user-1",
        prompt_tokens=prompt_tokens,
        output_tokens=output_tokens,
        parallel_shards=1,
        start_tick=0,
        target_node_id=node_id,
        **kwargs,
    )


class TestRequestStage:
    def test_forward_order(self):
        assert RequestStage.TRANSFER.next_stage == RequestStage.PREFILL
        assert RequestStage.PREFILL.next_stage == RequestStage.DECODE
        assert RequestStage.DECODE.next_stage is None


class TestRequestPipeline:
    def setup_method(self):
        self.catalog = Catalog.default()
        self.config = SimulationConfig.default()
        self.nodes = build_homogeneous(4, 2, "A100", self.catalog, self.config)
        self.pipeline = self.make_pipeline(NetworkSpeed.IB_400G)

    def make_pipeline(self, speed, config=None):
        config = config or self.config
        interconnect = InterconnectModel(self.catalog.get_fabric(speed), config)
        return RequestPipeline(self.catalog, config, interconnect)

    def run(self, pipeline, request, ticks, throttle=1.0):
        requests = [request]
        results = []
        for tick in range(ticks):
            result = pipeline.step(requests, self.nodes, tick, throttle)
            results.append(result)
            requests = result.requests
        return results

    def test_transfer_speed_by_fabric(self):
        ib = self.make_pipeline(NetworkSpeed.IB_400G).interconnect
        eth = self.make_pipeline(NetworkSpeed.ETH_10G).interconnect
        assert ib.transfer_speed() == pytest.approx(20.0)
        assert eth.transfer_speed() == pytest.approx(20.0 / math.log2(50))

    def test_stages_move_forward_and_reset_progress(self):
        request = make_request()
        seen = []
        requests = [request]
        for tick in range(16):
            before = (request.stage, request.progress)
            requests = self.pipeline.step(requests, self.nodes, tick, 1.0).requests
            after = (request.stage, request.progress)
            seen.append(request.stage)
            if after[0] is before[0]:
                assert after[1] >= before[1]
            else:
                assert after[0] is before[0].next_stage
                assert after[1] == 0.0

        assert seen[:4] == [RequestStage.TRANSFER] * 4
        assert seen[4] == RequestStage.PREFILL
        assert seen[5] == RequestStage.DECODE
        assert requests == [request]

    def test_ttft_and_latency(self):
        results = self.run(self.pipeline, make_request(), 17)
        assert results[5].ttfts_ms == [400.0]
        assert "req-0-user-1" in results[16].finished
        assert results[16].latencies_ms["req-0-user-1"] == pytest.approx(16 * 80)
        assert results[16].requests == []
        assert results[16].completed_latencies == [pytest.approx(1280)]

    def test_finished_request_keeps_full_progress(self):
        results = self.run(self.pipeline, make_request(), 17)
        finished = results[16].finished["req-0-user-1"]
        assert finished.progress == 100.0
        assert finished.ttft_ms == 400.0

    def test_throttle_slows_decode(self):
        fast = make_request(stage=RequestStage.DECODE)
        slow = make_request(stage=RequestStage.DECODE)
        self.pipeline.step([fast], self.nodes, 1, 1.0)
        self.pipeline.step([slow], self.nodes, 1, 0.25)
        assert 0 < slow.progress < fast.progress
        assert slow.progress == pytest.approx(fast.progress * 0.25)

    def test_faster_gpu_prefills_faster(self):
        request = make_request(stage=RequestStage.PREFILL, prompt_tokens=2000)
        model = self.catalog.get_model("tiny-llama")
        a100 = self.pipeline.tokens_per_tick(model, 1.0, 1.0, 20)
        h100 = self.pipeline.tokens_per_tick(model, 2.5, 1.0, 20)
        assert h100 == pytest.approx(a100 * 2.5)
        self.pipeline.step([request], self.nodes, 1, 1.0)
        assert request.progress == pytest.approx(a100 / 2000 * 100)

    def test_group_runs_at_slowest_gpu(self):
        nodes = build_from_template("hybrid-cluster", self.catalog)
        by_id = {n.id: n for n in nodes}
        request = make_request(node_id=None, target_node_ids=("server-1", "server-11"))
        assert self.pipeline.host_perf(request, by_id) == pytest.approx(0.8)

    def test_offline_node_stalls_request(self):
        request = make_request(stage=RequestStage.PREFILL, progress=40.0, prompt_tokens=5000)
        self.nodes[1].take_offline(20.0)
        result = self.pipeline.step([request], self.nodes, 3, 1.0)
        assert result.requests == [request]
        assert request.progress == 40.0
        assert request.stalled_ticks == 1

    def test_stall_counter_resets_when_node_returns(self):
        request = make_request(stage=RequestStage.PREFILL, prompt_tokens=5000)
        self.nodes[1].take_offline(20.0)
        self.pipeline.step([request], self.nodes, 1, 1.0)
        self.nodes[1].bring_online()
        self.pipeline.step([request], self.nodes, 2, 1.0)
        assert request.stalled_ticks == 0
        assert request.progress > 0

    def test_one_offline_shard_stalls_group(self):
        request = make_request(node_id=None, target_node_ids=("server-1", "server-2"))
        self.nodes[2].status = NodeStatus.OFFLINE
        assert self.pipeline.is_stalled(request, {n.id: n for n in self.nodes})

    def test_stalled_request_times_out(self):
        config = SimulationConfig(stall_timeout_ticks=3)
        pipeline = self.make_pipeline(NetworkSpeed.IB_400G, config)
        request = make_request()
        self.nodes[1].take_offline(20.0)
        results = self.run(pipeline, request, 3)
        assert results[1].requests == [request]
        assert results[2].timed_out == [request]
        assert results[2].requests == []

    def test_stall_without_timeout_never_fails(self):
        pipeline = self.make_pipeline(NetworkSpeed.IB_400G, SimulationConfig.without_stall_timeout())
        request = make_request()
        self.nodes[1].take_offline(20.0)
        results = self.run(pipeline, request, 500)
        assert results[-1].requests == [request]
        assert all(not r.timed_out for r in results)
        assert request.stalled_ticks == 500

    def test_unknown_node_counts_as_stalled(self):
        request = make_request(node_id="server-99")
        assert self.pipeline.is_stalled(request, {n.id: n for n in self.nodes})
