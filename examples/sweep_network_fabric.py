#!/usr/bin/env python3
"""Example comparing network fabrics for a sharded model, symbolically and by simulation."""

import sys
sys.path.insert(0, "..")

from clustersim.config.catalog import Catalog
from clustersim.config.network import NetworkSpeed
from clustersim.core.engine import Controls, SimulationEngine
from clustersim.metrics.expressions import SymbolicLatencyModel


def analyze_fabric_latency():
    catalog = Catalog.default()
    model = catalog.get_model("llama-405b")
    gpu = catalog.get_gpu("A100")
    latency_model = SymbolicLatencyModel()

    print("=== Symbolic Latency ===")
    print(f"e2e latency (ms) = {latency_model.e2e_latency_expression()}")
    print()

    for speed in NetworkSpeed:
        fabric = catalog.get_fabric(speed)
        # One sharded request puts its full AllReduce demand on every node.
        throttle = latency_model.throttle_for(latency_model.config.distributed_net_demand, fabric)
        estimate = latency_model.estimate(model, fabric, gpu, 110, 200, throttle=throttle)
        print(
            f"{fabric.name:18s}: throttle={throttle:.2f}, transfer={estimate.transfer_ticks:3d} ticks, "
            f"TTFT={estimate.ttft_ms:7.0f}ms, latency={estimate.e2e_latency_ms:8.0f}ms"
        )


def simulate_fabrics(num_ticks: int = 1500):
    print("\n=== Simulated (8 users, llama-405b) ===")
    for speed in NetworkSpeed:
        engine = SimulationEngine(
            controls=Controls(target_user_count=8, network_speed=speed),
            active_model_ids=["llama-405b"],
            seed=7,
        )
        result = engine.run(num_ticks)
        print(
            f"{speed.value:9s}: completed={result.completed_requests:3d}, "
            f"latency={result.avg_latency_ms:8.0f}ms, TTFT={result.avg_ttft_ms:7.0f}ms"
        )


if __name__ == "__main__":
    analyze_fabric_latency()
    simulate_fabrics()
