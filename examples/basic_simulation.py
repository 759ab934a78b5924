#!/usr/bin/env python3
"""Basic simulation example showing the core workflow of the cluster simulator."""

import logging
import sys
sys.path.insert(0, "..")

from clustersim.config.catalog import Catalog
from clustersim.config.simulation import SimulationConfig
from clustersim.core.engine import Controls, SimulationEngine
from clustersim.metrics.summary import build_tutor_context
from clustersim.routing.load_balancing import LoadBalancingStrategy
from clustersim.routing.placement import PlacementStrategy


def run_basic_simulation():
    catalog = Catalog.default()
    controls = Controls(
        target_user_count=20,
        lb_strategy=LoadBalancingStrategy.LEAST_CONNECTIONS,
        placement_strategy=PlacementStrategy.PACK,
    )

    engine = SimulationEngine(
        catalog=catalog,
        config=SimulationConfig.default(),
        controls=controls,
        active_model_ids=["tiny-llama", "gemma-2-27b"],
        seed=42,
    )
    engine.apply_template("standard-a100")

    result = engine.run(num_ticks=1000)

    print("=== Simulation Results ===")
    print(f"Ticks: {result.ticks_run}")
    print(f"Completed requests: {result.completed_requests}")
    print(f"Placement failures: {result.placement_failures}")
    print(f"Live requests: {result.live_requests}")
    print(f"Peak throughput: {result.peak_throughput:.0f} tokens/sec")
    print(f"Avg latency: {result.avg_latency_ms:.0f}ms")
    print(f"Avg TTFT: {result.avg_ttft_ms:.0f}ms")
    print(f"Billed to users: ${result.total_user_cost:.4f} for {result.total_user_tokens} tokens")

    print("\n=== Tutor Context ===")
    print(build_tutor_context(engine.state, catalog, engine.controls, engine.config))

    print("\n=== Recent Activity ===")
    for entry in engine.state.activity_log[:5]:
        print(f"[{entry.tick:5d}] {entry.user_name:8s} {entry.kind.value:8s} {entry.text}")

    return result


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    run_basic_simulation()
