from __future__ import annotations
from typing import TYPE_CHECKING

from clustersim.metrics.expressions import SymbolicLatencyModel

if TYPE_CHECKING:
    from clustersim.config.catalog import Catalog
    from clustersim.config.simulation import SimulationConfig
    from clustersim.core.engine import Controls
    from clustersim.core.state import SimulationState

# Representative request used for the per-model estimates.
REFERENCE_PROMPT_TOKENS = 110
REFERENCE_OUTPUT_TOKENS = 200


def active_model_names(state: SimulationState, catalog: Catalog) -> str:
    ids = state.active_model_ids
    if not ids:
        return "None"
    if len(ids) <= 2:
        return " & ".join(catalog.get_model(mid).name for mid in ids)
    return f"{len(ids)} Models Active"


def build_tutor_context(
    state: SimulationState,
    catalog: Catalog,
    controls: Controls,
    config: SimulationConfig | None = None,
) -> str:
    """Plain-text description of the latest snapshot for the chat tutor."""
    fabric = catalog.get_fabric(controls.network_speed)
    online = state.online_workers
    lines = [
        f"Active Models: {active_model_names(state, catalog)}.",
        f"Cluster: {len(online)}/{len(state.workers)} workers online, fabric {fabric.name}.",
        f"Placement: {controls.placement_strategy.value}, load balancing: {controls.lb_strategy.value}.",
    ]

    latest = state.latest_metrics
    if latest is None:
        lines.append("No metrics yet.")
    else:
        lines.append(
            f"Throughput: {latest.total_throughput:.0f} tok/s. "
            f"Latency: {latest.avg_latency_ms:.0f} ms. TTFT: {latest.avg_ttft_ms:.0f} ms."
        )
        lines.append(
            f"GPU util: {latest.cluster_utilization:.1f}%. Queue: {latest.queue_depth}. "
            f"Throttle: {latest.throttle_factor:.2f}. Cost: ${latest.estimated_cost_per_hour:.2f}/h."
        )

    if online:
        gpu = catalog.get_gpu(online[0].gpu_type)
        latency_model = SymbolicLatencyModel(config=config)
        for model_id in state.active_model_ids:
            model = catalog.get_model(model_id)
            estimate = latency_model.estimate(
                model, fabric, gpu, REFERENCE_PROMPT_TOKENS, REFERENCE_OUTPUT_TOKENS
            )
            lines.append(
                f"Uncontended estimate for {model.name} on {gpu.key}: "
                f"TTFT {estimate.ttft_ms:.0f} ms, latency {estimate.e2e_latency_ms:.0f} ms."
            )

    return "\n".join(lines)
