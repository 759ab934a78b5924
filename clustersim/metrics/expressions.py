from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

import sympy
from sympy import Max, Piecewise, ceiling, log

from clustersim.config.simulation import SimulationConfig
from clustersim.symbolic.symbols import ConfigSymbols

if TYPE_CHECKING:
    from clustersim.config.cluster import GPUSpec
    from clustersim.config.model import ModelConfig
    from clustersim.config.network import NetworkFabric


def exact(value: float) -> sympy.Expr:
    return sympy.nsimplify(value, rational=True)


@dataclass
class LatencyExpressions:
    transfer_ticks: sympy.Expr
    prefill_ticks: sympy.Expr
    decode_ticks: sympy.Expr
    ttft_ms: sympy.Expr
    e2e_latency_ms: sympy.Expr
    throttle_factor: sympy.Expr

    def as_dict(self) -> dict[str, sympy.Expr]:
        return {
            "transfer_ticks": self.transfer_ticks,
            "prefill_ticks": self.prefill_ticks,
            "decode_ticks": self.decode_ticks,
            "ttft_ms": self.ttft_ms,
            "e2e_latency_ms": self.e2e_latency_ms,
            "throttle_factor": self.throttle_factor,
        }


@dataclass
class LatencyEstimate:
    transfer_ticks: int
    prefill_ticks: int
    decode_ticks: int
    ttft_ms: float
    e2e_latency_ms: float

    @property
    def total_ticks(self) -> int:
        return self.transfer_ticks + self.prefill_ticks + self.decode_ticks


class SymbolicLatencyModel:
    """Closed-form tick counts for one request crossing the pipeline.

    A request advances in the tick it is created, so a request needing ``k``
    transfer, ``m`` prefill and ``d`` decode ticks finishes ``k + m + d - 1``
    ticks after it started.
    """

    def __init__(self, symbols: ConfigSymbols | None = None, config: SimulationConfig | None = None):
        self.symbols = symbols or ConfigSymbols()
        self.config = config or SimulationConfig.default()
        self._cache: dict[str, sympy.Expr] = {}

    @property
    def tick_ms(self) -> sympy.Expr:
        return 1000 / self.symbols.ticks_per_sec

    def transfer_ticks_expression(self) -> sympy.Expr:
        if "transfer_ticks" in self._cache:
            return self._cache["transfer_ticks"]
        s = self.symbols
        speed = s.transfer_base_speed / Max(1, log(s.latency_factor, 2))
        expr = ceiling(100 / speed)
        self._cache["transfer_ticks"] = expr
        return expr

    def prefill_ticks_expression(self) -> sympy.Expr:
        if "prefill_ticks" in self._cache:
            return self._cache["prefill_ticks"]
        s = self.symbols
        tokens_per_tick = (
            s.tokens_per_sec * s.prefill_amplification * s.throttle * s.perf_factor / s.ticks_per_sec
        )
        expr = ceiling(s.prompt_tokens / tokens_per_tick)
        self._cache["prefill_ticks"] = expr
        return expr

    def decode_ticks_expression(self) -> sympy.Expr:
        if "decode_ticks" in self._cache:
            return self._cache["decode_ticks"]
        s = self.symbols
        tokens_per_tick = s.tokens_per_sec * s.throttle * s.perf_factor / s.ticks_per_sec
        expr = ceiling(s.output_tokens / tokens_per_tick)
        self._cache["decode_ticks"] = expr
        return expr

    def ttft_expression(self) -> sympy.Expr:
        if "ttft_ms" in self._cache:
            return self._cache["ttft_ms"]
        ticks = self.transfer_ticks_expression() + self.prefill_ticks_expression() - 1
        expr = ticks * self.tick_ms
        self._cache["ttft_ms"] = expr
        return expr

    def e2e_latency_expression(self) -> sympy.Expr:
        if "e2e_latency_ms" in self._cache:
            return self._cache["e2e_latency_ms"]
        ticks = (
            self.transfer_ticks_expression()
            + self.prefill_ticks_expression()
            + self.decode_ticks_expression()
            - 1
        )
        expr = ticks * self.tick_ms
        self._cache["e2e_latency_ms"] = expr
        return expr

    def throttle_expression(self) -> sympy.Expr:
        if "throttle_factor" in self._cache:
            return self._cache["throttle_factor"]
        s = self.symbols
        expr = Piecewise(
            (s.fabric_capacity / s.peak_demand, s.peak_demand > s.fabric_capacity),
            (1, True),
        )
        self._cache["throttle_factor"] = expr
        return expr

    def build_all_expressions(self) -> LatencyExpressions:
        return LatencyExpressions(
            transfer_ticks=self.transfer_ticks_expression(),
            prefill_ticks=self.prefill_ticks_expression(),
            decode_ticks=self.decode_ticks_expression(),
            ttft_ms=self.ttft_expression(),
            e2e_latency_ms=self.e2e_latency_expression(),
            throttle_factor=self.throttle_expression(),
        )

    def get_expression(self, name: str) -> sympy.Expr:
        builders = {
            "transfer_ticks": self.transfer_ticks_expression,
            "prefill_ticks": self.prefill_ticks_expression,
            "decode_ticks": self.decode_ticks_expression,
            "ttft_ms": self.ttft_expression,
            "e2e_latency_ms": self.e2e_latency_expression,
            "throttle_factor": self.throttle_expression,
        }
        if name not in builders:
            raise ValueError(f"Unknown expression: {name}")
        return builders[name]()

    def clear_cache(self) -> None:
        self._cache.clear()

    def substitutions(
        self,
        model: ModelConfig,
        fabric: NetworkFabric,
        gpu: GPUSpec,
        prompt_tokens: int,
        output_tokens: int,
        throttle: float = 1.0,
    ) -> dict[sympy.Symbol, sympy.Expr]:
        """Exact rational values, so ``ceiling`` sees whole stage counts as whole."""
        s = self.symbols
        return {
            s.latency_factor: exact(fabric.latency_factor),
            s.fabric_capacity: exact(fabric.bandwidth_gbps),
            s.transfer_base_speed: exact(self.config.transfer_base_speed),
            s.prefill_amplification: exact(self.config.prefill_amplification),
            s.ticks_per_sec: 1000 / exact(self.config.tick_interval_ms),
            s.throttle: exact(throttle),
            s.tokens_per_sec: exact(model.tokens_per_sec),
            s.perf_factor: exact(gpu.perf_factor),
            s.prompt_tokens: prompt_tokens,
            s.output_tokens: output_tokens,
        }

    def estimate(
        self,
        model: ModelConfig,
        fabric: NetworkFabric,
        gpu: GPUSpec,
        prompt_tokens: int,
        output_tokens: int,
        throttle: float = 1.0,
    ) -> LatencyEstimate:
        values = self.substitutions(model, fabric, gpu, prompt_tokens, output_tokens, throttle)
        transfer = int(self.transfer_ticks_expression().subs(values))
        prefill = int(self.prefill_ticks_expression().subs(values))
        decode = int(self.decode_ticks_expression().subs(values))
        tick_ms = self.config.tick_interval_ms
        return LatencyEstimate(
            transfer_ticks=transfer,
            prefill_ticks=prefill,
            decode_ticks=decode,
            ttft_ms=(transfer + prefill - 1) * tick_ms,
            e2e_latency_ms=(transfer + prefill + decode - 1) * tick_ms,
        )

    def throttle_for(self, peak_demand: float, fabric: NetworkFabric) -> float:
        s = self.symbols
        value = self.throttle_expression().subs({s.peak_demand: exact(peak_demand), s.fabric_capacity: exact(fabric.bandwidth_gbps)})
        return float(value)
