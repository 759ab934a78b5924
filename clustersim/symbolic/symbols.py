from dataclasses import dataclass
from sympy import Symbol


@dataclass
class ConfigSymbols:
    # Network fabric
    latency_factor: Symbol = Symbol("L_net", positive=True)
    fabric_capacity: Symbol = Symbol("C_net", positive=True)  # GB/s per node
    peak_demand: Symbol = Symbol("D_max", nonnegative=True)  # GB/s, busiest node

    # Pipeline pacing
    transfer_base_speed: Symbol = Symbol("v_xfer", positive=True)  # % per tick
    prefill_amplification: Symbol = Symbol("a_pre", positive=True)
    ticks_per_sec: Symbol = Symbol("f_tick", positive=True)
    throttle: Symbol = Symbol("theta", positive=True)

    # Model and hardware
    tokens_per_sec: Symbol = Symbol("r_tok", positive=True)
    perf_factor: Symbol = Symbol("p_gpu", positive=True)

    # Request
    prompt_tokens: Symbol = Symbol("n_in", positive=True, integer=True)
    output_tokens: Symbol = Symbol("n_out", positive=True, integer=True)
