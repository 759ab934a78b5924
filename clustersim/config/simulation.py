from __future__ import annotations
from dataclasses import dataclass


@dataclass
class SimulationConfig:
    tick_interval_ms: float = 80.0
    history_length: int = 300
    activity_log_length: int = 20

    # Placement
    pack_high_water: float = 85.0
    strict_pack_high_water: float = 95.0

    # Pipeline
    transfer_base_speed: float = 20.0
    prefill_amplification: float = 20.0
    stall_timeout_ticks: int | None = 250

    # Bandwidth demand per request, GB/s
    distributed_net_demand: float = 5.0
    distributed_nvlink_demand: float = 150.0
    single_net_demand: float = 0.1
    single_nvlink_demand: float = 5.0

    # Telemetry
    gpu_smoothing: float = 0.2
    vram_smoothing: float = 0.1
    net_smoothing: float = 0.2
    prefill_gpu_load: float = 20.0
    decode_gpu_load: float = 5.0
    head_gpu_load_per_transfer: float = 5.0
    head_gpu_load_cap: float = 80.0
    kv_cache_gb_per_request: float = 0.5
    computing_threshold: float = 2.0
    base_temp: float = 30.0
    temp_per_util: float = 0.4
    temp_jitter: float = 1.0
    ambient_temp: float = 20.0
    head_idle_vram: float = 5.0
    head_idle_temp: float = 45.0
    head_vram_gb: float = 32.0
    throughput_per_decode: float = 10.0

    # Latency smoothing
    latency_ema_weight: float = 0.2
    ttft_ema_weight: float = 0.3
    idle_decay: float = 0.95

    # User lifecycle, in ticks
    idle_timer_min: int = 20
    idle_timer_max: int = 69
    composing_ticks: int = 5
    reading_ticks: int = 40
    placement_penalty_ticks: int = 30
    no_model_penalty_ticks: int = 20

    @property
    def ticks_per_second(self) -> float:
        return 1000.0 / self.tick_interval_ms

    @property
    def tick_interval_seconds(self) -> float:
        return self.tick_interval_ms / 1000.0

    @classmethod
    def default(cls) -> SimulationConfig:
        return cls()

    @classmethod
    def without_stall_timeout(cls) -> SimulationConfig:
        return cls(stall_timeout_ticks=None)
