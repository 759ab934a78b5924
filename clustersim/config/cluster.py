from __future__ import annotations
from dataclasses import dataclass, field


@dataclass(frozen=True)
class GPUSpec:
    key: str
    label: str
    vram_gb: float  # per GPU
    perf_factor: float  # relative compute multiplier, A100 = 1.0
    mem_bandwidth_gbps: float  # GB/s

    @classmethod
    def l4(cls) -> GPUSpec:
        return cls(key="L4", label="NVIDIA L4", vram_gb=24, perf_factor=0.4, mem_bandwidth_gbps=300)

    @classmethod
    def l40s(cls) -> GPUSpec:
        return cls(key="L40S", label="NVIDIA L40S", vram_gb=48, perf_factor=0.8, mem_bandwidth_gbps=864)

    @classmethod
    def a100(cls) -> GPUSpec:
        return cls(key="A100", label="NVIDIA A100", vram_gb=80, perf_factor=1.0, mem_bandwidth_gbps=1935)

    @classmethod
    def h100(cls) -> GPUSpec:
        return cls(key="H100", label="NVIDIA H100", vram_gb=80, perf_factor=2.5, mem_bandwidth_gbps=3350)

    @classmethod
    def h200(cls) -> GPUSpec:
        return cls(key="H200", label="NVIDIA H200", vram_gb=141, perf_factor=2.8, mem_bandwidth_gbps=4800)

    @classmethod
    def b200(cls) -> GPUSpec:
        return cls(key="B200", label="NVIDIA Blackwell", vram_gb=192, perf_factor=5.0, mem_bandwidth_gbps=8000)

    @classmethod
    def builtin(cls) -> list[GPUSpec]:
        return [cls.l4(), cls.l40s(), cls.a100(), cls.h100(), cls.h200(), cls.b200()]


@dataclass(frozen=True)
class NodeGroupSpec:
    count: int
    gpu_type: str
    gpus_per_node: int


@dataclass(frozen=True)
class HardwareTemplate:
    id: str
    name: str
    description: str
    specs: tuple[NodeGroupSpec, ...] = field(default_factory=tuple)

    @property
    def total_nodes(self) -> int:
        return sum(spec.count for spec in self.specs)

    @classmethod
    def standard_a100(cls) -> HardwareTemplate:
        return cls(
            id="standard-a100",
            name="Standard HPC (A100)",
            description="10x Servers w/ 2x A100-80GB",
            specs=(NodeGroupSpec(count=10, gpu_type="A100", gpus_per_node=2),),
        )

    @classmethod
    def dense_l40s(cls) -> HardwareTemplate:
        return cls(
            id="dense-l40s",
            name="Visual/Inference (L40S)",
            description="20x Servers w/ 8x L40S-48GB",
            specs=(NodeGroupSpec(count=20, gpu_type="L40S", gpus_per_node=8),),
        )

    @classmethod
    def hybrid_cluster(cls) -> HardwareTemplate:
        return cls(
            id="hybrid-cluster",
            name="Hybrid Train/Infer",
            description="10x A100 (Training) + 20x L40S (Inference)",
            specs=(
                NodeGroupSpec(count=10, gpu_type="A100", gpus_per_node=2),
                NodeGroupSpec(count=20, gpu_type="L40S", gpus_per_node=4),
            ),
        )

    @classmethod
    def builtin(cls) -> list[HardwareTemplate]:
        return [cls.standard_a100(), cls.dense_l40s(), cls.hybrid_cluster()]
