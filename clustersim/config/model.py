from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    param_size: str
    vram_required_gb: float  # FP16 weight footprint
    tp_size: int  # 1 = fits on one node, >1 = sharded across that many nodes
    tokens_per_sec: float  # base decode speed
    cost_per_1k_tokens: float
    description: str = ""

    @property
    def is_distributed(self) -> bool:
        return self.tp_size > 1

    @property
    def vram_per_shard_gb(self) -> float:
        return self.vram_required_gb / self.tp_size

    def cost_for_tokens(self, tokens: int) -> float:
        return tokens / 1000 * self.cost_per_1k_tokens

    @classmethod
    def tiny_llama(cls) -> ModelConfig:
        return cls(
            id="tiny-llama",
            name="TinyLlama 1.1B",
            param_size="1.1B",
            vram_required_gb=2.5,
            tp_size=1,
            tokens_per_sec=180,
            cost_per_1k_tokens=0.0002,
            description="Small, fast model. Replicated across all servers for high throughput load balancing.",
        )

    @classmethod
    def gemma_2_27b(cls) -> ModelConfig:
        return cls(
            id="gemma-2-27b",
            name="Gemma 2 27B",
            param_size="27B",
            vram_required_gb=56,
            tp_size=1,
            tokens_per_sec=120,
            cost_per_1k_tokens=0.0005,
            description="Efficient Google model. High throughput and reasoning balance on single nodes.",
        )

    @classmethod
    def llama_3_70b(cls) -> ModelConfig:
        return cls(
            id="llama-3-70b",
            name="Meta Llama 3 70B",
            param_size="70B",
            vram_required_gb=140,
            tp_size=1,
            tokens_per_sec=75,
            cost_per_1k_tokens=0.0007,
            description="The open-weight standard. Needs high VRAM (A100/H100) or quantization.",
        )

    @classmethod
    def qwen_2_5_72b(cls) -> ModelConfig:
        return cls(
            id="qwen-2.5-72b",
            name="Qwen 2.5 72B",
            param_size="72B",
            vram_required_gb=144,
            tp_size=1,
            tokens_per_sec=60,
            cost_per_1k_tokens=0.002,
            description="Powerful open weights model. Maxes out single-node VRAM capacity.",
        )

    @classmethod
    def command_r_plus(cls) -> ModelConfig:
        return cls(
            id="command-r-plus",
            name="Command R+",
            param_size="104B",
            vram_required_gb=210,
            tp_size=1,
            tokens_per_sec=45,
            cost_per_1k_tokens=0.001,
            description="RAG-optimized powerhouse. Requires ~210GB VRAM.",
        )

    @classmethod
    def mistral_large(cls) -> ModelConfig:
        return cls(
            id="mistral-large",
            name="Mistral Large 2",
            param_size="123B",
            vram_required_gb=246,
            tp_size=1,
            tokens_per_sec=50,
            cost_per_1k_tokens=0.003,
            description="Flagship model from Mistral AI. Strong reasoning and coding capabilities.",
        )

    @classmethod
    def mixtral_8x22b(cls) -> ModelConfig:
        return cls(
            id="mixtral-8x22b",
            name="Mixtral 8x22B",
            param_size="141B (MoE)",
            vram_required_gb=280,  # MoE: active params are lower but all weights stay resident
            tp_size=1,
            tokens_per_sec=40,
            cost_per_1k_tokens=0.0012,
            description="Massive MoE model. Pushes the absolute limits of a single node.",
        )

    @classmethod
    def llama_405b(cls) -> ModelConfig:
        return cls(
            id="llama-405b",
            name="Meta Llama 3.1 405B",
            param_size="405B",
            vram_required_gb=820,
            tp_size=8,
            tokens_per_sec=25,
            cost_per_1k_tokens=0.01,
            description="Massive frontier model. Requires sharding across the entire cluster.",
        )

    @classmethod
    def deepseek_r1(cls) -> ModelConfig:
        return cls(
            id="deepseek-r1",
            name="DeepSeek R1",
            param_size="671B (MoE)",
            vram_required_gb=700,
            tp_size=8,
            tokens_per_sec=20,
            cost_per_1k_tokens=0.008,
            description="State-of-the-art reasoning model. Massive MoE requiring full cluster distribution.",
        )

    @classmethod
    def builtin(cls) -> list[ModelConfig]:
        return [
            cls.tiny_llama(),
            cls.gemma_2_27b(),
            cls.llama_3_70b(),
            cls.qwen_2_5_72b(),
            cls.command_r_plus(),
            cls.mistral_large(),
            cls.mixtral_8x22b(),
            cls.llama_405b(),
            cls.deepseek_r1(),
        ]
