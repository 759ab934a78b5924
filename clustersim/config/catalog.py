from __future__ import annotations
from dataclasses import dataclass, field

from clustersim.config.model import ModelConfig
from clustersim.config.cluster import GPUSpec, HardwareTemplate
from clustersim.config.network import NetworkFabric, NetworkSpeed
from clustersim.config.workload import PromptTemplate, USER_NAMES, USER_AVATARS
from clustersim.errors import CatalogLookupError, ConfigurationError


@dataclass
class Catalog:
    """Read-only lookup tables consumed by the engine.

    Every id referenced elsewhere (template GPU types, active models, the
    selected fabric) is resolved through the ``get_*`` accessors, which raise
    :class:`CatalogLookupError` instead of falling back to a default.
    """

    models: dict[str, ModelConfig] = field(default_factory=dict)
    gpus: dict[str, GPUSpec] = field(default_factory=dict)
    fabrics: dict[NetworkSpeed, NetworkFabric] = field(default_factory=dict)
    templates: dict[str, HardwareTemplate] = field(default_factory=dict)
    prompts: tuple[PromptTemplate, ...] = ()
    user_names: tuple[str, ...] = USER_NAMES
    user_avatars: tuple[str, ...] = USER_AVATARS

    def get_model(self, model_id: str) -> ModelConfig:
        try:
            return self.models[model_id]
        except KeyError:
            raise CatalogLookupError("model", model_id) from None

    def get_gpu(self, gpu_type: str) -> GPUSpec:
        try:
            return self.gpus[gpu_type]
        except KeyError:
            raise CatalogLookupError("GPU type", gpu_type) from None

    def get_fabric(self, speed: NetworkSpeed) -> NetworkFabric:
        try:
            return self.fabrics[speed]
        except KeyError:
            raise CatalogLookupError("network fabric", str(speed)) from None

    def get_template(self, template_id: str) -> HardwareTemplate:
        try:
            return self.templates[template_id]
        except KeyError:
            raise CatalogLookupError("hardware template", template_id) from None

    def validate(self) -> None:
        for model_id, model in self.models.items():
            if model_id != model.id:
                raise ConfigurationError(f"Model registered as {model_id!r} has id {model.id!r}")
            if model.tp_size < 1:
                raise ConfigurationError(f"Model {model_id!r} has tp_size {model.tp_size}")
            if model.tokens_per_sec <= 0 or model.vram_required_gb <= 0:
                raise ConfigurationError(f"Model {model_id!r} needs positive rate and VRAM")

        for key, gpu in self.gpus.items():
            if key != gpu.key:
                raise ConfigurationError(f"GPU registered as {key!r} has key {gpu.key!r}")
            if gpu.vram_gb <= 0 or gpu.perf_factor <= 0:
                raise ConfigurationError(f"GPU {key!r} needs positive VRAM and perf factor")

        for speed, fabric in self.fabrics.items():
            if fabric.bandwidth_gbps <= 0:
                raise ConfigurationError(f"Fabric {speed.value} needs positive bandwidth")

        for template in self.templates.values():
            if not template.specs:
                raise ConfigurationError(f"Template {template.id!r} has no node groups")
            for spec in template.specs:
                self.get_gpu(spec.gpu_type)

        if not self.prompts:
            raise ConfigurationError("Catalog needs at least one prompt")
        if not self.user_names or not self.user_avatars:
            raise ConfigurationError("Catalog needs user names and avatars")

    @classmethod
    def from_entries(
        cls,
        models: list[ModelConfig],
        gpus: list[GPUSpec],
        fabrics: list[NetworkFabric],
        templates: list[HardwareTemplate],
        prompts: list[PromptTemplate],
    ) -> Catalog:
        catalog = cls(
            models={m.id: m for m in models},
            gpus={g.key: g for g in gpus},
            fabrics={f.speed: f for f in fabrics},
            templates={t.id: t for t in templates},
            prompts=tuple(prompts),
        )
        catalog.validate()
        return catalog

    @classmethod
    def default(cls) -> Catalog:
        return cls.from_entries(
            models=ModelConfig.builtin(),
            gpus=GPUSpec.builtin(),
            fabrics=NetworkFabric.builtin(),
            templates=HardwareTemplate.builtin(),
            prompts=PromptTemplate.builtin(),
        )
