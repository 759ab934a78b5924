from __future__ import annotations


class CatalogLookupError(KeyError):
    """Raised when a model, GPU, fabric, template or node id does not resolve."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"Unknown {kind}: {key!r}")

    def __str__(self) -> str:
        return self.args[0]


class ConfigurationError(ValueError):
    pass
