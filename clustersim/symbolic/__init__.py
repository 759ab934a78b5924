from clustersim.symbolic.symbols import ConfigSymbols

__all__ = ["ConfigSymbols"]
