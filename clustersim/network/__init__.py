from clustersim.network.interconnect import InterconnectModel, BandwidthDemand

__all__ = ["InterconnectModel", "BandwidthDemand"]
