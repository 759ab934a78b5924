from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class NetworkSpeed(Enum):
    ETH_10G = "ETH_10G"
    ETH_100G = "ETH_100G"
    IB_400G = "IB_400G"


@dataclass(frozen=True)
class NetworkFabric:
    speed: NetworkSpeed
    name: str
    label: str
    bandwidth_gbps: float  # GB/s per node link
    latency_factor: float  # relative hop latency, 1 = best

    @classmethod
    def ethernet_10g(cls) -> NetworkFabric:
        return cls(
            speed=NetworkSpeed.ETH_10G,
            name="10GbE Ethernet",
            label="10G",
            bandwidth_gbps=1.25,
            latency_factor=50,
        )

    @classmethod
    def ethernet_100g(cls) -> NetworkFabric:
        return cls(
            speed=NetworkSpeed.ETH_100G,
            name="100GbE Fabric",
            label="100G",
            bandwidth_gbps=12.5,
            latency_factor=10,
        )

    @classmethod
    def infiniband_400g(cls) -> NetworkFabric:
        return cls(
            speed=NetworkSpeed.IB_400G,
            name="400G InfiniBand",
            label="400G",
            bandwidth_gbps=50.0,
            latency_factor=1,
        )

    @classmethod
    def builtin(cls) -> list[NetworkFabric]:
        return [cls.ethernet_10g(), cls.ethernet_100g(), cls.infiniband_400g()]
