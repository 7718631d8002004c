"""
Collectors for static host, GPU, battery and network facts.
"""

from .gpu import GpuDeviceFacts, GpuInventory
from .network import NetworkFacts, collect_network_facts
from .power import BatteryFacts, collect_battery_facts
from .system import CpuStaticFacts, collect_host_facts

__all__ = [
    "BatteryFacts",
    "CpuStaticFacts",
    "GpuDeviceFacts",
    "GpuInventory",
    "NetworkFacts",
    "collect_battery_facts",
    "collect_host_facts",
    "collect_network_facts",
]
