"""
Report assembly: run the requested benchmarks and collectors and merge
their results into one Report.

Every failure below the report level turns into a missing section or field
plus a logged warning; building a report never fails because one device or
one collector did.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from ..info.gpu import GpuDeviceFacts, GpuInventory
from ..info.network import NetworkFacts, collect_network_facts
from ..info.power import BatteryFacts, collect_battery_facts
from ..info.system import CpuStaticFacts, collect_host_facts
from .config import BenchmarkConfig
from .device import CPU, UNIFIED_GPU, IndexedGpu, device_label
from .errors import BenchmarkError, CollaboratorUnavailable
from .metrics import ThroughputSample, ThroughputSampler
from .selector import GpuPlan, RunIndexed, RunUnified, select_gpu_plan

logger = logging.getLogger(__name__)

UNIFIED_GPU_NAME = "integrated (MPS)"
NOT_AVAILABLE = "Not available"
_MB = 1024 * 1024


class Feature(str, Enum):
    """Report categories that can be requested."""

    CPU = "cpu"
    GPU = "gpu"
    BATTERY = "battery"
    NETWORK = "network"


ALL_FEATURES: Tuple[Feature, ...] = tuple(Feature)


def parse_features(value: Union[str, Iterable[str]]) -> Set[Feature]:
    """Parse a comma-separated feature list such as ``"cpu,gpu"``.

    Raises:
        ValueError: An unknown feature name was given
    """
    if isinstance(value, str):
        names = value.split(",")
    else:
        names = [part for item in value for part in str(item).split(",")]

    features = set()
    for name in names:
        name = name.strip().lower()
        if not name:
            continue
        try:
            features.add(Feature(name))
        except ValueError:
            valid = ", ".join(f.value for f in Feature)
            raise ValueError(f"Unknown feature {name!r} (expected one of: {valid})") from None
    return features


@dataclass(frozen=True)
class CpuSection:
    """Host facts plus the CPU throughput sample."""

    facts: CpuStaticFacts
    sample: ThroughputSample


@dataclass(frozen=True)
class GpuEntry:
    """One benchmarked GPU."""

    facts: GpuDeviceFacts
    sample: ThroughputSample


@dataclass(frozen=True)
class Report:
    """Aggregate result of one run. Absent sections are None.

    ``system`` feeds the general and memory sections and is kept even when
    the CPU sample itself failed. ``gpu`` is an empty tuple when GPUs were
    requested but none could be benchmarked.
    """

    system: Optional[CpuStaticFacts] = None
    cpu: Optional[CpuSection] = None
    gpu: Optional[Tuple[GpuEntry, ...]] = None
    battery: Optional[BatteryFacts] = None
    network: Optional[NetworkFacts] = None

    def to_dict(self) -> Dict[str, Any]:
        """Nested key/value form, sections in general, memory, cpu, gpu,
        battery, network order."""
        out: Dict[str, Any] = {}

        if self.system is not None:
            out["general"] = {
                "os": self.system.os,
                "os_version": self.system.os_version or NOT_AVAILABLE,
            }
            out["memory"] = {
                "total_memory_mb": self.system.total_memory // _MB,
                "used_memory_mb": self.system.used_memory // _MB,
                "total_swap_mb": self.system.total_swap // _MB,
                "used_swap_mb": self.system.used_swap // _MB,
            }

        if self.cpu is not None:
            out["cpu"] = {
                "arch": self.cpu.facts.architecture or NOT_AVAILABLE,
                "cpu_count": self.cpu.facts.cpu_count,
                "gflops": self.cpu.sample.throughput,
                "benchmark_duration_seconds": self.cpu.sample.elapsed_seconds,
            }

        if self.gpu is not None:
            out["gpu"] = [_gpu_entry_dict(entry) for entry in self.gpu]

        if self.battery is not None:
            out["battery"] = {
                "has_battery": self.battery.has_battery,
                "charge_percent": self.battery.charge_percent,
                "is_charging": self.battery.is_charging,
                "wh_capacity": self.battery.wh_capacity,
            }

        if self.network is not None:
            network: Dict[str, Any] = {}
            if self.network.ping_ms is not None:
                network["ping_ms"] = self.network.ping_ms
            if self.network.public_ip is not None:
                network["public_ip"] = self.network.public_ip
            speed = {}
            if self.network.download_mbps is not None:
                speed["download_mbps"] = self.network.download_mbps
            if self.network.upload_mbps is not None:
                speed["upload_mbps"] = self.network.upload_mbps
            if speed:
                network["speed"] = speed
            out["network"] = network

        return out


def _gpu_entry_dict(entry: GpuEntry) -> Dict[str, Any]:
    facts = entry.facts
    item: Dict[str, Any] = {}
    if isinstance(facts.device, IndexedGpu):
        item["device_id"] = facts.device.index
    item["device"] = device_label(facts.device)
    item["name"] = facts.name or NOT_AVAILABLE
    for key in ("total_memory", "free_memory", "used_memory"):
        value = getattr(facts, key)
        if value is not None:
            item[key] = value
    item["tflops"] = entry.sample.throughput
    item["duration"] = entry.sample.elapsed_seconds
    return item


@dataclass
class Collaborators:
    """External sources of facts consumed while building a report."""

    host_facts: Callable[[], CpuStaticFacts] = collect_host_facts
    gpu_inventory: GpuInventory = field(default_factory=GpuInventory)
    battery: Callable[[], BatteryFacts] = collect_battery_facts
    network: Callable[[BenchmarkConfig], NetworkFacts] = collect_network_facts


class ReportBuilder:
    """Run the requested benchmarks and collectors in a fixed order."""

    def __init__(
        self,
        collaborators: Optional[Collaborators] = None,
        config: Optional[BenchmarkConfig] = None,
        sampler: Optional[ThroughputSampler] = None,
    ):
        """Initialize report builder.

        Args:
            collaborators: Fact sources; defaults query the real host
            config: Tuning parameters and timeouts
            sampler: Throughput sampler; defaults to one built from config
        """
        self._owns_inventory = collaborators is None
        self.collaborators = collaborators or Collaborators(gpu_inventory=GpuInventory())
        self.config = (config or BenchmarkConfig()).validate()
        self.sampler = sampler or ThroughputSampler(
            warmup_iterations=self.config.warmup_iterations,
            max_escalations=self.config.max_escalations,
            seed=self.config.seed,
        )

    def build(self, categories: Iterable[Union[Feature, str]]) -> Report:
        """Build a report for the requested categories.

        A GPU inventory created by this builder is closed once the report
        is built; one passed in through ``collaborators`` is left open.
        """
        features = {Feature(c) for c in categories}
        try:
            return self._build(features)
        finally:
            if self._owns_inventory:
                self.collaborators.gpu_inventory.close()

    def _build(self, features: Set[Feature]) -> Report:

        system = None
        cpu = None
        gpu = None
        battery = None
        network = None
        host_fetched = False

        if Feature.CPU in features:
            system = self._host_facts()
            host_fetched = True
            if system is not None:
                cpu = self._cpu_section(system)

        if Feature.GPU in features:
            host = system if host_fetched else self._host_facts()
            gpu = self._gpu_entries(select_gpu_plan(host, self.collaborators.gpu_inventory))

        if Feature.BATTERY in features:
            battery = self._battery()

        if Feature.NETWORK in features:
            network = self._network()

        return Report(system=system, cpu=cpu, gpu=gpu, battery=battery, network=network)

    def _host_facts(self) -> Optional[CpuStaticFacts]:
        try:
            return self.collaborators.host_facts()
        except CollaboratorUnavailable as e:
            logger.warning("Host facts unavailable: %s", e)
            return None

    def _cpu_section(self, facts: CpuStaticFacts) -> Optional[CpuSection]:
        try:
            sample = self.sampler.sample(CPU, self.config.cpu_iterations, self.config.cpu_size)
        except BenchmarkError as e:
            logger.warning("CPU benchmark skipped: %s", e)
            return None
        return CpuSection(facts=facts, sample=sample)

    def _gpu_entries(self, plan: GpuPlan) -> Tuple[GpuEntry, ...]:
        entries: List[GpuEntry] = []

        if isinstance(plan, RunUnified):
            facts = GpuDeviceFacts(device=UNIFIED_GPU, name=UNIFIED_GPU_NAME)
            entry = self._gpu_entry(lambda: facts)
            if entry is not None:
                entries.append(entry)
            return tuple(entries)

        if isinstance(plan, RunIndexed):
            inventory = self.collaborators.gpu_inventory
            for index in range(plan.count):
                entry = self._gpu_entry(lambda i=index: inventory.device_facts(i))
                if entry is not None:
                    entries.append(entry)
            return tuple(entries)

        raise TypeError(f"Unknown GPU plan: {plan!r}")

    def _gpu_entry(self, get_facts: Callable[[], GpuDeviceFacts]) -> Optional[GpuEntry]:
        try:
            facts = get_facts()
            sample = self.sampler.sample(
                facts.device, self.config.gpu_iterations, self.config.gpu_size
            )
        except BenchmarkError as e:
            logger.warning("GPU benchmark skipped: %s", e)
            return None
        return GpuEntry(facts=facts, sample=sample)

    def _battery(self) -> Optional[BatteryFacts]:
        try:
            return self.collaborators.battery()
        except CollaboratorUnavailable as e:
            logger.warning("Battery facts unavailable: %s", e)
            return None

    def _network(self) -> Optional[NetworkFacts]:
        try:
            facts = self.collaborators.network(self.config)
        except CollaboratorUnavailable as e:
            logger.warning("Network facts unavailable: %s", e)
            return None
        if facts.is_empty():
            return None
        return facts


def build_report(
    categories: Iterable[Union[Feature, str]],
    collaborators: Optional[Collaborators] = None,
    config: Optional[BenchmarkConfig] = None,
    sampler: Optional[ThroughputSampler] = None,
) -> Report:
    """Build a report for ``categories`` with a one-off ReportBuilder."""
    return ReportBuilder(collaborators, config, sampler).build(categories)
