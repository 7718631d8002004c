"""
GPU inventory: enumerate CUDA devices and read their name and memory.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import pynvml
import torch

from ..core.device import Device, IndexedGpu
from ..core.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GpuDeviceFacts:
    """Static facts for one GPU (memory values in bytes)."""

    device: Device
    name: Optional[str] = None
    total_memory: Optional[int] = None
    free_memory: Optional[int] = None
    used_memory: Optional[int] = None


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return str(value)


def _pci_bus_id(index: int) -> Optional[str]:
    """PCI address of ``cuda:index`` in NVML's domain:bus:device.function form."""
    try:
        props = torch.cuda.get_device_properties(index)
    except RuntimeError as e:
        logger.debug("No device properties for GPU %d: %s", index, e)
        return None

    bus = getattr(props, "pci_bus_id", None)
    if bus is None:
        return None
    domain = getattr(props, "pci_domain_id", 0)
    slot = getattr(props, "pci_device_id", 0)
    return f"{domain:08x}:{bus:02x}:{slot:02x}.0"


class GpuInventory:
    """Collect GPU device facts from NVML, falling back to torch.cuda."""

    def __init__(self):
        """Initialize GPU inventory; NVML is loaded on first use."""
        self._nvml_ready: Optional[bool] = None

    def __enter__(self) -> "GpuInventory":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def cuda_available(self) -> bool:
        """Check if CUDA is available."""
        return torch.cuda.is_available()

    def device_count(self) -> int:
        """Get number of CUDA devices (0 when CUDA is unavailable)."""
        if not self.cuda_available:
            return 0
        try:
            return int(torch.cuda.device_count())
        except RuntimeError as e:
            raise CollaboratorUnavailable("gpu inventory", str(e)) from e

    def _ensure_nvml(self) -> bool:
        if self._nvml_ready is None:
            try:
                pynvml.nvmlInit()
                self._nvml_ready = True
            except pynvml.NVMLError as e:
                logger.debug("NVML unavailable: %s", e)
                self._nvml_ready = False
        return self._nvml_ready

    def close(self) -> None:
        """Release NVML if it was initialised."""
        if self._nvml_ready:
            try:
                pynvml.nvmlShutdown()
            except pynvml.NVMLError:
                pass
        self._nvml_ready = None

    def device_facts(self, index: int) -> GpuDeviceFacts:
        """Get name and memory facts for one CUDA device.

        Args:
            index: Zero-based device index

        Returns:
            GpuDeviceFacts for ``IndexedGpu(index)``

        Raises:
            CollaboratorUnavailable: Index out of range or no source could
                describe the device
        """
        count = self.device_count()
        if index < 0 or index >= count:
            raise CollaboratorUnavailable("gpu inventory", f"invalid device index {index}")

        device = IndexedGpu(index)

        if self._ensure_nvml():
            try:
                return self._nvml_facts(device)
            except pynvml.NVMLError as e:
                logger.debug("NVML query failed for device %d: %s", index, e)

        try:
            return self._torch_facts(device)
        except RuntimeError as e:
            raise CollaboratorUnavailable("gpu inventory", str(e)) from e

    def _nvml_handle(self, index: int):
        """NVML handle for the physical GPU behind ``cuda:index``.

        CUDA and NVML may number devices differently (CUDA_VISIBLE_DEVICES,
        CUDA_DEVICE_ORDER), so the handle is matched by PCI bus id and the
        bare index is used only when torch does not expose one.
        """
        bus_id = _pci_bus_id(index)
        if bus_id is None:
            return pynvml.nvmlDeviceGetHandleByIndex(index)
        return pynvml.nvmlDeviceGetHandleByPciBusId(bus_id)

    def _nvml_facts(self, device: IndexedGpu) -> GpuDeviceFacts:
        handle = self._nvml_handle(device.index)
        name = _decode(pynvml.nvmlDeviceGetName(handle))
        memory_info = pynvml.nvmlDeviceGetMemoryInfo(handle)
        return GpuDeviceFacts(
            device=device,
            name=name,
            total_memory=int(memory_info.total),
            free_memory=int(memory_info.free),
            used_memory=int(memory_info.used),
        )

    def _torch_facts(self, device: IndexedGpu) -> GpuDeviceFacts:
        props = torch.cuda.get_device_properties(device.index)
        free = total = None
        try:
            free, total = torch.cuda.mem_get_info(device.index)
        except RuntimeError:
            total = getattr(props, "total_memory", None)

        return GpuDeviceFacts(
            device=device,
            name=getattr(props, "name", None),
            total_memory=int(total) if total is not None else None,
            free_memory=int(free) if free is not None else None,
            used_memory=int(total - free) if free is not None and total is not None else None,
        )

    def list_devices(self) -> List[GpuDeviceFacts]:
        """Collect facts for every device that can be described."""
        devices = []
        for index in range(self.device_count()):
            try:
                devices.append(self.device_facts(index))
            except CollaboratorUnavailable as e:
                logger.warning("Skipping GPU %d: %s", index, e)
        return devices
