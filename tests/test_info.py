"""
Tests for the host, GPU, battery and network collectors.
"""

import itertools
import subprocess
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock, patch

import pynvml
import pytest
import requests
import torch

from sys_benchmark.core.config import BenchmarkConfig
from sys_benchmark.core.device import IndexedGpu
from sys_benchmark.core.errors import CollaboratorUnavailable
from sys_benchmark.info import network
from sys_benchmark.info.gpu import GpuInventory
from sys_benchmark.info.network import (
    NetworkFacts,
    collect_network_facts,
    fetch_public_ip,
    measure_download,
    measure_ping,
    measure_upload,
    parse_ping_output,
    ping_command,
)
from sys_benchmark.info.power import BatteryFacts, collect_battery_facts, read_wh_capacity
from sys_benchmark.info.system import collect_host_facts, normalize_arch, normalize_os

GB = 1024**3


class TestSystemInfo:
    """Tests for host facts collection."""

    @pytest.mark.parametrize(
        "system,expected",
        [("Darwin", "macos"), ("Linux", "linux"), ("Windows", "windows"), ("FreeBSD", "freebsd"), ("", "unknown")],
    )
    def test_normalize_os(self, system, expected):
        assert normalize_os(system) == expected

    @pytest.mark.parametrize(
        "machine,expected",
        [("arm64", "arm64"), ("AMD64", "x86_64"), ("x86_64", "x86_64"), ("aarch64", "aarch64"), ("", None)],
    )
    def test_normalize_arch(self, machine, expected):
        assert normalize_arch(machine) == expected

    def test_collect_on_apple_silicon(self):
        vm = SimpleNamespace(total=16 * GB, used=6 * GB)
        sm = SimpleNamespace(total=2 * GB, used=GB)
        with patch("platform.system", return_value="Darwin"), patch(
            "platform.machine", return_value="arm64"
        ), patch("platform.mac_ver", return_value=("14.2", ("", "", ""), "arm64")), patch(
            "psutil.virtual_memory", return_value=vm
        ), patch(
            "psutil.swap_memory", return_value=sm
        ), patch(
            "psutil.cpu_count", return_value=10
        ):
            facts = collect_host_facts()

        assert facts.os == "macos"
        assert facts.os_version == "14.2"
        assert facts.architecture == "arm64"
        assert facts.cpu_count == 10
        assert facts.total_memory == 16 * GB
        assert facts.used_memory == 6 * GB
        assert facts.total_swap == 2 * GB
        assert facts.used_swap == GB

    def test_collect_real_host(self):
        facts = collect_host_facts()
        assert facts.cpu_count >= 1
        assert facts.total_memory > 0
        assert facts.os

    def test_psutil_failure(self):
        with patch("psutil.virtual_memory", side_effect=OSError("no /proc")):
            with pytest.raises(CollaboratorUnavailable):
                collect_host_facts()

    def test_unknown_cpu_count(self):
        with patch("psutil.cpu_count", return_value=None):
            with pytest.raises(CollaboratorUnavailable):
                collect_host_facts()


class TestGpuInventory:
    """Tests for GpuInventory."""

    @pytest.fixture
    def inventory(self):
        with GpuInventory() as inventory:
            yield inventory

    def test_no_cuda(self, inventory):
        with patch("torch.cuda.is_available", return_value=False):
            assert inventory.device_count() == 0
            assert inventory.list_devices() == []

    def test_nvml_facts(self, inventory):
        memory = SimpleNamespace(total=24 * GB, free=20 * GB, used=4 * GB)
        with patch("torch.cuda.is_available", return_value=True), patch(
            "torch.cuda.device_count", return_value=2
        ), patch("pynvml.nvmlInit"), patch("pynvml.nvmlShutdown"), patch(
            "torch.cuda.get_device_properties", return_value=SimpleNamespace(name="NVIDIA A10")
        ), patch(
            "pynvml.nvmlDeviceGetHandleByIndex", side_effect=lambda i: f"handle-{i}"
        ), patch(
            "pynvml.nvmlDeviceGetName", return_value=b"NVIDIA A10"
        ), patch(
            "pynvml.nvmlDeviceGetMemoryInfo", return_value=memory
        ):
            facts = inventory.device_facts(1)
            devices = inventory.list_devices()
            inventory.close()

        assert facts.device == IndexedGpu(1)
        assert facts.name == "NVIDIA A10"
        assert facts.total_memory == 24 * GB
        assert facts.free_memory == 20 * GB
        assert facts.used_memory == 4 * GB
        assert [d.device for d in devices] == [IndexedGpu(0), IndexedGpu(1)]

    def test_nvml_matched_by_pci_bus_id(self, inventory):
        """cuda:0 is paired with the NVML device at the same PCI address."""
        props = SimpleNamespace(name="NVIDIA L4", pci_domain_id=0, pci_bus_id=0x41, pci_device_id=0)
        memory = SimpleNamespace(total=24 * GB, free=24 * GB, used=0)
        by_index = Mock()
        with patch("torch.cuda.is_available", return_value=True), patch(
            "torch.cuda.device_count", return_value=1
        ), patch("pynvml.nvmlInit"), patch("pynvml.nvmlShutdown"), patch(
            "torch.cuda.get_device_properties", return_value=props
        ), patch(
            "pynvml.nvmlDeviceGetHandleByPciBusId", return_value="handle-41"
        ) as by_bus_id, patch(
            "pynvml.nvmlDeviceGetHandleByIndex", by_index
        ), patch(
            "pynvml.nvmlDeviceGetName", return_value="NVIDIA L4"
        ) as get_name, patch(
            "pynvml.nvmlDeviceGetMemoryInfo", return_value=memory
        ):
            facts = inventory.device_facts(0)
            inventory.close()

        by_bus_id.assert_called_once_with("00000000:41:00.0")
        by_index.assert_not_called()
        get_name.assert_called_once_with("handle-41")
        assert facts.device == IndexedGpu(0)
        assert facts.name == "NVIDIA L4"

    def test_torch_fallback(self, inventory):
        """Without NVML, name and memory come from torch.cuda."""
        props = SimpleNamespace(name="Tesla T4", total_memory=16 * GB)
        with patch("torch.cuda.is_available", return_value=True), patch(
            "torch.cuda.device_count", return_value=1
        ), patch(
            "pynvml.nvmlInit", side_effect=pynvml.NVMLError(pynvml.NVML_ERROR_LIBRARY_NOT_FOUND)
        ), patch(
            "torch.cuda.get_device_properties", return_value=props
        ), patch(
            "torch.cuda.mem_get_info", return_value=(12 * GB, 16 * GB)
        ):
            facts = inventory.device_facts(0)

        assert facts.name == "Tesla T4"
        assert facts.total_memory == 16 * GB
        assert facts.free_memory == 12 * GB
        assert facts.used_memory == 4 * GB

    def test_invalid_index(self, inventory):
        with patch("torch.cuda.is_available", return_value=True), patch(
            "torch.cuda.device_count", return_value=1
        ):
            with pytest.raises(CollaboratorUnavailable):
                inventory.device_facts(3)

    def test_list_skips_failing_device(self, inventory):
        def facts(index):
            if index == 1:
                raise CollaboratorUnavailable("gpu inventory", "lost")
            return Mock(device=IndexedGpu(index))

        with patch.object(inventory, "device_count", return_value=3), patch.object(
            inventory, "device_facts", side_effect=facts
        ):
            devices = inventory.list_devices()

        assert [d.device for d in devices] == [IndexedGpu(0), IndexedGpu(2)]

    @pytest.mark.cuda
    @pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
    def test_real_device(self, inventory):
        facts = inventory.device_facts(0)
        assert isinstance(facts.name, str)
        assert facts.total_memory > 0


class TestPower:
    """Tests for battery collection."""

    def test_no_battery(self):
        with patch("psutil.sensors_battery", return_value=None, create=True):
            assert collect_battery_facts() == BatteryFacts(has_battery=False)

    def test_battery(self):
        battery = SimpleNamespace(percent=87.46, power_plugged=True, secsleft=3600)
        with patch("psutil.sensors_battery", return_value=battery, create=True), patch(
            "sys_benchmark.info.power.read_wh_capacity", return_value=52.5
        ), patch("os.path.isdir", return_value=True):
            facts = collect_battery_facts()

        assert facts.has_battery is True
        assert facts.charge_percent == 87.5
        assert facts.is_charging is True
        assert facts.wh_capacity == 52.5

    def test_api_failure(self):
        with patch("psutil.sensors_battery", side_effect=OSError("denied"), create=True):
            with pytest.raises(CollaboratorUnavailable):
                collect_battery_facts()

    def test_energy_full(self, tmp_path):
        bat = tmp_path / "BAT0"
        bat.mkdir()
        (bat / "energy_full").write_text("50000000\n")
        assert read_wh_capacity(str(tmp_path)) == 50.0

    def test_charge_full(self, tmp_path):
        bat = tmp_path / "BAT1"
        bat.mkdir()
        (bat / "charge_full").write_text("4000000\n")
        (bat / "voltage_min_design").write_text("11400000\n")
        assert read_wh_capacity(str(tmp_path)) == pytest.approx(45.6)

    def test_no_power_supply(self, tmp_path):
        (tmp_path / "AC").mkdir()
        assert read_wh_capacity(str(tmp_path)) is None


class TestNetwork:
    """Tests for the network probes."""

    @pytest.mark.parametrize(
        "output,expected",
        [
            ("64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=12.3 ms", 12.3),
            ("64 bytes from 1.1.1.1: icmp_seq=0 ttl=57 time=8.042 ms", 8.042),
            ("Reply from 1.1.1.1: bytes=32 time<1ms TTL=57", 1.0),
            ("Reply from 1.1.1.1: bytes=32 time=14ms TTL=57", 14.0),
            ("Request timed out.", None),
        ],
    )
    def test_parse_ping_output(self, output, expected):
        assert parse_ping_output(output) == expected

    def test_ping_command(self):
        assert ping_command("h", 3.0, "Linux") == ["ping", "-c", "1", "-W", "3", "h"]
        assert ping_command("h", 2.5, "Darwin") == ["ping", "-c", "1", "-t", "3", "h"]
        assert ping_command("h", 3.0, "Windows") == ["ping", "-n", "1", "-w", "3000", "h"]

    def test_measure_ping(self):
        proc = subprocess.CompletedProcess([], 0, stdout="icmp_seq=1 ttl=57 time=21.7 ms", stderr="")
        with patch("subprocess.run", return_value=proc) as run:
            assert measure_ping("1.1.1.1", 3.0) == 21.7
        assert run.call_args.kwargs["timeout"] == 4.0

    @pytest.mark.parametrize(
        "outcome",
        [
            subprocess.TimeoutExpired(["ping"], 4),
            FileNotFoundError("ping"),
            subprocess.CompletedProcess([], 1, stdout="", stderr="unknown host"),
        ],
    )
    def test_ping_failure(self, outcome):
        kwargs = {"side_effect": outcome} if isinstance(outcome, Exception) else {"return_value": outcome}
        with patch("subprocess.run", **kwargs):
            with pytest.raises(CollaboratorUnavailable):
                measure_ping("1.1.1.1", 3.0)

    def test_public_ip(self):
        response = Mock(text="203.0.113.7\n")
        with patch("requests.get", return_value=response) as get:
            assert fetch_public_ip("https://ip.example", 5.0) == "203.0.113.7"
        get.assert_called_once_with("https://ip.example", timeout=5.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"side_effect": requests.ConnectionError("offline")},
            {"side_effect": requests.Timeout("slow")},
            {"return_value": Mock(text="<html>rate limited</html>")},
        ],
    )
    def test_public_ip_failure(self, kwargs):
        with patch("requests.get", **kwargs):
            with pytest.raises(CollaboratorUnavailable):
                fetch_public_ip("https://ip.example", 5.0)

    def test_download(self):
        response = MagicMock()
        response.__enter__.return_value = response
        response.iter_content.return_value = [b"x" * 1000] * 10
        clock = itertools.count(0.0, 0.5)
        with patch("requests.get", return_value=response), patch.object(
            network.time, "perf_counter", side_effect=clock
        ):
            mbps = measure_download("https://dl.example", 30.0)

        # start at 0.0, one tick per chunk, stop at 5.5
        assert mbps == pytest.approx(10000 * 8 / 5.5 / 1e6)

    def test_download_failure(self):
        with patch("requests.get", side_effect=requests.ConnectionError("offline")):
            with pytest.raises(CollaboratorUnavailable):
                measure_download("https://dl.example", 30.0)

    def test_upload(self):
        clock = iter([10.0, 12.0])
        with patch("requests.post", return_value=Mock()) as post, patch.object(
            network.time, "perf_counter", side_effect=clock
        ):
            mbps = measure_upload("https://ul.example", 1_000_000, 30.0)

        assert mbps == pytest.approx(4.0)
        assert len(post.call_args.kwargs["data"]) == 1_000_000

    def test_collect_keeps_successful_probes(self):
        with patch.object(
            network, "measure_ping", side_effect=CollaboratorUnavailable("ping", "timeout")
        ), patch.object(network, "fetch_public_ip", return_value="198.51.100.4"), patch.object(
            network, "measure_download", return_value=93.456
        ), patch.object(
            network, "measure_upload", side_effect=CollaboratorUnavailable("upload speed", "x")
        ):
            facts = collect_network_facts(BenchmarkConfig())

        assert facts == NetworkFacts(public_ip="198.51.100.4", download_mbps=93.46)
        assert not facts.is_empty()

    def test_network_facts_empty(self):
        assert NetworkFacts().is_empty()
