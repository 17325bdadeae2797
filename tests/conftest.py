import datetime as dt

import pytest

from host_snapshot.aggregator import ProbeResult, ProbeResults
from host_snapshot.config import Settings
from host_snapshot.models import (
    BatteryInfo,
    BiosInfo,
    CpuInfo,
    CpuTemperature,
    CurrentLoad,
    DefaultRoute,
    DiskLayoutEntry,
    DisksIO,
    FirmwareInfo,
    FsSize,
    GraphicsController,
    GraphicsInfo,
    MemoryInfo,
    NetworkConnection,
    NetworkInterface,
    NetworkStat,
)
from host_snapshot.probes import ProbeError

GIB = 1024 ** 3
FIXED_NOW = dt.datetime(2026, 10, 18, 12, 30, 45, 123456, tzinfo=dt.timezone.utc)


def make_interface(iface, operstate="up", internal=False, **overrides):
    fields = dict(
        iface=iface,
        type="wired",
        mac="00:11:22:33:44:55",
        ip4="192.168.1.10",
        ip6=None,
        speed=1000,
        dhcp=True,
        internal=internal,
        operstate=operstate,
    )
    fields.update(overrides)
    return NetworkInterface(**fields)


def make_stat(iface, rx_sec=0.0, tx_sec=0.0):
    return NetworkStat(iface=iface, rx_bytes=0, tx_bytes=0, rx_sec=rx_sec, tx_sec=tx_sec)


def make_results(**values):
    """ProbeResults where every keyword is a successful probe and ``failed`` lists failed ones."""
    failed = values.pop("failed", ())
    settled = {name: ProbeResult(name, value=value) for name, value in values.items()}
    for name in failed:
        settled[name] = ProbeResult(name, error=ProbeError(name, "unsupported"))
    return ProbeResults(settled)


def healthy_records():
    return {
        "bios": BiosInfo(vendor="LENOVO", version="N2HET77W", release_date="2024-03-01"),
        "cpu": CpuInfo(manufacturer="Intel", brand="Core i7-8550U", cores=8, physical_cores=4, speed_mhz=1800.0),
        "mem": MemoryInfo(total=16 * GIB, used=8 * GIB, available=8 * GIB),
        "disk_layout": [DiskLayoutEntry(device="/dev/nvme0n1", name="Samsung SSD 980", type="NVMe", size=1_024_209_543_168)],
        "graphics": GraphicsInfo(
            controllers=[
                GraphicsController(
                    vendor="NVIDIA",
                    model="NVIDIA GeForce RTX 3080",
                    utilization_gpu=12.0,
                    memory_used=8192.0,
                    memory_total=10240.0,
                    temperature_gpu=45.0,
                )
            ]
        ),
        "current_load": CurrentLoad(current_load=37.5),
        "cpu_temperature": CpuTemperature(main=52.0),
        "network_stats": [make_stat("lo", 500.0, 500.0), make_stat("eth0", 1_000_000.0, 250_000.0)],
        "disks_io": DisksIO(read_bytes=0, write_bytes=0, read_sec=3 * 1024 * 1024, write_sec=0.0),
        "battery": BatteryInfo(has_battery=True, percent=80, is_charging=True),
        "fs_size": [FsSize(fs="/dev/nvme0n1p2", type="ext4", size=1000, used=250, mount="/")],
        "network_interfaces": [make_interface("lo", internal=True, operstate="unknown", ip4="127.0.0.1"), make_interface("eth0")],
        "network_connections": [
            NetworkConnection("tcp", "192.168.1.10", 50000, "1.1.1.1", 443, "ESTABLISHED", 123),
            NetworkConnection("tcp", "0.0.0.0", 22, None, None, "LISTEN", 1),
        ],
        "default_route": DefaultRoute(iface="eth0", gateway="192.168.1.1"),
        "firmware": FirmwareInfo(boot_mode="UEFI"),
    }


@pytest.fixture
def settings():
    return Settings(upstream_host="10.0.0.5", probe_timeout=2.0, sample_interval=0.0)


@pytest.fixture
def records():
    return healthy_records()
