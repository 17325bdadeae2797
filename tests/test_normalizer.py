import pytest

from conftest import FIXED_NOW, GIB, make_interface, make_results, make_stat
from host_snapshot.models import (
    BiosInfo,
    CpuInfo,
    DiskLayoutEntry,
    FsSize,
    GraphicsController,
    GraphicsInfo,
    MemoryInfo,
)
from host_snapshot.normalizer import (
    active_interfaces,
    format_bios,
    format_cpu,
    format_primary_storage,
    format_timestamp,
    normalize,
    round_half_up,
    select_active_interface,
    snap_to_standard_ram_size,
    storage_devices,
    to_fixed,
)


@pytest.mark.parametrize(
    "size_gb, expected",
    [
        (3.7, 4),
        (6, 4),
        (12, 8),
        (15.5, 16),
        (24, 16),
        (31.2, 32),
        (48, 32),
        (200, 128),
        (0.5, 4),
    ],
)
def test_snap_to_standard_ram_size(size_gb, expected):
    assert snap_to_standard_ram_size(size_gb) == expected


@pytest.mark.parametrize("value, expected", [(2.5, 3), (0.5, 1), (-0.5, 0), (49.4, 49), (7.999, 8)])
def test_round_half_up_matches_javascript(value, expected):
    assert round_half_up(value) == expected


def test_memory_scenario(records):
    records["mem"] = MemoryInfo(total=17_179_869_184, used=8_589_934_592, available=0)
    snapshot = normalize(make_results(**records), now=FIXED_NOW)

    assert snapshot.memory == "16GB"
    assert snapshot.metrics.memory.used_gb == "8.0"
    assert snapshot.metrics.memory.total_gb == "16"
    assert snapshot.metrics.memory.usage_percent == 50


def test_memory_with_zero_total_degrades_to_null(records):
    records["mem"] = MemoryInfo(total=0, used=0, available=0)
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.memory is None
    assert snapshot.metrics.memory.usage_percent is None


def test_download_speed_converted_to_megabits(records):
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.metrics.network.download_speed == 8
    assert snapshot.metrics.network.upload_speed == 2
    assert snapshot.metrics.network.interface == "eth0"


def test_zero_traffic_reports_null_speed(records):
    records["network_stats"] = [make_stat("eth0", 0.0, None)]
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.metrics.network.download_speed is None
    assert snapshot.metrics.network.upload_speed is None
    assert snapshot.metrics.network.interface == "eth0"


def test_empty_disk_layout_keeps_filesystem_storage(records):
    records["disk_layout"] = []
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.storage is None
    assert [device.name for device in snapshot.metrics.storage] == ["/dev/nvme0n1p2"]
    assert snapshot.metrics.storage[0].usage_percent == 25


def test_primary_storage_descriptor(records):
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.storage == "1.0TB NVMe"


def test_storage_usage_percent_guards_zero_size():
    devices = storage_devices(
        [
            FsSize(fs="tmpfs", type="tmpfs", size=0, used=0, mount="/run"),
            FsSize(fs="/dev/sda1", type="ext4", size=3, used=2, mount="/"),
        ]
    )
    assert devices[0].usage_percent is None
    assert devices[1].usage_percent == 67


def test_active_interfaces_only_external_and_up():
    interfaces = [
        make_interface("lo", internal=True, operstate="unknown"),
        make_interface("eth0"),
        make_interface("wlan0", operstate="down"),
        make_interface("docker0"),
    ]
    stats = [make_stat("eth0", 100.0, 50.0), make_stat("eth0", 999.0, 999.0)]

    listed = active_interfaces(interfaces, stats, route=None)

    assert [intf.iface for intf in listed] == ["eth0", "docker0"]
    assert (listed[0].rx_sec, listed[0].tx_sec) == (100.0, 50.0)
    assert (listed[1].rx_sec, listed[1].tx_sec) == (0, 0)
    assert all(intf.gateway is None for intf in listed)


def test_active_interface_is_first_match_not_busiest():
    interfaces = [make_interface("lo", internal=True), make_interface("eth0"), make_interface("eth1")]
    stats = [make_stat("lo"), make_stat("eth1", 9_000_000.0), make_stat("eth0", 10.0)]

    active, stat = select_active_interface(interfaces, stats)

    assert active.iface == "eth0"
    assert stat.rx_sec == 10.0


def test_active_stat_falls_back_to_first_entry_without_interfaces():
    stats = [make_stat("eth0", 250_000.0)]
    active, stat = select_active_interface([], stats)
    assert active is None
    assert stat is stats[0]


def test_gateway_comes_from_default_route(records):
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.gateway == "192.168.1.1"
    assert snapshot.network[0].gateway == "192.168.1.1"
    assert snapshot.boot_mode == "UEFI"


def test_gpu_fields_from_first_controller(records):
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.graphics == "NVIDIA GeForce RTX 3080"
    assert snapshot.metrics.gpu.usage == 12.0
    assert snapshot.metrics.gpu.memory_used == "8.0"
    assert snapshot.metrics.gpu.memory_total == "10"
    assert snapshot.metrics.temperatures.gpu == 45.0


def test_gpu_block_is_null_without_controllers(records):
    records["graphics"] = GraphicsInfo(controllers=[])
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.graphics is None
    gpu = snapshot.metrics.gpu
    assert (gpu.usage, gpu.memory_used, gpu.memory_total) == (None, None, None)


def test_gpu_zero_memory_is_null(records):
    records["graphics"] = GraphicsInfo(
        controllers=[GraphicsController("NVIDIA", "T4", None, 0.0, None, None)]
    )
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.metrics.gpu.memory_used is None
    assert snapshot.metrics.gpu.memory_total is None


def test_disk_speeds_in_megabytes(records):
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.metrics.disk.read_speed == 3
    assert snapshot.metrics.disk.write_speed is None


def test_cpu_usage_and_power(records):
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.cpu == "Intel Core i7-8550U"
    assert snapshot.metrics.cpu.usage == 38
    assert snapshot.metrics.cpu.temperature == 52.0
    assert snapshot.metrics.temperatures.cpu == 52.0
    assert snapshot.metrics.power.percent == 80
    assert snapshot.metrics.network.connections == 1


def test_failed_probes_degrade_to_null(records):
    failed = ("graphics", "battery", "network_stats", "network_interfaces", "default_route", "firmware", "fs_size")
    for name in failed:
        records.pop(name)
    snapshot = normalize(make_results(failed=failed, **records), now=FIXED_NOW)

    assert snapshot.graphics is None
    assert snapshot.metrics.power is None
    assert snapshot.network == []
    assert snapshot.metrics.network.download_speed is None
    assert snapshot.metrics.network.interface is None
    assert snapshot.gateway is None
    assert snapshot.boot_mode is None
    assert snapshot.metrics.storage == []
    assert snapshot.memory == "16GB"


def test_everything_missing_still_builds_snapshot():
    snapshot = normalize(make_results(), now=FIXED_NOW)
    assert snapshot.bios_version is None
    assert snapshot.cpu is None
    assert snapshot.memory is None
    assert snapshot.metrics.cpu.usage is None
    assert snapshot.metrics.disk.read_speed is None
    assert snapshot.metrics.network.connections is None
    assert snapshot.system_time == "2026-10-18T12:30:45.123Z"


@pytest.mark.parametrize(
    "bios, expected",
    [
        (BiosInfo("LENOVO", "1.2", "2024-03-01"), "1.2 (2024-03-01)"),
        (BiosInfo("LENOVO", "1.2", None), "1.2"),
        (BiosInfo("LENOVO", None, "2024-03-01"), None),
        (None, None),
    ],
)
def test_format_bios(bios, expected):
    assert format_bios(bios) == expected


def test_format_cpu_without_manufacturer():
    assert format_cpu(CpuInfo(None, "Cortex-A72", 4, 4, None)) == "Cortex-A72"


def test_format_timestamp_converts_to_utc():
    import datetime as dt

    moment = dt.datetime(2026, 10, 18, 14, 0, 0, tzinfo=dt.timezone(dt.timedelta(hours=2)))
    assert format_timestamp(moment) == "2026-10-18T12:00:00.000Z"


@pytest.mark.parametrize(
    "value, digits, expected",
    [(1.25, 1, "1.3"), (2.5, 0, "3"), (0.25, 1, "0.3"), (8.0, 1, "8.0"), (1.005, 2, "1.00"), (10.0, 0, "10")],
)
def test_to_fixed_matches_javascript(value, digits, expected):
    assert to_fixed(value, digits) == expected


def test_memory_used_rounds_exact_halves_up(records):
    records["mem"] = MemoryInfo(total=16 * GIB, used=int(1.25 * GIB), available=0)
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.metrics.memory.used_gb == "1.3"


def test_gpu_memory_rounds_exact_halves_up(records):
    records["graphics"] = GraphicsInfo(
        controllers=[GraphicsController("NVIDIA", "T400", 5.0, 256.0, 2560.0, None)]
    )
    snapshot = normalize(make_results(**records), now=FIXED_NOW)
    assert snapshot.metrics.gpu.memory_used == "0.3"
    assert snapshot.metrics.gpu.memory_total == "3"


def test_primary_storage_rounds_exact_halves_up():
    disks = [DiskLayoutEntry(device="/dev/sda", name=None, type="HDD", size=250_000_000_000)]
    assert format_primary_storage(disks) == "0.3TB HDD"
