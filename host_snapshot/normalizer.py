"""Pure transform from probe results to the public snapshot shape.

Nothing in here talks to the host. Each field has one documented fallback: a
failed or empty probe becomes ``None`` (or ``[]`` for list fields) so the
response keeps the same keys whichever probes succeeded.
"""
from __future__ import annotations

import datetime as dt
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import (
    BatteryInfo,
    BiosInfo,
    CpuInfo,
    CpuMetrics,
    DefaultRoute,
    DiskLayoutEntry,
    DiskMetrics,
    FsSize,
    GpuMetrics,
    GraphicsController,
    GraphicsInfo,
    MemoryInfo,
    MemoryMetrics,
    Metrics,
    NetworkInterface,
    NetworkInterfaceInfo,
    NetworkMetrics,
    NetworkStat,
    PowerMetrics,
    Snapshot,
    StorageDeviceInfo,
    TemperatureMetrics,
)

STANDARD_RAM_SIZES_GB = (4, 8, 16, 32, 64, 128)
GIB = 1024 ** 3
MIB = 1024 * 1024
BYTES_PER_SEC_PER_MBIT = 125_000


def round_half_up(value: float) -> int:
    """Round like JavaScript's ``Math.round``: halves go towards positive infinity."""
    return math.floor(value + 0.5)


def to_fixed(value: float, digits: int) -> str:
    """Format like JavaScript's ``toFixed``: exact halves of the binary value round up."""
    return str(Decimal(value).quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP))


def snap_to_standard_ram_size(size_gb: float) -> int:
    """Return the standard module size closest to ``size_gb``; the smaller one wins a tie."""
    return min(STANDARD_RAM_SIZES_GB, key=lambda size: abs(size - size_gb))


def usage_percent(used: float, total: float) -> Optional[int]:
    if not total:
        return None
    return round_half_up(used / total * 100)


def bytes_to_mbit(rate: Optional[float]) -> Optional[int]:
    return round_half_up(rate / BYTES_PER_SEC_PER_MBIT) if rate else None


def bytes_to_mib(rate: Optional[float]) -> Optional[int]:
    return round_half_up(rate / MIB) if rate else None


def format_timestamp(moment: dt.datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    stamp = moment.astimezone(dt.timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def format_bios(bios: Optional[BiosInfo]) -> Optional[str]:
    if bios is None:
        return None
    if bios.version and bios.release_date:
        return f"{bios.version} ({bios.release_date})"
    return bios.version or None


def format_cpu(cpu: Optional[CpuInfo]) -> Optional[str]:
    if cpu is None:
        return None
    return " ".join(part for part in (cpu.manufacturer, cpu.brand) if part) or None


def format_primary_storage(disks: Optional[Sequence[DiskLayoutEntry]]) -> Optional[str]:
    if not disks:
        return None
    first = disks[0]
    return f"{to_fixed(first.size / 1e12, 1)}TB {first.type}"


def first_stat_by_iface(stats: Sequence[NetworkStat]) -> Dict[str, NetworkStat]:
    by_name: Dict[str, NetworkStat] = {}
    for stat in stats:
        by_name.setdefault(stat.iface, stat)
    return by_name


def select_active_interface(
    interfaces: Sequence[NetworkInterface], stats: Sequence[NetworkStat]
) -> Tuple[Optional[NetworkInterface], Optional[NetworkStat]]:
    """Pick the first external interface that has counters, in list order.

    When no interface qualifies the first stats entry is used on its own, so
    rates can still be reported without an interface name.
    """
    by_name = first_stat_by_iface(stats)
    active = next((intf for intf in interfaces if not intf.internal and intf.iface in by_name), None)
    if active is not None:
        return active, by_name[active.iface]
    return None, (stats[0] if stats else None)


def active_interfaces(
    interfaces: Sequence[NetworkInterface],
    stats: Sequence[NetworkStat],
    route: Optional[DefaultRoute],
) -> List[NetworkInterfaceInfo]:
    by_name = first_stat_by_iface(stats)
    active = []
    for intf in interfaces:
        if intf.operstate != "up" or intf.internal:
            continue
        stat = by_name.get(intf.iface)
        active.append(
            NetworkInterfaceInfo(
                iface=intf.iface,
                type=intf.type,
                mac=intf.mac,
                ip4=intf.ip4,
                ip6=intf.ip6 or None,
                speed=intf.speed,
                dhcp=intf.dhcp,
                rx_sec=(stat.rx_sec or 0) if stat else 0,
                tx_sec=(stat.tx_sec or 0) if stat else 0,
                operstate=intf.operstate,
                gateway=route.gateway if route is not None and route.iface == intf.iface else None,
            )
        )
    return active


def storage_devices(sizes: Sequence[FsSize]) -> List[StorageDeviceInfo]:
    return [
        StorageDeviceInfo(
            name=fs.fs,
            size=fs.size,
            used=fs.used,
            usage_percent=usage_percent(fs.used, fs.size),
            type=fs.type,
        )
        for fs in sizes
    ]


def memory_metrics(mem: Optional[MemoryInfo]) -> MemoryMetrics:
    if mem is None or not mem.total:
        return MemoryMetrics(usage_percent=None, used_gb=None, total_gb=None)
    return MemoryMetrics(
        usage_percent=usage_percent(mem.used, mem.total),
        used_gb=to_fixed(mem.used / GIB, 1),
        total_gb=str(snap_to_standard_ram_size(mem.total / GIB)),
    )


def gpu_metrics(gpu: Optional[GraphicsController]) -> GpuMetrics:
    if gpu is None:
        return GpuMetrics(usage=None, memory_used=None, memory_total=None)
    return GpuMetrics(
        usage=gpu.utilization_gpu,
        memory_used=to_fixed(gpu.memory_used / 1024, 1) if gpu.memory_used else None,
        memory_total=to_fixed(gpu.memory_total / 1024, 0) if gpu.memory_total else None,
    )


def power_metrics(battery: Optional[BatteryInfo]) -> Optional[PowerMetrics]:
    if battery is None or not battery.has_battery:
        return None
    return PowerMetrics(has_battery=True, percent=battery.percent, is_charging=battery.is_charging)


def normalize(results: Any, now: dt.datetime) -> Snapshot:
    """Build a :class:`Snapshot` from a set of probe results.

    ``results`` only needs a ``value(name)`` method that returns the probe's
    record, or ``None`` when that probe failed.
    """
    interfaces = results.value("network_interfaces") or []
    stats = results.value("network_stats") or []
    route: Optional[DefaultRoute] = results.value("default_route")
    graphics: Optional[GraphicsInfo] = results.value("graphics")
    load = results.value("current_load")
    cpu_temp = results.value("cpu_temperature")
    disks_io = results.value("disks_io")
    firmware = results.value("firmware")
    connections = results.value("network_connections")

    memory = memory_metrics(results.value("mem"))
    gpu = graphics.controllers[0] if graphics is not None and graphics.controllers else None
    active, active_stat = select_active_interface(interfaces, stats)
    cpu_temperature = cpu_temp.main if cpu_temp is not None else None

    return Snapshot(
        bios_version=format_bios(results.value("bios")),
        cpu=format_cpu(results.value("cpu")),
        memory=f"{memory.total_gb}GB" if memory.total_gb is not None else None,
        storage=format_primary_storage(results.value("disk_layout")),
        boot_mode=firmware.boot_mode if firmware is not None else None,
        graphics=gpu.model if gpu is not None else None,
        network=active_interfaces(interfaces, stats, route),
        system_time=format_timestamp(now),
        gateway=route.gateway if route is not None else None,
        metrics=Metrics(
            cpu=CpuMetrics(
                usage=round_half_up(load.current_load) if load is not None else None,
                temperature=cpu_temperature,
            ),
            memory=memory,
            gpu=gpu_metrics(gpu),
            network=NetworkMetrics(
                download_speed=bytes_to_mbit(active_stat.rx_sec) if active_stat else None,
                upload_speed=bytes_to_mbit(active_stat.tx_sec) if active_stat else None,
                interface=active.iface if active is not None else None,
                connections=(
                    sum(1 for conn in connections if conn.state == "ESTABLISHED")
                    if connections is not None
                    else None
                ),
            ),
            disk=DiskMetrics(
                read_speed=bytes_to_mib(disks_io.read_sec) if disks_io is not None else None,
                write_speed=bytes_to_mib(disks_io.write_sec) if disks_io is not None else None,
            ),
            power=power_metrics(results.value("battery")),
            temperatures=TemperatureMetrics(
                cpu=cpu_temperature,
                gpu=gpu.temperature_gpu if gpu is not None else None,
            ),
            storage=storage_devices(results.value("fs_size") or []),
        ),
    )
