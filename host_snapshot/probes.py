"""Per-domain host probes.

Every probe is a zero-argument callable that returns one typed record from
:mod:`host_snapshot.models` or raises. Probes are independent of each other and
only read from the host, so the aggregator can run them side by side and treat
each failure on its own.
"""
from __future__ import annotations

import datetime as dt
import logging
import platform
import re
import socket
import struct
import subprocess
import time
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import psutil

from .config import Settings
from .models import (
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
from .normalizer import round_half_up

DMI_PATH = Path("/sys/class/dmi/id")
PROC_CPUINFO = Path("/proc/cpuinfo")
PROC_ROUTE = Path("/proc/net/route")
SYS_BLOCK = Path("/sys/block")
SYS_NET = Path("/sys/class/net")
SYS_FIRMWARE = Path("/sys/firmware")

CPU_VENDORS = {"GenuineIntel": "Intel", "AuthenticAMD": "AMD"}
CPU_SENSOR_CHIPS = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "acpitz")
NVIDIA_SMI_FIELDS = "name,utilization.gpu,memory.used,memory.total,temperature.gpu"
SKIPPED_BLOCK_DEVICES = ("loop", "ram", "zram", "dm-", "sr", "md", "fd")
RTF_GATEWAY = 0x2

_BRAND_MARKS = re.compile(r"\((?:R|TM)\)|®|™", re.IGNORECASE)
_BRAND_CLOCK = re.compile(r"\s*(?:CPU\s*)?@.*$")

ProbeFn = Callable[[], Any]


class ProbeError(Exception):
    """A single probe could not produce its record."""

    def __init__(self, probe: str, kind: str, message: str = "") -> None:
        super().__init__(f"{probe} probe failed ({kind}){': ' + message if message else ''}")
        self.probe = probe
        self.kind = kind
        self.message = message


def classify(exc: BaseException) -> str:
    """Map an exception raised by a probe onto a coarse error kind."""
    if isinstance(exc, ProbeError):
        return exc.kind
    if isinstance(exc, (psutil.AccessDenied, PermissionError)):
        return "permission"
    if isinstance(exc, (FileNotFoundError, NotImplementedError, AttributeError)):
        return "unsupported"
    if isinstance(exc, subprocess.TimeoutExpired):
        return "timeout"
    return "error"


def _read_sysfs(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="ignore").strip() or None
    except FileNotFoundError:
        return None


def _rate(before: Optional[int], after: int, elapsed: float) -> Optional[float]:
    if before is None or elapsed <= 0:
        return None
    return max(after - before, 0) / elapsed


def _sample(read: Callable[[], Any], interval: float) -> Tuple[Any, Any, float]:
    before = read()
    started = time.monotonic()
    time.sleep(interval)
    after = read()
    return before, after, time.monotonic() - started


def probe_bios() -> BiosInfo:
    if not DMI_PATH.is_dir():
        raise ProbeError("bios", "unsupported", "no DMI data on this platform")
    version = _read_sysfs(DMI_PATH / "bios_version")
    release_date = _read_sysfs(DMI_PATH / "bios_date")
    if release_date:
        try:
            release_date = dt.datetime.strptime(release_date, "%m/%d/%Y").date().isoformat()
        except ValueError:
            pass
    if version is None and release_date is None:
        raise ProbeError("bios", "unavailable", "firmware did not report a version")
    return BiosInfo(vendor=_read_sysfs(DMI_PATH / "bios_vendor"), version=version, release_date=release_date)


def clean_cpu_brand(model: Optional[str], manufacturer: Optional[str]) -> Optional[str]:
    """Strip trademark marks, the vendor word and the clock suffix from a CPU model name."""
    if not model:
        return None
    brand = _BRAND_CLOCK.sub("", _BRAND_MARKS.sub("", model)).strip()
    if manufacturer and brand.lower().startswith(manufacturer.lower()):
        brand = brand[len(manufacturer):]
    return " ".join(brand.split()) or None


def _cpuinfo_fields() -> Tuple[Optional[str], Optional[str]]:
    text = _read_sysfs(PROC_CPUINFO)
    vendor = model = None
    for line in (text or "").splitlines():
        key, _, value = line.partition(":")
        key = key.strip()
        if key == "vendor_id" and vendor is None:
            vendor = value.strip()
        elif key == "model name" and model is None:
            model = value.strip()
    return vendor, model


def probe_cpu() -> CpuInfo:
    vendor, model = _cpuinfo_fields()
    model = model or platform.processor() or None
    manufacturer = CPU_VENDORS.get(vendor, vendor) if vendor else None
    if manufacturer is None and model:
        manufacturer = next((name for name in CPU_VENDORS.values() if model.startswith(name)), None)
    try:
        freq = psutil.cpu_freq()
    except (NotImplementedError, FileNotFoundError):
        freq = None
    return CpuInfo(
        manufacturer=manufacturer,
        brand=clean_cpu_brand(model, manufacturer),
        cores=psutil.cpu_count(logical=True) or 0,
        physical_cores=psutil.cpu_count(logical=False),
        speed_mhz=freq.current if freq else None,
    )


def probe_mem() -> MemoryInfo:
    vm = psutil.virtual_memory()
    return MemoryInfo(total=vm.total, used=vm.used, available=vm.available)


def probe_disk_layout() -> List[DiskLayoutEntry]:
    if not SYS_BLOCK.is_dir():
        raise ProbeError("disk_layout", "unsupported", "no /sys/block on this platform")
    entries = []
    for device in sorted(SYS_BLOCK.iterdir()):
        name = device.name
        if name.startswith(SKIPPED_BLOCK_DEVICES):
            continue
        sectors = _read_sysfs(device / "size")
        if not sectors or not int(sectors):
            continue
        if name.startswith("nvme"):
            kind = "NVMe"
        else:
            kind = "HDD" if _read_sysfs(device / "queue" / "rotational") == "1" else "SSD"
        entries.append(
            DiskLayoutEntry(
                device=f"/dev/{name}",
                name=_read_sysfs(device / "device" / "model"),
                type=kind,
                # sysfs always counts 512-byte sectors
                size=int(sectors) * 512,
            )
        )
    return entries


def _smi_value(raw: str) -> Optional[float]:
    raw = raw.strip()
    try:
        return float(raw)
    except ValueError:
        return None


def parse_nvidia_smi(output: str) -> List[GraphicsController]:
    controllers = []
    for line in output.splitlines():
        if not line.strip():
            continue
        name, util, used, total, temp = (line.split(",") + [""] * 5)[:5]
        controllers.append(
            GraphicsController(
                vendor="NVIDIA",
                model=name.strip() or None,
                utilization_gpu=_smi_value(util),
                memory_used=_smi_value(used),
                memory_total=_smi_value(total),
                temperature_gpu=_smi_value(temp),
            )
        )
    return controllers


def probe_graphics(timeout: Optional[float] = None) -> GraphicsInfo:
    try:
        result = subprocess.run(
            ["nvidia-smi", f"--query-gpu={NVIDIA_SMI_FIELDS}", "--format=csv,noheader,nounits"],
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ProbeError("graphics", "unsupported", "nvidia-smi not found") from exc
    except subprocess.CalledProcessError as exc:
        raise ProbeError("graphics", "unavailable", (exc.stderr or "").strip()) from exc
    return GraphicsInfo(controllers=parse_nvidia_smi(result.stdout))


def probe_current_load(interval: float) -> CurrentLoad:
    return CurrentLoad(current_load=float(psutil.cpu_percent(interval=interval)))


def probe_cpu_temperature() -> CpuTemperature:
    if not hasattr(psutil, "sensors_temperatures"):
        raise ProbeError("cpu_temperature", "unsupported", "no temperature sensors API")
    temps = psutil.sensors_temperatures()
    for name in CPU_SENSOR_CHIPS:
        entries = temps.get(name)
        if entries and entries[0].current is not None:
            return CpuTemperature(main=float(entries[0].current))
    for entries in temps.values():
        if entries and entries[0].current is not None:
            return CpuTemperature(main=float(entries[0].current))
    return CpuTemperature(main=None)


def probe_network_stats(interval: float) -> List[NetworkStat]:
    before, after, elapsed = _sample(partial(psutil.net_io_counters, pernic=True), interval)
    stats = []
    for iface, counters in after.items():
        prev = before.get(iface)
        stats.append(
            NetworkStat(
                iface=iface,
                rx_bytes=counters.bytes_recv,
                tx_bytes=counters.bytes_sent,
                rx_sec=_rate(prev.bytes_recv if prev else None, counters.bytes_recv, elapsed),
                tx_sec=_rate(prev.bytes_sent if prev else None, counters.bytes_sent, elapsed),
            )
        )
    return stats


def probe_disks_io(interval: float) -> DisksIO:
    before, after, elapsed = _sample(psutil.disk_io_counters, interval)
    if after is None:
        raise ProbeError("disks_io", "unavailable", "no disk counters reported")
    return DisksIO(
        read_bytes=after.read_bytes,
        write_bytes=after.write_bytes,
        read_sec=_rate(before.read_bytes if before else None, after.read_bytes, elapsed),
        write_sec=_rate(before.write_bytes if before else None, after.write_bytes, elapsed),
    )


def probe_battery() -> BatteryInfo:
    if not hasattr(psutil, "sensors_battery"):
        raise ProbeError("battery", "unsupported", "no battery sensors API")
    battery = psutil.sensors_battery()
    if battery is None:
        return BatteryInfo(has_battery=False)
    plugged = battery.power_plugged
    return BatteryInfo(
        has_battery=True,
        percent=round_half_up(battery.percent),
        is_charging=None if plugged is None else bool(plugged) and battery.percent < 100,
    )


def probe_fs_size() -> List[FsSize]:
    sizes = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except OSError as exc:
            logging.debug("Skipping filesystem %s: %s", part.mountpoint, exc)
            continue
        sizes.append(
            FsSize(fs=part.device, type=part.fstype, size=usage.total, used=usage.used, mount=part.mountpoint)
        )
    return sizes


def _link_type(iface: str) -> str:
    if iface.startswith("wl") or (SYS_NET / iface / "wireless").exists():
        return "wireless"
    return "wired"


def _is_internal(iface: str, ip4: Optional[str]) -> bool:
    lowered = iface.lower()
    return lowered.startswith("lo") or "loopback" in lowered or (ip4 or "").startswith("127.")


def _operstate(iface: str, stat: Any) -> str:
    state = _read_sysfs(SYS_NET / iface / "operstate")
    if state:
        return state.lower()
    return "up" if stat is not None and stat.isup else "down"


def _uses_dhcp(iface: str) -> bool:
    try:
        index = socket.if_nametoindex(iface)
    except OSError:
        return False
    leases = (
        Path("/run/systemd/netif/leases") / str(index),
        Path("/var/lib/dhcp") / f"dhclient.{iface}.leases",
    )
    if any(lease.exists() for lease in leases):
        return True
    return any(Path("/var/lib/NetworkManager").glob(f"*{iface}.lease"))


def probe_network_interfaces() -> List[NetworkInterface]:
    addrs = psutil.net_if_addrs()
    # net_if_stats() raises in containers without ioctl support
    try:
        stats = psutil.net_if_stats()
    except OSError:
        logging.debug("Network interface stats unavailable; falling back to addresses only")
        stats = {}

    interfaces = []
    for iface in list(addrs) + [name for name in stats if name not in addrs]:
        ip4 = ip6 = mac = None
        for addr in addrs.get(iface, []):
            if addr.family == socket.AF_INET and ip4 is None:
                ip4 = addr.address
            elif addr.family == socket.AF_INET6 and ip6 is None:
                ip6 = addr.address.split("%", 1)[0]
            elif addr.family == psutil.AF_LINK:
                mac = addr.address
        stat = stats.get(iface)
        interfaces.append(
            NetworkInterface(
                iface=iface,
                type=_link_type(iface),
                mac=mac,
                ip4=ip4,
                ip6=ip6,
                speed=stat.speed if stat is not None and stat.speed > 0 else None,
                dhcp=_uses_dhcp(iface),
                internal=_is_internal(iface, ip4),
                operstate=_operstate(iface, stat),
            )
        )
    return interfaces


def probe_network_connections() -> List[NetworkConnection]:
    connections = []
    for conn in psutil.net_connections(kind="inet"):
        connections.append(
            NetworkConnection(
                protocol="tcp" if conn.type == socket.SOCK_STREAM else "udp",
                local_address=conn.laddr.ip if conn.laddr else None,
                local_port=conn.laddr.port if conn.laddr else None,
                peer_address=conn.raddr.ip if conn.raddr else None,
                peer_port=conn.raddr.port if conn.raddr else None,
                state=conn.status,
                pid=conn.pid,
            )
        )
    return connections


def parse_route_table(text: str) -> Optional[DefaultRoute]:
    """Return the first default route with a gateway from /proc/net/route content."""
    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 4 or fields[1] != "00000000":
            continue
        if not int(fields[3], 16) & RTF_GATEWAY:
            continue
        gateway = socket.inet_ntoa(struct.pack("<L", int(fields[2], 16)))
        return DefaultRoute(iface=fields[0], gateway=gateway)
    return None


def probe_default_route() -> DefaultRoute:
    text = _read_sysfs(PROC_ROUTE)
    if text is None:
        raise ProbeError("default_route", "unsupported", "no routing table at /proc/net/route")
    route = parse_route_table(text)
    if route is None:
        raise ProbeError("default_route", "unavailable", "no default route")
    return route


def probe_firmware() -> FirmwareInfo:
    if not SYS_FIRMWARE.is_dir():
        raise ProbeError("firmware", "unsupported", "no /sys/firmware on this platform")
    return FirmwareInfo(boot_mode="UEFI" if (SYS_FIRMWARE / "efi").exists() else "BIOS")


def default_probes(settings: Settings) -> Dict[str, ProbeFn]:
    """Build the probe set for one snapshot, bound to the configured sampling window."""
    return {
        "bios": probe_bios,
        "cpu": probe_cpu,
        "mem": probe_mem,
        "disk_layout": probe_disk_layout,
        "graphics": partial(probe_graphics, timeout=settings.probe_timeout),
        "current_load": partial(probe_current_load, settings.sample_interval),
        "cpu_temperature": probe_cpu_temperature,
        "network_stats": partial(probe_network_stats, settings.sample_interval),
        "disks_io": partial(probe_disks_io, settings.sample_interval),
        "battery": probe_battery,
        "fs_size": probe_fs_size,
        "network_interfaces": probe_network_interfaces,
        "network_connections": probe_network_connections,
        "default_route": probe_default_route,
        "firmware": probe_firmware,
    }
