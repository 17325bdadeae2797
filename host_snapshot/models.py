"""Typed probe records and the snapshot they are normalized into."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


# Raw probe records. Sizes are bytes and rates are bytes per second unless noted.


@dataclass(frozen=True)
class BiosInfo:
    vendor: Optional[str]
    version: Optional[str]
    release_date: Optional[str]


@dataclass(frozen=True)
class CpuInfo:
    manufacturer: Optional[str]
    brand: Optional[str]
    cores: int
    physical_cores: Optional[int]
    speed_mhz: Optional[float]


@dataclass(frozen=True)
class MemoryInfo:
    total: int
    used: int
    available: int


@dataclass(frozen=True)
class DiskLayoutEntry:
    device: str
    name: Optional[str]
    type: str
    size: int


@dataclass(frozen=True)
class GraphicsController:
    """One GPU as reported by the driver tooling; memory figures are in MB."""

    vendor: Optional[str]
    model: Optional[str]
    utilization_gpu: Optional[float]
    memory_used: Optional[float]
    memory_total: Optional[float]
    temperature_gpu: Optional[float]


@dataclass(frozen=True)
class GraphicsInfo:
    controllers: List[GraphicsController] = field(default_factory=list)


@dataclass(frozen=True)
class CurrentLoad:
    current_load: float


@dataclass(frozen=True)
class CpuTemperature:
    main: Optional[float]


@dataclass(frozen=True)
class NetworkStat:
    iface: str
    rx_bytes: int
    tx_bytes: int
    rx_sec: Optional[float]
    tx_sec: Optional[float]


@dataclass(frozen=True)
class DisksIO:
    read_bytes: int
    write_bytes: int
    read_sec: Optional[float]
    write_sec: Optional[float]


@dataclass(frozen=True)
class BatteryInfo:
    has_battery: bool
    percent: Optional[float] = None
    is_charging: Optional[bool] = None


@dataclass(frozen=True)
class FsSize:
    fs: str
    type: str
    size: int
    used: int
    mount: str


@dataclass(frozen=True)
class NetworkInterface:
    iface: str
    type: str
    mac: Optional[str]
    ip4: Optional[str]
    ip6: Optional[str]
    speed: Optional[int]
    dhcp: bool
    internal: bool
    operstate: str


@dataclass(frozen=True)
class NetworkConnection:
    protocol: str
    local_address: Optional[str]
    local_port: Optional[int]
    peer_address: Optional[str]
    peer_port: Optional[int]
    state: str
    pid: Optional[int]


@dataclass(frozen=True)
class DefaultRoute:
    iface: str
    gateway: str


@dataclass(frozen=True)
class FirmwareInfo:
    boot_mode: str


# Public snapshot shape. Every field is present; missing data is None or [].


@dataclass(frozen=True)
class NetworkInterfaceInfo:
    iface: str
    type: str
    mac: Optional[str]
    ip4: Optional[str]
    ip6: Optional[str]
    speed: Optional[int]
    dhcp: bool
    rx_sec: float
    tx_sec: float
    operstate: str
    gateway: Optional[str]


@dataclass(frozen=True)
class StorageDeviceInfo:
    name: str
    size: int
    used: int
    usage_percent: Optional[int]
    type: str


@dataclass(frozen=True)
class CpuMetrics:
    usage: Optional[int]
    temperature: Optional[float]


@dataclass(frozen=True)
class MemoryMetrics:
    usage_percent: Optional[int]
    used_gb: Optional[str]
    total_gb: Optional[str]


@dataclass(frozen=True)
class GpuMetrics:
    usage: Optional[float]
    memory_used: Optional[str]
    memory_total: Optional[str]


@dataclass(frozen=True)
class NetworkMetrics:
    download_speed: Optional[int]
    upload_speed: Optional[int]
    interface: Optional[str]
    connections: Optional[int]


@dataclass(frozen=True)
class DiskMetrics:
    read_speed: Optional[int]
    write_speed: Optional[int]


@dataclass(frozen=True)
class PowerMetrics:
    has_battery: bool
    percent: Optional[float]
    is_charging: Optional[bool]


@dataclass(frozen=True)
class TemperatureMetrics:
    cpu: Optional[float]
    gpu: Optional[float]


@dataclass(frozen=True)
class Metrics:
    cpu: CpuMetrics
    memory: MemoryMetrics
    gpu: GpuMetrics
    network: NetworkMetrics
    disk: DiskMetrics
    power: Optional[PowerMetrics]
    temperatures: TemperatureMetrics
    storage: List[StorageDeviceInfo]


@dataclass(frozen=True)
class Snapshot:
    bios_version: Optional[str]
    cpu: Optional[str]
    memory: Optional[str]
    storage: Optional[str]
    boot_mode: Optional[str]
    graphics: Optional[str]
    network: List[NetworkInterfaceInfo]
    system_time: str
    gateway: Optional[str]
    metrics: Metrics
