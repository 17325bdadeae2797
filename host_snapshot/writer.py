"""Serialize snapshots into the JSON body served by the API."""
from __future__ import annotations

from typing import Any, Dict, Optional

from .models import NetworkInterfaceInfo, PowerMetrics, Snapshot, StorageDeviceInfo

SNAPSHOT_ERROR_BODY = {"error": "Failed to fetch system info"}


def _interface(intf: NetworkInterfaceInfo) -> Dict[str, Any]:
    return {
        "iface": intf.iface,
        "type": intf.type,
        "mac": intf.mac,
        "ip4": intf.ip4,
        "ip6": intf.ip6,
        "speed": intf.speed,
        "dhcp": intf.dhcp,
        "rx_sec": intf.rx_sec,
        "tx_sec": intf.tx_sec,
        "operstate": intf.operstate,
        "gateway": intf.gateway,
    }


def _storage(device: StorageDeviceInfo) -> Dict[str, Any]:
    return {
        "name": device.name,
        "size": device.size,
        "used": device.used,
        "usagePercent": device.usage_percent,
        "type": device.type,
    }


def _power(power: Optional[PowerMetrics]) -> Optional[Dict[str, Any]]:
    if power is None:
        return None
    return {"hasBattery": power.has_battery, "percent": power.percent, "isCharging": power.is_charging}


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    metrics = snapshot.metrics
    return {
        "biosVersion": snapshot.bios_version,
        "cpu": snapshot.cpu,
        "memory": snapshot.memory,
        "storage": snapshot.storage,
        "bootMode": snapshot.boot_mode,
        "graphics": snapshot.graphics,
        "network": [_interface(intf) for intf in snapshot.network],
        "systemTime": snapshot.system_time,
        "gateway": snapshot.gateway,
        "metrics": {
            "cpu": {"usage": metrics.cpu.usage, "temperature": metrics.cpu.temperature},
            "memory": {
                "usagePercent": metrics.memory.usage_percent,
                "usedGB": metrics.memory.used_gb,
                "totalGB": metrics.memory.total_gb,
            },
            "gpu": {
                "usage": metrics.gpu.usage,
                "memoryUsed": metrics.gpu.memory_used,
                "memoryTotal": metrics.gpu.memory_total,
            },
            "network": {
                "downloadSpeed": metrics.network.download_speed,
                "uploadSpeed": metrics.network.upload_speed,
                "interface": metrics.network.interface,
                "connections": metrics.network.connections,
            },
            "disk": {"readSpeed": metrics.disk.read_speed, "writeSpeed": metrics.disk.write_speed},
            "power": _power(metrics.power),
            "temperatures": {"cpu": metrics.temperatures.cpu, "gpu": metrics.temperatures.gpu},
            "storage": [_storage(device) for device in metrics.storage],
        },
    }
