"""
Resource alert checks: CPU, memory, per-mount disk usage and load average.
"""

import os
from typing import List, Optional, Tuple

import psutil
from pydantic import BaseModel, Field

LOAD_FACTOR = 0.8


class ResourceSnapshot(BaseModel):
    cpu_percent: float
    memory_percent: float
    disks: List[Tuple[str, float]] = Field(default_factory=list)
    load1: Optional[float] = None
    cpu_count: int = 1


class Alert(BaseModel):
    resource: str
    value: float
    threshold: float

    @property
    def breached(self) -> bool:
        return self.value > self.threshold

    @property
    def message(self) -> str:
        if self.resource == "load":
            if self.breached:
                return f"High load average: {self.value:.2f} (threshold: {self.threshold:.2f})"
            return f"Load average normal: {self.value:.2f}"
        if self.resource.startswith("disk:"):
            mount = self.resource[len("disk:"):]
            if self.breached:
                return f"{mount} is {self.value:.0f}% full"
            return f"{mount} usage normal: {self.value:.0f}%"
        name = "CPU" if self.resource == "cpu" else "memory"
        if self.breached:
            return f"High {name} usage: {self.value:.1f}%"
        return f"{name[0].upper() + name[1:]} usage normal: {self.value:.1f}%"


def disk_usage() -> List[Tuple[str, float]]:
    """(mountpoint, percent used) for every physical partition."""
    usage = []
    for part in psutil.disk_partitions(all=False):
        try:
            usage.append((part.mountpoint, psutil.disk_usage(part.mountpoint).percent))
        except (PermissionError, OSError):
            continue
    return usage


def take_snapshot(interval: float = 1.0) -> ResourceSnapshot:
    try:
        load1 = os.getloadavg()[0]
    except (AttributeError, OSError):
        load1 = None
    return ResourceSnapshot(
        cpu_percent=psutil.cpu_percent(interval=interval),
        memory_percent=psutil.virtual_memory().percent,
        disks=disk_usage(),
        load1=load1,
        cpu_count=psutil.cpu_count() or 1,
    )


def evaluate_alerts(
    snapshot: ResourceSnapshot,
    cpu_threshold: float = 80.0,
    memory_threshold: float = 80.0,
    disk_threshold: float = 80.0,
) -> List[Alert]:
    """One Alert per checked resource; ``breached`` tells which fired."""
    alerts = [
        Alert(resource="cpu", value=snapshot.cpu_percent, threshold=cpu_threshold),
        Alert(resource="memory", value=snapshot.memory_percent, threshold=memory_threshold),
    ]
    alerts += [
        Alert(resource=f"disk:{mount}", value=used, threshold=disk_threshold)
        for mount, used in snapshot.disks
    ]
    if snapshot.load1 is not None:
        alerts.append(
            Alert(resource="load", value=snapshot.load1, threshold=snapshot.cpu_count * LOAD_FACTOR)
        )
    return alerts
