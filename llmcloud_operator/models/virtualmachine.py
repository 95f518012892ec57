from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from ..constants import RunStrategy
from .common import CamelModel, Condition

SUPPORTED_OS = ("ubuntu", "fedora", "debian", "centos", "alpine", "cirros", "freebsd")


class VirtualMachineSpec(CamelModel):
    cpus: int = Field(default=1, ge=1)
    memory: str = "1Gi"
    disk_size: Optional[str] = None
    # Not restricted to SUPPORTED_OS here: an unknown OS falls back to a default image.
    os: str
    os_version: Optional[str] = Field(default=None, alias="osVersion")
    cloud_init: Optional[str] = None
    ssh_keys: List[str] = Field(default_factory=list, alias="sshKeys")
    run_strategy: Optional[RunStrategy] = None
    storage_class: Optional[str] = None


class VirtualMachineStatus(CamelModel):
    phase: Optional[str] = None
    node: Optional[str] = None
    ip_address: Optional[str] = None
    ready: bool = False
    conditions: List[Condition] = Field(default_factory=list)
