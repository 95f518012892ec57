from .account import AccountSpec, AccountStatus
from .common import CamelModel, Condition, ResourceRequirements, find_condition, now_iso, set_condition
from .virtualmachine import SUPPORTED_OS, VirtualMachineSpec, VirtualMachineStatus
from .workload import (
    CatalogServiceSpec,
    EnvVar,
    ModelDeploymentSpec,
    ServicePort,
    WorkloadStatus,
)
from .workspace import WorkspaceMember, WorkspaceResourceQuotas, WorkspaceSpec, WorkspaceStatus

__all__ = [
    "AccountSpec",
    "AccountStatus",
    "CamelModel",
    "CatalogServiceSpec",
    "Condition",
    "EnvVar",
    "ModelDeploymentSpec",
    "ResourceRequirements",
    "SUPPORTED_OS",
    "ServicePort",
    "VirtualMachineSpec",
    "VirtualMachineStatus",
    "WorkloadStatus",
    "WorkspaceMember",
    "WorkspaceResourceQuotas",
    "WorkspaceSpec",
    "WorkspaceStatus",
    "find_condition",
    "now_iso",
    "set_condition",
]
