from .account import AccountReconciler
from .base import Reconciler, Result
from .catalogservice import CatalogServiceReconciler
from .modeldeployment import ModelDeploymentReconciler
from .virtualmachine import VirtualMachineReconciler
from .workspace import WorkspaceReconciler

__all__ = [
    "AccountReconciler",
    "CatalogServiceReconciler",
    "ModelDeploymentReconciler",
    "Reconciler",
    "Result",
    "VirtualMachineReconciler",
    "WorkspaceReconciler",
]
