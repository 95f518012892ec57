"""
Constants shared by the reconcilers, the store and the kopf handlers.

Resource kinds are described by :class:`ResourceKind` so the store can route
calls for custom resources, grouped built-ins (apps, rbac) and core objects
through one interface.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

# ---------------------------------------------------------------------------
# API groups -----------------------------------------------------------------
# ---------------------------------------------------------------------------
LLMCLOUD_GROUP = "llmcloud.llmcloud.io"
LLMCLOUD_VERSION = "v1alpha1"

KUBEVIRT_GROUP = "kubevirt.io"
KUBEVIRT_VERSION = "v1"


@dataclass(frozen=True)
class ResourceKind:
    """Enough addressing information to reach one kind of object."""

    group: str
    version: str
    plural: str
    kind: str
    namespaced: bool = True
    # snake_case singular, used to find typed CoreV1Api methods for the core group
    singular: str = ""

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def resource(self) -> Tuple[str, str, str]:
        """(group, version, plural), as kopf's decorators take them."""
        return self.group, self.version, self.plural

    @property
    def is_core(self) -> bool:
        return not self.group

    def __str__(self) -> str:
        return f"{self.plural}.{self.group}" if self.group else self.plural


# Declared resources ---------------------------------------------------------
WORKSPACE = ResourceKind(LLMCLOUD_GROUP, LLMCLOUD_VERSION, "workspaces", "Workspace", namespaced=False)
VIRTUAL_MACHINE = ResourceKind(LLMCLOUD_GROUP, LLMCLOUD_VERSION, "virtualmachines", "VirtualMachine")
MODEL_DEPLOYMENT = ResourceKind(LLMCLOUD_GROUP, LLMCLOUD_VERSION, "modeldeployments", "ModelDeployment")
CATALOG_SERVICE = ResourceKind(LLMCLOUD_GROUP, LLMCLOUD_VERSION, "catalogservices", "CatalogService")
ACCOUNT = ResourceKind(LLMCLOUD_GROUP, LLMCLOUD_VERSION, "accounts", "Account", namespaced=False)

DECLARED_KINDS = (WORKSPACE, VIRTUAL_MACHINE, MODEL_DEPLOYMENT, CATALOG_SERVICE, ACCOUNT)

# External objects -----------------------------------------------------------
KUBEVIRT_VM = ResourceKind(KUBEVIRT_GROUP, KUBEVIRT_VERSION, "virtualmachines", "VirtualMachine")
KUBEVIRT_VMI = ResourceKind(KUBEVIRT_GROUP, KUBEVIRT_VERSION, "virtualmachineinstances", "VirtualMachineInstance")
DEPLOYMENT = ResourceKind("apps", "v1", "deployments", "Deployment")
ROLE_BINDING = ResourceKind("rbac.authorization.k8s.io", "v1", "rolebindings", "RoleBinding")
NAMESPACE = ResourceKind("", "v1", "namespaces", "Namespace", namespaced=False, singular="namespace")
SERVICE = ResourceKind("", "v1", "services", "Service", singular="service")
RESOURCE_QUOTA = ResourceKind("", "v1", "resourcequotas", "ResourceQuota", singular="resource_quota")

# ---------------------------------------------------------------------------
# Finalizers, labels, annotations --------------------------------------------
# ---------------------------------------------------------------------------
WORKSPACE_FINALIZER = f"{LLMCLOUD_GROUP}/finalizer"
VM_FINALIZER = f"{LLMCLOUD_GROUP}/vm-finalizer"
MODEL_FINALIZER = f"{LLMCLOUD_GROUP}/model-finalizer"
SERVICE_FINALIZER = f"{LLMCLOUD_GROUP}/service-finalizer"
ACCOUNT_FINALIZER = f"{LLMCLOUD_GROUP}/account-finalizer"
# kopf's own marker, held until its delete handlers have run
KOPF_FINALIZER = f"{LLMCLOUD_GROUP}/kopf-finalizer"

LABEL_MANAGED = "llmcloud.io/managed"
LABEL_WORKSPACE = "llmcloud.io/workspace"
LABEL_VIRTUAL_MACHINE = "llmcloud.io/virtualmachine"
LABEL_OWNER_KIND = "llmcloud.io/owner-kind"
LABEL_OWNER_NAME = "llmcloud.io/owner-name"

ANNOTATION_REBOOT = "llmcloud.io/reboot"
ANNOTATION_LAST_LOGIN = "llmcloud.io/last-login"

RESOURCE_QUOTA_NAME = "workspace-quota"


# ---------------------------------------------------------------------------
# Enums ----------------------------------------------------------------------
# ---------------------------------------------------------------------------
class Phase(str, Enum):
    """Phases written into declared resources' status."""

    PENDING = "Pending"
    RUNNING = "Running"
    STOPPED = "Stopped"
    ACTIVE = "Active"
    ERROR = "Error"


class RunStrategy(str, Enum):
    """KubeVirt run strategies accepted on a VirtualMachine spec."""

    ALWAYS = "Always"
    RERUN_ON_FAILURE = "RerunOnFailure"
    MANUAL = "Manual"
    HALTED = "Halted"


class KubeVirtVMIPhase(str, Enum):
    """Phases as emitted by KubeVirt on a VirtualMachineInstance."""

    RUNNING = "Running"


# Workspace member role -> ClusterRole granted in the workspace namespace.
# Anything not listed maps to "view".
MEMBER_ROLE_TO_CLUSTER_ROLE = {
    "owner": "admin",
    "admin": "admin",
    "developer": "edit",
}
DEFAULT_CLUSTER_ROLE = "view"
