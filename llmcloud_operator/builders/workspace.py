"""Namespace, RoleBinding and ResourceQuota manifests projected from a Workspace."""
from __future__ import annotations

from typing import Any, Dict, Optional

from kubernetes.client.models import V1Namespace, V1ObjectMeta, V1OwnerReference, V1ResourceQuota, V1ResourceQuotaSpec

from ..constants import (
    DEFAULT_CLUSTER_ROLE,
    LABEL_MANAGED,
    LABEL_WORKSPACE,
    LLMCLOUD_GROUP,
    MEMBER_ROLE_TO_CLUSTER_ROLE,
    MODEL_DEPLOYMENT,
    RESOURCE_QUOTA_NAME,
    VIRTUAL_MACHINE,
    WORKSPACE,
)
from ..models import WorkspaceMember, WorkspaceResourceQuotas
from .serialize import to_manifest

RBAC_GROUP = "rbac.authorization.k8s.io"


def namespace_name(workspace: str, prefix: str = "workspace-") -> str:
    return f"{prefix}{workspace}"


def workspace_labels(workspace: str) -> Dict[str, str]:
    return {LABEL_WORKSPACE: workspace, LABEL_MANAGED: "true"}


def cluster_role_for(role: str) -> str:
    """owner/admin -> admin, developer -> edit, anything else -> view."""
    return MEMBER_ROLE_TO_CLUSTER_ROLE.get(role, DEFAULT_CLUSTER_ROLE)


def owner_reference(workspace: Dict[str, Any]) -> V1OwnerReference:
    meta = workspace["metadata"]
    return V1OwnerReference(
        api_version=WORKSPACE.api_version,
        kind=WORKSPACE.kind,
        name=meta["name"],
        uid=meta.get("uid", ""),
        controller=True,
        block_owner_deletion=True,
    )


def build_namespace(workspace: Dict[str, Any], name: str) -> Dict[str, Any]:
    ws_name = workspace["metadata"]["name"]
    namespace = V1Namespace(
        api_version="v1",
        kind="Namespace",
        metadata=V1ObjectMeta(
            name=name,
            labels=workspace_labels(ws_name),
            owner_references=[owner_reference(workspace)],
        ),
    )
    return to_manifest(namespace)


def role_binding_name(workspace: str, username: str) -> str:
    return f"{workspace}-{username}"


def build_role_binding(workspace: str, namespace: str, member: WorkspaceMember) -> Dict[str, Any]:
    return {
        "apiVersion": f"{RBAC_GROUP}/v1",
        "kind": "RoleBinding",
        "metadata": {
            "name": role_binding_name(workspace, member.username),
            "namespace": namespace,
            "labels": workspace_labels(workspace),
        },
        "subjects": [{"kind": "User", "name": member.username, "apiGroup": RBAC_GROUP}],
        "roleRef": {"apiGroup": RBAC_GROUP, "kind": "ClusterRole", "name": cluster_role_for(member.role)},
    }


def quota_hard_limits(quotas: WorkspaceResourceQuotas) -> Dict[str, str]:
    hard: Dict[str, str] = {}
    if quotas.max_vms is not None:
        hard[f"count/{VIRTUAL_MACHINE.plural}.{LLMCLOUD_GROUP}"] = str(quotas.max_vms)
    if quotas.max_models is not None:
        hard[f"count/{MODEL_DEPLOYMENT.plural}.{LLMCLOUD_GROUP}"] = str(quotas.max_models)
    if quotas.max_cpu:
        hard["requests.cpu"] = hard["limits.cpu"] = quotas.max_cpu
    if quotas.max_memory:
        hard["requests.memory"] = hard["limits.memory"] = quotas.max_memory
    return hard


def build_resource_quota(workspace: str, namespace: str, quotas: Optional[WorkspaceResourceQuotas]) -> Optional[Dict[str, Any]]:
    """The namespace quota, or None when the workspace declares no limits."""
    if quotas is None or quotas.is_empty():
        return None
    quota = V1ResourceQuota(
        api_version="v1",
        kind="ResourceQuota",
        metadata=V1ObjectMeta(name=RESOURCE_QUOTA_NAME, namespace=namespace, labels=workspace_labels(workspace)),
        spec=V1ResourceQuotaSpec(hard=quota_hard_limits(quotas)),
    )
    return to_manifest(quota)
