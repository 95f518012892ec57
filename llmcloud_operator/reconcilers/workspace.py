from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..builders.workspace import (
    build_namespace,
    build_resource_quota,
    build_role_binding,
    namespace_name,
    role_binding_name,
)
from ..constants import (
    CATALOG_SERVICE,
    MODEL_DEPLOYMENT,
    NAMESPACE,
    RESOURCE_QUOTA,
    RESOURCE_QUOTA_NAME,
    ROLE_BINDING,
    VIRTUAL_MACHINE,
    WORKSPACE,
    WORKSPACE_FINALIZER,
    Phase,
)
from ..errors import ConflictError, NotFoundError, StoreError
from ..models import WorkspaceMember, WorkspaceResourceQuotas, WorkspaceSpec, WorkspaceStatus, set_condition
from .base import READY, Reconciler, Result

logger = logging.getLogger(__name__)


class WorkspaceReconciler(Reconciler[WorkspaceSpec, WorkspaceStatus]):
    """Projects a Workspace into its namespace, member RoleBindings and quota."""

    kind = WORKSPACE
    finalizer = WORKSPACE_FINALIZER
    spec_model = WorkspaceSpec
    status_model = WorkspaceStatus

    def sync(self, obj: Dict[str, Any]) -> Result:
        spec = self.parse_spec(obj)
        name = obj["metadata"]["name"]
        namespace = namespace_name(name, self.config.namespace_prefix)

        status = self.current_status(obj)
        try:
            self.reconcile_namespace(obj, namespace)
            self.reconcile_role_bindings(name, namespace, spec.members)
            self.reconcile_quota(name, namespace, spec.resource_quotas)
            status.vm_count = len(self.store.list(VIRTUAL_MACHINE, namespace=namespace))
            status.llm_model_count = len(self.store.list(MODEL_DEPLOYMENT, namespace=namespace))
            status.service_count = len(self.store.list(CATALOG_SERVICE, namespace=namespace))
        except ConflictError:
            raise
        except StoreError as exc:
            logger.error(f"Failed to reconcile workspace {name}: {exc}")
            self.record_error(obj, str(exc))
            raise

        status.namespace = namespace
        status.phase = Phase.ACTIVE.value
        set_condition(
            status.conditions, READY, True, "WorkspaceReady", "Workspace is ready", obj["metadata"].get("generation")
        )
        return self.persist_status(obj, status)

    def reconcile_namespace(self, workspace: Dict[str, Any], namespace: str) -> None:
        desired = build_namespace(workspace, namespace)
        try:
            existing = self.store.get(NAMESPACE, namespace)
        except NotFoundError:
            self.store.create(NAMESPACE, desired)
            logger.info(f"Created namespace {namespace} for workspace {workspace['metadata']['name']}")
            return

        labels = existing["metadata"].get("labels") or {}
        wanted = desired["metadata"]["labels"]
        if all(labels.get(k) == v for k, v in wanted.items()):
            return
        existing["metadata"]["labels"] = {**labels, **wanted}
        self.store.replace(NAMESPACE, existing)
        logger.info(f"Updated labels of namespace {namespace}")

    def reconcile_role_bindings(self, workspace: str, namespace: str, members: List[WorkspaceMember]) -> None:
        # Bindings of members no longer listed are left in place.
        for member in members:
            desired = build_role_binding(workspace, namespace, member)
            binding = role_binding_name(workspace, member.username)
            try:
                existing = self.store.get(ROLE_BINDING, binding, namespace)
            except NotFoundError:
                self.store.create(ROLE_BINDING, desired)
                logger.info(f"Created role binding {namespace}/{binding} ({desired['roleRef']['name']})")
                continue

            if existing.get("roleRef") != desired["roleRef"]:
                # roleRef is immutable
                self.store.delete(ROLE_BINDING, binding, namespace)
                self.store.create(ROLE_BINDING, desired)
                logger.info(f"Recreated role binding {namespace}/{binding} with role {desired['roleRef']['name']}")
            elif existing.get("subjects") != desired["subjects"]:
                existing["subjects"] = desired["subjects"]
                self.store.replace(ROLE_BINDING, existing)
                logger.info(f"Updated subjects of role binding {namespace}/{binding}")

    def reconcile_quota(self, workspace: str, namespace: str, quotas: Optional[WorkspaceResourceQuotas]) -> None:
        desired = build_resource_quota(workspace, namespace, quotas)
        if desired is not None:
            self.store.apply(RESOURCE_QUOTA, desired, self.config.field_manager)
            return
        try:
            self.store.delete(RESOURCE_QUOTA, RESOURCE_QUOTA_NAME, namespace)
            logger.info(f"Removed resource quota from namespace {namespace}")
        except NotFoundError:
            pass

    def finalize(self, obj: Dict[str, Any]) -> None:
        # The namespace carries a controller owner reference; the garbage
        # collector removes it, and everything inside it, with the workspace.
        logger.info(f"Workspace {obj['metadata']['name']} deleted, namespace removal is left to owner references")
