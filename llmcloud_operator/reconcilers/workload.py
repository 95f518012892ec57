"""
Shared reconcile logic for the Deployment-backed kinds.

ModelDeployment and CatalogService differ only in how their Deployment and
Service are rendered; applying them, deriving status from the Deployment and
tearing them down on deletion is the same for both.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from kubernetes.client.models import V1Deployment, V1Service

from ..builders import to_manifest
from ..builders.workload import service_endpoint
from ..constants import DEPLOYMENT, SERVICE, Phase
from ..errors import ConflictError, NotFoundError, StoreError
from ..models import WorkloadStatus, set_condition
from .base import READY, Reconciler, Result, SpecT, describe

logger = logging.getLogger(__name__)


class WorkloadReconciler(Reconciler[SpecT, WorkloadStatus]):
    status_model = WorkloadStatus

    def render(self, name: str, namespace: str, spec: SpecT) -> Tuple[V1Deployment, Optional[V1Service]]:
        raise NotImplementedError

    def sync(self, obj: Dict[str, Any]) -> Result:
        spec = self.parse_spec(obj)
        name = obj["metadata"]["name"]
        namespace = obj["metadata"]["namespace"]
        deployment, service = self.render(name, namespace, spec)

        try:
            self.store.apply(DEPLOYMENT, to_manifest(deployment), self.config.field_manager)
            if service is not None:
                self.store.apply(SERVICE, to_manifest(service), self.config.field_manager)
            else:
                self._delete_ignoring_absent(SERVICE, name, namespace)
        except ConflictError:
            raise
        except StoreError as exc:
            logger.error(f"Failed to reconcile {self.kind.kind} {describe(obj)}: {exc}")
            self.record_error(obj, str(exc))
            raise

        status = self.current_status(obj)
        desired = spec.replicas
        try:
            observed = self.store.get(DEPLOYMENT, name, namespace)
            ready = (observed.get("status") or {}).get("readyReplicas") or 0
        except NotFoundError:
            ready = 0

        status.ready_replicas = ready
        if desired == 0:
            status.phase = Phase.STOPPED.value
        elif ready >= desired:
            status.phase = Phase.RUNNING.value
        else:
            status.phase = Phase.PENDING.value
        status.endpoint = self.endpoint(service)

        generation = obj["metadata"].get("generation")
        if status.phase == Phase.RUNNING.value:
            set_condition(status.conditions, READY, True, "Available", f"{ready}/{desired} replicas ready", generation)
        else:
            set_condition(status.conditions, READY, False, status.phase, f"{ready}/{desired} replicas ready", generation)
        return self.persist_status(obj, status)

    @staticmethod
    def endpoint(service: Optional[V1Service]) -> Optional[str]:
        if service is None or not service.spec.ports:
            return None
        meta = service.metadata
        return service_endpoint(meta.name, meta.namespace, service.spec.ports[0].port)

    def finalize(self, obj: Dict[str, Any]) -> None:
        name = obj["metadata"]["name"]
        namespace = obj["metadata"]["namespace"]
        self._delete_ignoring_absent(DEPLOYMENT, name, namespace)
        self._delete_ignoring_absent(SERVICE, name, namespace)

    def _delete_ignoring_absent(self, kind, name: str, namespace: str) -> None:
        try:
            self.store.delete(kind, name, namespace)
            logger.info(f"Deleted {kind.kind} {namespace}/{name}")
        except NotFoundError:
            pass
