from __future__ import annotations

from ..builders.workload import build_catalog_service
from ..constants import CATALOG_SERVICE, SERVICE_FINALIZER
from ..models import CatalogServiceSpec
from .workload import WorkloadReconciler


class CatalogServiceReconciler(WorkloadReconciler[CatalogServiceSpec]):
    kind = CATALOG_SERVICE
    finalizer = SERVICE_FINALIZER
    spec_model = CatalogServiceSpec

    def render(self, name, namespace, spec):
        return build_catalog_service(name, namespace, spec)
