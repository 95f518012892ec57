from __future__ import annotations

from ..builders.workload import build_model_deployment
from ..constants import MODEL_DEPLOYMENT, MODEL_FINALIZER
from ..models import ModelDeploymentSpec
from .workload import WorkloadReconciler


class ModelDeploymentReconciler(WorkloadReconciler[ModelDeploymentSpec]):
    """Serves a model through its provider's runtime image."""

    kind = MODEL_DEPLOYMENT
    finalizer = MODEL_FINALIZER
    spec_model = ModelDeploymentSpec

    def render(self, name, namespace, spec):
        return build_model_deployment(name, namespace, spec)
