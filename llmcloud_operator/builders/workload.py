"""
Deployment and Service manifests for ModelDeployment and CatalogService resources.

Both kinds map to exactly one Deployment and (when anything is exposed) one
Service, named after the declared resource and living in its namespace.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from kubernetes.client.models import (
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1EnvVar,
    V1EnvVarSource,
    V1ExecAction,
    V1LabelSelector,
    V1Lifecycle,
    V1LifecycleHandler,
    V1ObjectMeta,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Probe,
    V1ResourceRequirements,
    V1SecretKeySelector,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
    V1TCPSocketAction,
)

from ..constants import CATALOG_SERVICE, LABEL_MANAGED, LABEL_OWNER_KIND, LABEL_OWNER_NAME, MODEL_DEPLOYMENT, ResourceKind
from ..models import CatalogServiceSpec, ModelDeploymentSpec, ResourceRequirements


@dataclass(frozen=True)
class ModelRuntime:
    """Container image and serving port used for one model provider."""

    image: str
    port: int
    args: Tuple[str, ...] = ()
    # Shell snippet run after the container starts; ``{model}`` is substituted.
    post_start: Optional[str] = None
    extra_env: Dict[str, str] = field(default_factory=dict)


DEFAULT_PROVIDER = "ollama"

MODEL_RUNTIMES: Dict[str, ModelRuntime] = {
    "ollama": ModelRuntime(
        image="ollama/ollama:latest",
        port=11434,
        post_start="until ollama list >/dev/null 2>&1; do sleep 1; done; ollama pull {model}",
        extra_env={"OLLAMA_HOST": "0.0.0.0"},
    ),
    "huggingface": ModelRuntime(
        image="ghcr.io/huggingface/text-generation-inference:latest",
        port=80,
        args=("--model-id", "{model}"),
    ),
}


def runtime_for(provider: Optional[str]) -> ModelRuntime:
    """Runtime for ``provider``; unknown providers are served by the default one."""
    return MODEL_RUNTIMES.get((provider or DEFAULT_PROVIDER).lower(), MODEL_RUNTIMES[DEFAULT_PROVIDER])


def selector_labels(kind: ResourceKind, name: str) -> Dict[str, str]:
    return {LABEL_OWNER_KIND: kind.kind, LABEL_OWNER_NAME: name}


def object_labels(kind: ResourceKind, name: str) -> Dict[str, str]:
    return {LABEL_MANAGED: "true", "app": name, **selector_labels(kind, name)}


def service_endpoint(name: str, namespace: str, port: int) -> str:
    return f"http://{name}.{namespace}.svc.cluster.local:{port}"


def resource_requirements(resources: ResourceRequirements) -> Optional[V1ResourceRequirements]:
    requests: Dict[str, str] = {}
    limits: Dict[str, str] = {}
    if resources.cpu:
        requests["cpu"] = limits["cpu"] = resources.cpu
    if resources.memory:
        requests["memory"] = limits["memory"] = resources.memory
    if resources.gpu:
        limits["nvidia.com/gpu"] = str(resources.gpu)
    if not requests and not limits:
        return None
    return V1ResourceRequirements(requests=requests or None, limits=limits or None)


def _deployment(
    kind: ResourceKind,
    name: str,
    namespace: str,
    replicas: int,
    container: V1Container,
) -> V1Deployment:
    return V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=V1ObjectMeta(name=name, namespace=namespace, labels=object_labels(kind, name)),
        spec=V1DeploymentSpec(
            replicas=replicas,
            selector=V1LabelSelector(match_labels=selector_labels(kind, name)),
            template=V1PodTemplateSpec(
                metadata=V1ObjectMeta(labels=object_labels(kind, name)),
                spec=V1PodSpec(containers=[container]),
            ),
        ),
    )


def _service(kind: ResourceKind, name: str, namespace: str, ports: List[V1ServicePort]) -> V1Service:
    return V1Service(
        api_version="v1",
        kind="Service",
        metadata=V1ObjectMeta(name=name, namespace=namespace, labels=object_labels(kind, name)),
        spec=V1ServiceSpec(selector=selector_labels(kind, name), ports=ports),
    )


# ---------------------------------------------------------------------------
# ModelDeployment ------------------------------------------------------------
# ---------------------------------------------------------------------------

def build_model_deployment(name: str, namespace: str, spec: ModelDeploymentSpec) -> Tuple[V1Deployment, V1Service]:
    runtime = runtime_for(spec.provider)
    model = spec.pull_reference
    env = [V1EnvVar(name="MODEL_NAME", value=model)]
    env += [V1EnvVar(name=k, value=v) for k, v in sorted(runtime.extra_env.items())]

    lifecycle = None
    if runtime.post_start:
        lifecycle = V1Lifecycle(
            post_start=V1LifecycleHandler(
                _exec=V1ExecAction(command=["/bin/sh", "-c", runtime.post_start.format(model=model)])
            )
        )

    container = V1Container(
        name="model",
        image=spec.image or runtime.image,
        args=[a.format(model=model) for a in runtime.args] or None,
        env=env,
        ports=[V1ContainerPort(name="http", container_port=runtime.port, protocol="TCP")],
        readiness_probe=V1Probe(tcp_socket=V1TCPSocketAction(port=runtime.port), period_seconds=10),
        resources=resource_requirements(spec.resources),
        lifecycle=lifecycle,
    )
    deployment = _deployment(MODEL_DEPLOYMENT, name, namespace, spec.replicas, container)
    service = _service(
        MODEL_DEPLOYMENT,
        name,
        namespace,
        [V1ServicePort(name="http", port=runtime.port, target_port=runtime.port, protocol="TCP")],
    )
    return deployment, service


# ---------------------------------------------------------------------------
# CatalogService -------------------------------------------------------------
# ---------------------------------------------------------------------------

def _env_var(var) -> V1EnvVar:
    if var.value_from and var.value_from.secret_key_ref:
        ref = var.value_from.secret_key_ref
        return V1EnvVar(
            name=var.name,
            value_from=V1EnvVarSource(secret_key_ref=V1SecretKeySelector(name=ref.name, key=ref.key)),
        )
    return V1EnvVar(name=var.name, value=var.value or "")


def build_catalog_service(name: str, namespace: str, spec: CatalogServiceSpec) -> Tuple[V1Deployment, Optional[V1Service]]:
    container = V1Container(
        name=name,
        image=spec.image,
        command=list(spec.command) or None,
        args=list(spec.args) or None,
        env=[_env_var(v) for v in spec.env] or None,
        ports=[
            V1ContainerPort(name=p.port_name, container_port=p.container_port, protocol=p.protocol)
            for p in spec.ports
        ] or None,
        resources=resource_requirements(spec.resources),
    )
    deployment = _deployment(CATALOG_SERVICE, name, namespace, spec.replicas, container)
    deployment.spec.template.metadata.labels["llmcloud.io/service-type"] = spec.type

    if not spec.ports:
        return deployment, None
    service = _service(
        CATALOG_SERVICE,
        name,
        namespace,
        [
            V1ServicePort(name=p.port_name, port=p.port, target_port=p.container_port, protocol=p.protocol)
            for p in spec.ports
        ],
    )
    return deployment, service
