"""
kopf entry points for the llmcloud operator.

Every declared kind has one handler registered for resume, create, update,
delete and a periodic resync timer; each call runs the kind's reconciler
through :class:`~llmcloud_operator.manager.Manager`, which turns the outcome
into kopf retries. Owned objects (VMIs, Deployments) and the declared
objects inside a workspace namespace are watched only to reconcile the
declared object they feed.

Handlers are plain functions: every reconcile step is a blocking API
round-trip, and kopf runs sync handlers in its thread pool.

Run with ``kopf run -m llmcloud_operator.handlers --all-namespaces`` or
``python -m llmcloud_operator``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import kopf
from kopf import OperatorSettings
from kubernetes.client import ApiextensionsV1Api

from .config import OperatorConfig
from .constants import (
    ACCOUNT,
    CATALOG_SERVICE,
    DECLARED_KINDS,
    DEPLOYMENT,
    KOPF_FINALIZER,
    KUBEVIRT_VMI,
    LABEL_OWNER_KIND,
    LABEL_OWNER_NAME,
    LABEL_VIRTUAL_MACHINE,
    LLMCLOUD_GROUP,
    MODEL_DEPLOYMENT,
    VIRTUAL_MACHINE,
    WORKSPACE,
    ResourceKind,
)
from .crd import ensure_crds
from .manager import Manager
from .store import KubeStore, load_kubernetes_config

logger = logging.getLogger(__name__)

# Timer intervals are fixed when the handlers are registered.
RESYNC_PERIOD = OperatorConfig.from_env().resync_period

# Deployment owner-kind label value -> declared kind
OWNER_KINDS: Dict[str, ResourceKind] = {kind.kind: kind for kind in (MODEL_DEPLOYMENT, CATALOG_SERVICE)}

# Watch events that change how many objects a workspace namespace holds
COUNTED_EVENTS = {"ADDED", "DELETED"}


def workspace_for_namespace(namespace: Optional[str], prefix: str) -> Optional[str]:
    """Name of the Workspace owning ``namespace``, if it follows the naming scheme."""
    if not namespace or not namespace.startswith(prefix) or len(namespace) == len(prefix):
        return None
    return namespace[len(prefix):]


# ---------------------------------------------------------------------------
# Lifecycle ------------------------------------------------------------------
# ---------------------------------------------------------------------------

@kopf.on.startup()
def configure_operator(settings: OperatorSettings, memo: kopf.Memo, **_: Dict[str, object]) -> None:
    """Tune kopf, load cluster access, install CRDs and build the reconcilers."""
    config = OperatorConfig.from_env()
    # Event posting floods the API server with one Event per handler run.
    settings.posting.enabled = False
    settings.watching.server_timeout = config.watch_server_timeout
    logger.info("Kopf watch server_timeout set to %s", settings.watching.server_timeout)

    settings.persistence.finalizer = KOPF_FINALIZER
    # Status is written by the reconcilers alone.
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=LLMCLOUD_GROUP)
    settings.execution.max_workers = config.workers * len(DECLARED_KINDS)

    load_kubernetes_config()
    if config.install_crds:
        ensure_crds(ApiextensionsV1Api())

    memo.config = config
    memo.manager = Manager(KubeStore(), config)
    logger.info(f"Reconciling {len(DECLARED_KINDS)} kinds with up to {settings.execution.max_workers} workers")


# ---------------------------------------------------------------------------
# Declared resources ---------------------------------------------------------
# ---------------------------------------------------------------------------

@kopf.on.resume(*WORKSPACE.resource)
@kopf.on.create(*WORKSPACE.resource)
@kopf.on.update(*WORKSPACE.resource)
@kopf.on.delete(*WORKSPACE.resource, id="finalize")
@kopf.timer(*WORKSPACE.resource, id="resync", interval=RESYNC_PERIOD, idle=RESYNC_PERIOD)
def reconcile_workspace(name: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    memo.manager.reconcile(WORKSPACE, name, retry=retry)


@kopf.on.resume(*VIRTUAL_MACHINE.resource)
@kopf.on.create(*VIRTUAL_MACHINE.resource)
@kopf.on.update(*VIRTUAL_MACHINE.resource)
@kopf.on.delete(*VIRTUAL_MACHINE.resource, id="finalize")
@kopf.timer(*VIRTUAL_MACHINE.resource, id="resync", interval=RESYNC_PERIOD, idle=RESYNC_PERIOD)
def reconcile_virtualmachine(name: str, namespace: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    memo.manager.reconcile(VIRTUAL_MACHINE, name, namespace, retry=retry)


@kopf.on.resume(*MODEL_DEPLOYMENT.resource)
@kopf.on.create(*MODEL_DEPLOYMENT.resource)
@kopf.on.update(*MODEL_DEPLOYMENT.resource)
@kopf.on.delete(*MODEL_DEPLOYMENT.resource, id="finalize")
@kopf.timer(*MODEL_DEPLOYMENT.resource, id="resync", interval=RESYNC_PERIOD, idle=RESYNC_PERIOD)
def reconcile_modeldeployment(name: str, namespace: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    memo.manager.reconcile(MODEL_DEPLOYMENT, name, namespace, retry=retry)


@kopf.on.resume(*CATALOG_SERVICE.resource)
@kopf.on.create(*CATALOG_SERVICE.resource)
@kopf.on.update(*CATALOG_SERVICE.resource)
@kopf.on.delete(*CATALOG_SERVICE.resource, id="finalize")
@kopf.timer(*CATALOG_SERVICE.resource, id="resync", interval=RESYNC_PERIOD, idle=RESYNC_PERIOD)
def reconcile_catalogservice(name: str, namespace: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    memo.manager.reconcile(CATALOG_SERVICE, name, namespace, retry=retry)


@kopf.on.resume(*ACCOUNT.resource)
@kopf.on.create(*ACCOUNT.resource)
@kopf.on.update(*ACCOUNT.resource)
@kopf.on.delete(*ACCOUNT.resource, id="finalize")
@kopf.timer(*ACCOUNT.resource, id="resync", interval=RESYNC_PERIOD, idle=RESYNC_PERIOD)
def reconcile_account(name: str, retry: int, memo: kopf.Memo, **_: Any) -> None:
    memo.manager.reconcile(ACCOUNT, name, retry=retry)


# ---------------------------------------------------------------------------
# Fan-in ---------------------------------------------------------------------
# ---------------------------------------------------------------------------

@kopf.on.event(*VIRTUAL_MACHINE.resource)
@kopf.on.event(*MODEL_DEPLOYMENT.resource)
@kopf.on.event(*CATALOG_SERVICE.resource)
def workspace_member_event(event: Dict[str, Any], namespace: str, memo: kopf.Memo, **_: Any) -> None:
    """Workspace status counts the VMs, models and services in its namespace."""
    if event.get("type") not in COUNTED_EVENTS:
        return
    workspace = workspace_for_namespace(namespace, memo.config.namespace_prefix)
    if workspace:
        memo.manager.reconcile(WORKSPACE, workspace)


@kopf.on.event(*KUBEVIRT_VMI.resource, labels={LABEL_VIRTUAL_MACHINE: kopf.PRESENT})
def vmi_event(labels: Dict[str, str], namespace: str, memo: kopf.Memo, **_: Any) -> None:
    """Instance state feeds the VirtualMachine status."""
    memo.manager.reconcile(VIRTUAL_MACHINE, labels[LABEL_VIRTUAL_MACHINE], namespace)


@kopf.on.event(*DEPLOYMENT.resource, labels={LABEL_OWNER_KIND: kopf.PRESENT})
def deployment_event(labels: Dict[str, str], namespace: str, memo: kopf.Memo, **_: Any) -> None:
    """Ready replicas feed the ModelDeployment/CatalogService status."""
    owner = OWNER_KINDS.get(labels.get(LABEL_OWNER_KIND, ""))
    owner_name = labels.get(LABEL_OWNER_NAME)
    if owner is None or not owner_name:
        return
    memo.manager.reconcile(owner, owner_name, namespace)
