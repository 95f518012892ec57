"""
Resource store backed by the Kubernetes API.

Every object crosses this boundary as a plain JSON-shaped ``dict`` and every
rejected call comes back as one of the exceptions in :mod:`llmcloud_operator.errors`.
Custom resources and grouped built-ins (``apps``, ``rbac.authorization.k8s.io``)
go through ``CustomObjectsApi``, which works for any ``/apis/<group>`` path;
objects of the core group go through the typed ``CoreV1Api`` methods.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import kopf
import kubernetes
from kubernetes.client import ApiClient, ApiException, CoreV1Api, CustomObjectsApi

from .constants import ResourceKind
from .errors import from_api_exception

logger = logging.getLogger(__name__)

APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"


def load_kubernetes_config() -> bool:
    """Load kube-config, local file first, then in-cluster. Return True when in-cluster."""
    try:
        kubernetes.config.load_kube_config()
        logger.info("Loaded kube-config from local file")
        return False
    except kubernetes.config.config_exception.ConfigException:
        try:
            kubernetes.config.load_incluster_config()
            logger.info("Loaded in-cluster kube-config")
            return True
        except kubernetes.config.config_exception.ConfigException as exc:
            logger.critical("Failed to load Kubernetes configuration: %s", exc)
            raise kopf.PermanentError("Cannot load Kubernetes config") from exc


class KubeStore:
    """Get/list/create/replace/apply/delete against the cluster."""

    def __init__(
        self,
        api_client: Optional[ApiClient] = None,
        custom_api: Optional[CustomObjectsApi] = None,
        core_api: Optional[CoreV1Api] = None,
    ):
        self.api_client = api_client or ApiClient()
        self.custom_api = custom_api or CustomObjectsApi(self.api_client)
        self.core_api = core_api or CoreV1Api(self.api_client)

    # -- public interface ---------------------------------------------------

    def get(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> Dict[str, Any]:
        return self._call("get", kind, namespace, name=name)

    def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        kwargs = {"label_selector": label_selector} if label_selector else {}
        result = self._call("list", kind, namespace, **kwargs)
        return list(result.get("items") or [])

    def create(self, kind: ResourceKind, body: Dict[str, Any]) -> Dict[str, Any]:
        namespace = body["metadata"].get("namespace")
        return self._call("create", kind, namespace, body=body)

    def replace(self, kind: ResourceKind, body: Dict[str, Any]) -> Dict[str, Any]:
        """Full update; rejected with ``ConflictError`` when ``resourceVersion`` is stale."""
        meta = body["metadata"]
        return self._call("replace", kind, meta.get("namespace"), name=meta["name"], body=body)

    def replace_status(self, kind: ResourceKind, body: Dict[str, Any]) -> Dict[str, Any]:
        """Write the status subresource; same optimistic-concurrency rules as ``replace``."""
        meta = body["metadata"]
        return self._call("replace_status", kind, meta.get("namespace"), name=meta["name"], body=body)

    def apply(self, kind: ResourceKind, body: Dict[str, Any], field_manager: str) -> Dict[str, Any]:
        """Server-side apply with forced field ownership; creates the object if absent."""
        meta = body["metadata"]
        return self._call(
            "patch",
            kind,
            meta.get("namespace"),
            name=meta["name"],
            body=body,
            field_manager=field_manager,
            force=True,
            _content_type=APPLY_PATCH_CONTENT_TYPE,
        )

    def delete(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> None:
        self._call("delete", kind, namespace, name=name)

    # -- routing ------------------------------------------------------------

    def _call(self, verb: str, kind: ResourceKind, namespace: Optional[str], **kwargs: Any) -> Dict[str, Any]:
        what = f"{verb} {kind} {namespace or ''}/{kwargs.get('name', '')}"
        logger.debug("Store call: %s", what)
        try:
            if kind.is_core:
                result = self._core_call(verb, kind, namespace, **kwargs)
            else:
                result = self._custom_call(verb, kind, namespace, **kwargs)
        except ApiException as exc:
            raise from_api_exception(exc, what) from exc
        if result is None or isinstance(result, dict):
            return result or {}
        return self.api_client.sanitize_for_serialization(result)

    def _custom_call(self, verb: str, kind: ResourceKind, namespace: Optional[str], **kwargs: Any) -> Any:
        if verb == "replace_status":
            suffix = "custom_object_status"
            verb = "replace"
        else:
            suffix = "custom_object"
        if kind.namespaced and namespace:
            method = getattr(self.custom_api, f"{verb}_namespaced_{suffix}")
            return method(kind.group, kind.version, namespace, kind.plural, **kwargs)
        # Cluster-scoped kinds, or a list of a namespaced kind across all namespaces.
        method = getattr(self.custom_api, f"{verb}_cluster_{suffix}")
        return method(kind.group, kind.version, kind.plural, **kwargs)

    def _core_call(self, verb: str, kind: ResourceKind, namespace: Optional[str], **kwargs: Any) -> Any:
        verb = "read" if verb == "get" else verb
        status = verb == "replace_status"
        if status:
            verb = "replace"
        if kind.namespaced and namespace:
            method_name = f"{verb}_namespaced_{kind.singular}"
            kwargs["namespace"] = namespace
        elif kind.namespaced and verb == "list":
            method_name = f"list_{kind.singular}_for_all_namespaces"
        else:
            method_name = f"{verb}_{kind.singular}"
        if status:
            method_name += "_status"
        return getattr(self.core_api, method_name)(**kwargs)
