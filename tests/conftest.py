import copy
import itertools
from typing import Any, Dict, List, Optional, Tuple

import pytest

from llmcloud_operator.config import OperatorConfig
from llmcloud_operator.constants import DECLARED_KINDS, ResourceKind
from llmcloud_operator.errors import AlreadyExistsError, ConflictError, NotFoundError
from llmcloud_operator.images import OSImageCatalog

TEST_IMAGES = {
    "ubuntu": "quay.io/containerdisks/ubuntu:22.04",
    "fedora": "quay.io/containerdisks/fedora:39",
    "cirros": "quay.io/kubevirt/cirros-container-disk-demo:latest",
}

# Kinds whose status is only writable through the status subresource
STATUS_SUBRESOURCE = {str(k) for k in DECLARED_KINDS}


def _merge(into: Dict[str, Any], patch: Dict[str, Any]) -> None:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(into.get(key), dict):
            _merge(into[key], value)
        else:
            into[key] = copy.deepcopy(value)


def _matches(labels: Dict[str, str], selector: Optional[str]) -> bool:
    if not selector:
        return True
    for term in selector.split(","):
        if "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key) != value:
                return False
        elif term not in labels:
            return False
    return True


class FakeStore:
    """In-memory stand-in for KubeStore with the API server's concurrency rules.

    - every write bumps ``resourceVersion``; writes carrying a stale one fail
      with ``ConflictError``
    - spec changes on declared kinds bump ``generation``
    - deleting an object with finalizers only sets ``deletionTimestamp``; the
      object disappears once its last finalizer is removed
    - ``fail(verb, kind, exc)`` makes the next matching call raise ``exc``
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, Optional[str], str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, Optional[str], str]] = []
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)
        self._faults: List[Tuple[str, str, Exception]] = []

    # -- test helpers -------------------------------------------------------

    def fail(self, verb: str, kind: ResourceKind, exc: Exception, times: int = 1) -> None:
        self._faults.extend([(verb, str(kind), exc)] * times)

    def put(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Seed an object as if a user had created it."""
        obj = copy.deepcopy(obj)
        meta = obj.setdefault("metadata", {})
        meta.setdefault("generation", 1)
        meta.setdefault("uid", f"uid-{next(self._uids)}")
        meta["resourceVersion"] = str(next(self._versions))
        self.objects[self._key(kind, meta["name"], meta.get("namespace"))] = obj
        return copy.deepcopy(obj)

    def peek(self, kind: ResourceKind, name: str, namespace: Optional[str] = None) -> Optional[Dict[str, Any]]:
        obj = self.objects.get(self._key(kind, name, namespace))
        return copy.deepcopy(obj) if obj is not None else None

    def verbs(self, kind: ResourceKind) -> List[str]:
        return [verb for verb, k, _, _ in self.calls if k == str(kind)]

    # -- KubeStore interface ------------------------------------------------

    def get(self, kind, name, namespace=None):
        self._record("get", kind, name, namespace)
        return copy.deepcopy(self._existing(kind, name, namespace))

    def list(self, kind, namespace=None, label_selector=None):
        self._record("list", kind, "", namespace)
        items = []
        for (k, ns, _), obj in sorted(self.objects.items(), key=lambda item: (item[0][0], item[0][1] or "", item[0][2])):
            if k != str(kind):
                continue
            if namespace and kind.namespaced and ns != namespace:
                continue
            if _matches(obj["metadata"].get("labels") or {}, label_selector):
                items.append(copy.deepcopy(obj))
        return items

    def create(self, kind, body):
        meta = body["metadata"]
        self._record("create", kind, meta["name"], meta.get("namespace"))
        key = self._key(kind, meta["name"], meta.get("namespace"))
        if key in self.objects:
            raise AlreadyExistsError(f"{kind} {meta['name']} already exists", 409, "AlreadyExists")
        return self.put(kind, body)

    def replace(self, kind, body):
        meta = body["metadata"]
        self._record("replace", kind, meta["name"], meta.get("namespace"))
        current = self._existing(kind, meta["name"], meta.get("namespace"))
        self._check_version(current, body)
        new = copy.deepcopy(body)
        if str(kind) in STATUS_SUBRESOURCE:
            if "status" in current:
                new["status"] = copy.deepcopy(current["status"])
            else:
                new.pop("status", None)
            # Metadata the server owns
            new["metadata"]["deletionTimestamp"] = current["metadata"].get("deletionTimestamp")
            if new["metadata"]["deletionTimestamp"] is None:
                del new["metadata"]["deletionTimestamp"]
        return self._store(kind, current, new)

    def replace_status(self, kind, body):
        meta = body["metadata"]
        self._record("replace_status", kind, meta["name"], meta.get("namespace"))
        current = self._existing(kind, meta["name"], meta.get("namespace"))
        self._check_version(current, body)
        new = copy.deepcopy(current)
        new["status"] = copy.deepcopy(body.get("status") or {})
        return self._store(kind, current, new)

    def apply(self, kind, body, field_manager):
        meta = body["metadata"]
        self._record("apply", kind, meta["name"], meta.get("namespace"))
        key = self._key(kind, meta["name"], meta.get("namespace"))
        current = self.objects.get(key)
        if current is None:
            return self.put(kind, body)
        new = copy.deepcopy(current)
        _merge(new, body)
        if new == current:
            return copy.deepcopy(current)
        return self._store(kind, current, new)

    def delete(self, kind, name, namespace=None):
        self._record("delete", kind, name, namespace)
        current = self._existing(kind, name, namespace)
        if current["metadata"].get("finalizers"):
            if not current["metadata"].get("deletionTimestamp"):
                new = copy.deepcopy(current)
                new["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
                self._store(kind, current, new)
            return
        del self.objects[self._key(kind, name, namespace)]

    # -- internals ----------------------------------------------------------

    @staticmethod
    def _key(kind, name, namespace):
        return str(kind), namespace if kind.namespaced else None, name

    def _record(self, verb, kind, name, namespace):
        self.calls.append((verb, str(kind), namespace, name))
        for index, (f_verb, f_kind, exc) in enumerate(self._faults):
            if f_verb == verb and f_kind == str(kind):
                del self._faults[index]
                raise exc

    def _existing(self, kind, name, namespace):
        obj = self.objects.get(self._key(kind, name, namespace))
        if obj is None:
            raise NotFoundError(f"{kind} {namespace or ''}/{name} not found", 404, "NotFound")
        return obj

    @staticmethod
    def _check_version(current, body):
        sent = body["metadata"].get("resourceVersion")
        if sent and sent != current["metadata"]["resourceVersion"]:
            raise ConflictError(f"{body['metadata']['name']}: stale resourceVersion {sent}", 409, "Conflict")

    def _store(self, kind, current, new):
        meta = new["metadata"]
        if str(kind) in STATUS_SUBRESOURCE and new.get("spec") != current.get("spec"):
            meta["generation"] = current["metadata"].get("generation", 1) + 1
        meta["resourceVersion"] = str(next(self._versions))
        key = self._key(kind, meta["name"], meta.get("namespace"))
        if meta.get("deletionTimestamp") and not meta.get("finalizers"):
            self.objects.pop(key, None)
        else:
            self.objects[key] = new
        return copy.deepcopy(new)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def config():
    return OperatorConfig()


@pytest.fixture
def catalog():
    return OSImageCatalog(TEST_IMAGES, fallback_os="cirros")
