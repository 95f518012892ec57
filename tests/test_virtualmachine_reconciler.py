import pytest

from llmcloud_operator.constants import (
    ANNOTATION_REBOOT,
    KUBEVIRT_VM,
    KUBEVIRT_VMI,
    VIRTUAL_MACHINE,
    VM_FINALIZER,
)
from llmcloud_operator.errors import ConflictError, StoreError
from llmcloud_operator.reconcilers import Result, VirtualMachineReconciler

NS = "workspace-demo"


@pytest.fixture
def reconciler(store, config, catalog):
    return VirtualMachineReconciler(store, config, catalog=catalog)


def make_vm(store, name="vm1", annotations=None, **spec):
    spec.setdefault("os", "ubuntu")
    metadata = {"name": name, "namespace": NS}
    if annotations:
        metadata["annotations"] = annotations
    return store.put(VIRTUAL_MACHINE, {"metadata": metadata, "spec": spec})


def converge(reconciler, name="vm1"):
    assert reconciler.reconcile(name, NS) == Result(requeue=True)
    return reconciler.reconcile(name, NS)


def put_vmi(store, name="vm1", **status):
    store.put(KUBEVIRT_VMI, {"metadata": {"name": name, "namespace": NS}, "status": status})


def test_finalizer_added_before_anything_else(store, reconciler):
    make_vm(store)
    assert reconciler.reconcile("vm1", NS) == Result(requeue=True)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["metadata"]["finalizers"] == [VM_FINALIZER]
    assert store.peek(KUBEVIRT_VM, "vm1", NS) is None


def test_creates_kubevirt_vm_and_reports_pending(store, reconciler):
    make_vm(store, cpus=2, memory="4Gi", osVersion="22.04")
    assert converge(reconciler) == Result()

    vm = store.peek(KUBEVIRT_VM, "vm1", NS)
    domain = vm["spec"]["template"]["spec"]["domain"]
    assert domain["cpu"]["cores"] == 2
    assert domain["resources"]["requests"]["memory"] == "4Gi"
    images = [v["containerDisk"]["image"] for v in vm["spec"]["template"]["spec"]["volumes"] if "containerDisk" in v]
    assert images == ["quay.io/containerdisks/ubuntu:22.04"]

    status = store.peek(VIRTUAL_MACHINE, "vm1", NS)["status"]
    assert status["phase"] == "Pending"
    assert status["ready"] is False


def test_halted_run_strategy_is_kept(store, reconciler):
    make_vm(store, runStrategy="Halted")
    converge(reconciler)
    reconciler.reconcile("vm1", NS)
    assert store.peek(KUBEVIRT_VM, "vm1", NS)["spec"]["runStrategy"] == "Halted"


def test_spec_change_converges(store, reconciler):
    make_vm(store, cpus=1)
    converge(reconciler)
    for cpus in (2, 3, 4):
        vm = store.get(VIRTUAL_MACHINE, "vm1", NS)
        vm["spec"]["cpus"] = cpus
        store.replace(VIRTUAL_MACHINE, vm)
    reconciler.reconcile("vm1", NS)
    assert store.peek(KUBEVIRT_VM, "vm1", NS)["spec"]["template"]["spec"]["domain"]["cpu"]["cores"] == 4


def test_running_instance_projected(store, reconciler):
    make_vm(store)
    put_vmi(store, phase="Running", nodeName="node-a", interfaces=[{"ipAddress": "10.0.0.7"}, {"ipAddress": "10.0.1.7"}])
    converge(reconciler)

    status = store.peek(VIRTUAL_MACHINE, "vm1", NS)["status"]
    assert status["phase"] == "Running"
    assert status["ready"] is True
    assert status["node"] == "node-a"
    assert status["ipAddress"] == "10.0.0.7"
    assert status["conditions"][0]["reason"] == "VMRunning"


def test_ready_condition_true_for_any_observed_instance(store, reconciler):
    make_vm(store)
    put_vmi(store, phase="Scheduling")
    converge(reconciler)

    status = store.peek(VIRTUAL_MACHINE, "vm1", NS)["status"]
    assert status["phase"] == "Scheduling"
    assert status["ready"] is False
    assert status["conditions"][0]["type"] == "Ready"
    assert status["conditions"][0]["status"] == "True"


def test_idempotent(store, reconciler):
    make_vm(store, sshKeys=["ssh-ed25519 AAAA"])
    put_vmi(store, phase="Running")
    converge(reconciler)
    vm = store.peek(KUBEVIRT_VM, "vm1", NS)
    declared = store.peek(VIRTUAL_MACHINE, "vm1", NS)

    assert reconciler.reconcile("vm1", NS) == Result()
    assert store.peek(KUBEVIRT_VM, "vm1", NS) == vm
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS) == declared


def test_reboot_halts_then_restarts(store, reconciler):
    make_vm(store)
    converge(reconciler)
    replaces_before = store.verbs(KUBEVIRT_VM).count("replace")

    vm = store.get(VIRTUAL_MACHINE, "vm1", NS)
    vm["metadata"]["annotations"] = {ANNOTATION_REBOOT: "true"}
    store.replace(VIRTUAL_MACHINE, vm)
    assert reconciler.reconcile("vm1", NS) == Result()

    assert store.verbs(KUBEVIRT_VM).count("replace") - replaces_before == 2
    assert store.peek(KUBEVIRT_VM, "vm1", NS)["spec"]["runStrategy"] == "Always"
    assert ANNOTATION_REBOOT not in store.peek(VIRTUAL_MACHINE, "vm1", NS)["metadata"].get("annotations", {})


def test_reboot_before_vm_exists_clears_annotation(store, reconciler):
    make_vm(store, annotations={ANNOTATION_REBOOT: "true"})
    converge(reconciler)
    assert "replace" not in store.verbs(KUBEVIRT_VM)
    assert ANNOTATION_REBOOT not in store.peek(VIRTUAL_MACHINE, "vm1", NS)["metadata"]["annotations"]
    assert store.peek(KUBEVIRT_VM, "vm1", NS) is not None


def test_apply_failure_sets_error_phase(store, reconciler):
    make_vm(store)
    reconciler.reconcile("vm1", NS)
    store.fail("apply", KUBEVIRT_VM, StoreError("admission webhook denied", 400, "BadRequest"))

    with pytest.raises(StoreError):
        reconciler.reconcile("vm1", NS)
    status = store.peek(VIRTUAL_MACHINE, "vm1", NS)["status"]
    assert status["phase"] == "Error"
    assert status["ready"] is False
    assert status["conditions"][0]["status"] == "False"
    assert status["conditions"][0]["reason"] == "ReconciliationError"


def test_kubevirt_conflict_during_reboot_is_retried_not_surfaced(store, reconciler):
    make_vm(store)
    converge(reconciler)
    vm = store.get(VIRTUAL_MACHINE, "vm1", NS)
    vm["metadata"]["annotations"] = {ANNOTATION_REBOOT: "true"}
    store.replace(VIRTUAL_MACHINE, vm)
    store.fail("replace", KUBEVIRT_VM, ConflictError("stale", 409, "Conflict"))

    with pytest.raises(ConflictError):
        reconciler.reconcile("vm1", NS)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["status"]["phase"] == "Pending"

    assert reconciler.reconcile("vm1", NS) == Result()
    assert ANNOTATION_REBOOT not in store.peek(VIRTUAL_MACHINE, "vm1", NS)["metadata"]["annotations"]
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["status"]["phase"] == "Pending"


def test_status_conflict_requeues_after_delay(store, reconciler, config):
    make_vm(store)
    reconciler.reconcile("vm1", NS)
    store.fail("replace_status", VIRTUAL_MACHINE, ConflictError("stale", 409, "Conflict"))
    assert reconciler.reconcile("vm1", NS) == Result(requeue_after=config.status_conflict_delay)


def test_stale_finalizer_write_conflicts(store, reconciler):
    make_vm(store)
    store.fail("replace", VIRTUAL_MACHINE, ConflictError("stale", 409, "Conflict"))
    with pytest.raises(ConflictError):
        reconciler.reconcile("vm1", NS)
    assert reconciler.reconcile("vm1", NS) == Result(requeue=True)


def test_deletion_waits_for_kubevirt_vm(store, reconciler):
    make_vm(store)
    converge(reconciler)
    store.delete(VIRTUAL_MACHINE, "vm1", NS)

    store.fail("delete", KUBEVIRT_VM, StoreError("etcd timeout", 500, "InternalError"))
    with pytest.raises(StoreError):
        reconciler.reconcile("vm1", NS)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["metadata"]["finalizers"] == [VM_FINALIZER]
    assert store.peek(KUBEVIRT_VM, "vm1", NS) is not None

    assert reconciler.reconcile("vm1", NS) == Result()
    assert store.peek(KUBEVIRT_VM, "vm1", NS) is None
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS) is None

    verbs = [(verb, kind) for verb, kind, _, _ in store.calls]
    last_vm_delete = max(i for i, c in enumerate(verbs) if c == ("delete", str(KUBEVIRT_VM)))
    last_replace = max(i for i, c in enumerate(verbs) if c == ("replace", str(VIRTUAL_MACHINE)))
    assert last_vm_delete < last_replace


def test_deletion_with_kubevirt_vm_already_gone(store, reconciler):
    make_vm(store)
    reconciler.reconcile("vm1", NS)
    store.delete(VIRTUAL_MACHINE, "vm1", NS)
    assert reconciler.reconcile("vm1", NS) == Result()
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS) is None
