from llmcloud_operator import actions
from llmcloud_operator.constants import ANNOTATION_LAST_LOGIN, ANNOTATION_REBOOT, VIRTUAL_MACHINE, ACCOUNT
from llmcloud_operator.errors import ConflictError

NS = "workspace-demo"


def make_vm(store, **spec):
    spec.setdefault("os", "ubuntu")
    store.put(VIRTUAL_MACHINE, {"metadata": {"name": "vm1", "namespace": NS}, "spec": spec})


def test_start_and_stop(store):
    make_vm(store, runStrategy="Halted")
    actions.start_vm(store, "vm1", NS)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["spec"]["runStrategy"] == "Always"
    actions.stop_vm(store, "vm1", NS)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["spec"]["runStrategy"] == "Halted"


def test_reboot_sets_annotation(store):
    make_vm(store)
    actions.reboot_vm(store, "vm1", NS)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["metadata"]["annotations"] == {ANNOTATION_REBOOT: "true"}


def test_retries_on_conflict(store):
    make_vm(store)
    store.fail("replace", VIRTUAL_MACHINE, ConflictError("stale", 409, "Conflict"), times=2)
    actions.stop_vm(store, "vm1", NS)
    assert store.peek(VIRTUAL_MACHINE, "vm1", NS)["spec"]["runStrategy"] == "Halted"
    assert store.verbs(VIRTUAL_MACHINE).count("get") == 3


def test_record_login_defaults_to_now(store):
    store.put(ACCOUNT, {"metadata": {"name": "alice"}, "spec": {"username": "alice", "passwordHash": "x"}})
    actions.record_login(store, "alice")
    stamp = store.peek(ACCOUNT, "alice")["metadata"]["annotations"][ANNOTATION_LAST_LOGIN]
    assert stamp.endswith("Z") and "T" in stamp
