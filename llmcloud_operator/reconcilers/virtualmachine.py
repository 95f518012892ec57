from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..builders import KubeVirtVMBuilder
from ..config import OperatorConfig
from ..constants import (
    ANNOTATION_REBOOT,
    KUBEVIRT_VM,
    KUBEVIRT_VMI,
    VIRTUAL_MACHINE,
    VM_FINALIZER,
    KubeVirtVMIPhase,
    Phase,
    RunStrategy,
)
from ..errors import ConflictError, NotFoundError, StoreError
from ..images import OSImageCatalog
from ..models import VirtualMachineSpec, VirtualMachineStatus, set_condition
from .base import READY, Reconciler, Result, describe

logger = logging.getLogger(__name__)


class VirtualMachineReconciler(Reconciler[VirtualMachineSpec, VirtualMachineStatus]):
    """
    Keeps one KubeVirt VirtualMachine per declared VirtualMachine and mirrors
    the state of its running instance back into status.
    """

    kind = VIRTUAL_MACHINE
    finalizer = VM_FINALIZER
    spec_model = VirtualMachineSpec
    status_model = VirtualMachineStatus

    def __init__(
        self,
        store,
        config: Optional[OperatorConfig] = None,
        catalog: Optional[OSImageCatalog] = None,
        builder: Optional[KubeVirtVMBuilder] = None,
    ):
        super().__init__(store, config)
        if builder is None:
            builder = KubeVirtVMBuilder(
                catalog or OSImageCatalog.default(),
                default_disk_size=self.config.default_disk_size,
                default_storage_class=self.config.default_storage_class,
            )
        self.builder = builder

    def sync(self, obj: Dict[str, Any]) -> Result:
        spec = self.parse_spec(obj)
        name = obj["metadata"]["name"]
        namespace = obj["metadata"]["namespace"]

        try:
            if reboot_requested(obj):
                self.reboot(obj)
            manifest = self.builder.manifest(name, namespace, spec)
            self.store.apply(KUBEVIRT_VM, manifest, self.config.field_manager)
        except ConflictError:
            raise
        except StoreError as exc:
            logger.error(f"Failed to reconcile virtual machine {describe(obj)}: {exc}")
            self.record_error(obj, str(exc))
            raise

        return self.persist_status(obj, self.project_status(obj))

    def reboot(self, obj: Dict[str, Any]) -> None:
        """Halt then restart the KubeVirt VM, then clear the reboot annotation."""
        name = obj["metadata"]["name"]
        namespace = obj["metadata"]["namespace"]
        try:
            vm = self.store.get(KUBEVIRT_VM, name, namespace)
        except NotFoundError:
            logger.info(f"Reboot requested for {namespace}/{name} before its VM exists, ignoring")
        else:
            logger.info(f"Rebooting virtual machine {namespace}/{name}")
            vm["spec"]["runStrategy"] = RunStrategy.HALTED.value
            vm = self.store.replace(KUBEVIRT_VM, vm)
            vm["spec"]["runStrategy"] = RunStrategy.ALWAYS.value
            self.store.replace(KUBEVIRT_VM, vm)

        obj["metadata"].get("annotations", {}).pop(ANNOTATION_REBOOT, None)
        updated = self.store.replace(VIRTUAL_MACHINE, obj)
        obj["metadata"]["resourceVersion"] = updated["metadata"]["resourceVersion"]

    def project_status(self, obj: Dict[str, Any]) -> VirtualMachineStatus:
        status = self.current_status(obj)
        try:
            vmi = self.store.get(KUBEVIRT_VMI, obj["metadata"]["name"], obj["metadata"]["namespace"])
        except NotFoundError:
            status.phase = Phase.PENDING.value
            status.ready = False
            return status

        vmi_status = vmi.get("status") or {}
        status.phase = vmi_status.get("phase")
        status.ready = status.phase == KubeVirtVMIPhase.RUNNING.value
        status.node = vmi_status.get("nodeName")
        interfaces = vmi_status.get("interfaces") or []
        if interfaces:
            status.ip_address = interfaces[0].get("ipAddress")
        # Set whenever an instance exists, whatever its phase.
        set_condition(
            status.conditions,
            READY,
            True,
            "VMRunning",
            "Virtual machine is running",
            obj["metadata"].get("generation"),
        )
        return status

    def finalize(self, obj: Dict[str, Any]) -> None:
        try:
            self.store.delete(KUBEVIRT_VM, obj["metadata"]["name"], obj["metadata"]["namespace"])
            logger.info(f"Deleted KubeVirt VM {describe(obj)}")
        except NotFoundError:
            logger.debug(f"KubeVirt VM {describe(obj)} already gone")


def reboot_requested(obj: Dict[str, Any]) -> bool:
    annotations = obj["metadata"].get("annotations") or {}
    return annotations.get(ANNOTATION_REBOOT) == "true"
