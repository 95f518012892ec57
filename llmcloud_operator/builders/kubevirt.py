"""
Desired-state mapping from a declared VirtualMachine to a KubeVirt ``VirtualMachine``.

The KubeVirt object is assembled from typed pydantic models whose validators
check the document once, at construction, before it is serialized with :meth:`~llmcloud_operator.models.CamelModel.to_json` for
server-side apply.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import yaml
from pydantic import Field, model_validator

from ..constants import KUBEVIRT_GROUP, KUBEVIRT_VERSION, LABEL_MANAGED, LABEL_VIRTUAL_MACHINE, RunStrategy
from ..images import OSImageCatalog
from ..models import CamelModel, VirtualMachineSpec

CONTAINER_DISK = "containerdisk"
DATA_DISK = "datadisk"
CLOUD_INIT_DISK = "cloudinitdisk"


class ObjectMeta(CamelModel):
    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: Optional[Dict[str, str]] = None


class DiskTarget(CamelModel):
    bus: str = "virtio"


class Disk(CamelModel):
    name: str
    disk: DiskTarget = Field(default_factory=DiskTarget)


class ContainerDiskSource(CamelModel):
    image: str


class DataVolumeSource(CamelModel):
    name: str


class CloudInitNoCloudSource(CamelModel):
    user_data: str


class Volume(CamelModel):
    name: str
    container_disk: Optional[ContainerDiskSource] = None
    data_volume: Optional[DataVolumeSource] = None
    cloud_init_no_cloud: Optional[CloudInitNoCloudSource] = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "Volume":
        sources = [s for s in (self.container_disk, self.data_volume, self.cloud_init_no_cloud) if s is not None]
        if len(sources) != 1:
            raise ValueError(f"volume {self.name!r} must have exactly one source")
        return self


class CPU(CamelModel):
    cores: int = Field(ge=1)


class DomainResources(CamelModel):
    requests: Dict[str, str]


class Devices(CamelModel):
    disks: List[Disk]


class Domain(CamelModel):
    cpu: CPU
    resources: DomainResources
    devices: Devices


class InstanceSpec(CamelModel):
    domain: Domain
    volumes: List[Volume]

    @model_validator(mode="after")
    def _disks_match_volumes(self) -> "InstanceSpec":
        disks = [d.name for d in self.domain.devices.disks]
        volumes = [v.name for v in self.volumes]
        if sorted(disks) != sorted(volumes):
            raise ValueError(f"disks {disks} and volumes {volumes} must pair up by name")
        return self


class InstanceTemplate(CamelModel):
    metadata: ObjectMeta
    spec: InstanceSpec


class StorageResources(CamelModel):
    requests: Dict[str, str]


class DataVolumeStorage(CamelModel):
    access_modes: List[str] = Field(default_factory=lambda: ["ReadWriteOnce"])
    resources: StorageResources
    storage_class_name: str


class DataVolumeTemplateSpec(CamelModel):
    source: Dict[str, Dict] = Field(default_factory=lambda: {"blank": {}})
    storage: DataVolumeStorage


class DataVolumeTemplate(CamelModel):
    metadata: ObjectMeta
    spec: DataVolumeTemplateSpec


class KubeVirtVMSpec(CamelModel):
    run_strategy: RunStrategy
    data_volume_templates: List[DataVolumeTemplate]
    template: InstanceTemplate


class KubeVirtVirtualMachine(CamelModel):
    api_version: str = f"{KUBEVIRT_GROUP}/{KUBEVIRT_VERSION}"
    kind: str = "VirtualMachine"
    metadata: ObjectMeta
    spec: KubeVirtVMSpec

    @model_validator(mode="after")
    def _data_volumes_declared(self) -> "KubeVirtVirtualMachine":
        declared = {t.metadata.name for t in self.spec.data_volume_templates}
        for volume in self.spec.template.spec.volumes:
            if volume.data_volume and volume.data_volume.name not in declared:
                raise ValueError(f"data volume {volume.data_volume.name!r} has no template")
        return self


def render_cloud_init(spec: VirtualMachineSpec) -> Optional[str]:
    """User data for the NoCloud disk, or None when the VM gets no boot data.

    An explicit ``cloudInit`` document wins; otherwise SSH keys are rendered
    into a minimal ``#cloud-config``.
    """
    if spec.cloud_init:
        return spec.cloud_init
    if spec.ssh_keys:
        body = yaml.safe_dump({"ssh_authorized_keys": list(spec.ssh_keys)}, default_flow_style=False)
        return "#cloud-config\n" + body
    return None


class KubeVirtVMBuilder:
    """Builds the KubeVirt VM for one declared VirtualMachine; a pure function of its spec and the image catalog."""

    def __init__(self, catalog: OSImageCatalog, default_disk_size: str = "10Gi", default_storage_class: str = "local-path"):
        self.catalog = catalog
        self.default_disk_size = default_disk_size
        self.default_storage_class = default_storage_class

    @staticmethod
    def data_volume_name(name: str) -> str:
        return f"{name}-disk"

    def build(self, name: str, namespace: str, spec: VirtualMachineSpec) -> KubeVirtVirtualMachine:
        run_strategy = spec.run_strategy or RunStrategy.ALWAYS
        data_volume = self.data_volume_name(name)

        disks = [Disk(name=CONTAINER_DISK), Disk(name=DATA_DISK)]
        volumes = [
            Volume(name=CONTAINER_DISK, container_disk=ContainerDiskSource(image=self.catalog.resolve(spec.os, spec.os_version))),
            Volume(name=DATA_DISK, data_volume=DataVolumeSource(name=data_volume)),
        ]
        user_data = render_cloud_init(spec)
        if user_data:
            disks.append(Disk(name=CLOUD_INIT_DISK))
            volumes.append(Volume(name=CLOUD_INIT_DISK, cloud_init_no_cloud=CloudInitNoCloudSource(user_data=user_data)))

        return KubeVirtVirtualMachine(
            metadata=ObjectMeta(name=name, namespace=namespace, labels={LABEL_MANAGED: "true"}),
            spec=KubeVirtVMSpec(
                run_strategy=run_strategy,
                data_volume_templates=[
                    DataVolumeTemplate(
                        metadata=ObjectMeta(name=data_volume),
                        spec=DataVolumeTemplateSpec(
                            storage=DataVolumeStorage(
                                resources=StorageResources(requests={"storage": spec.disk_size or self.default_disk_size}),
                                storage_class_name=spec.storage_class or self.default_storage_class,
                            ),
                        ),
                    )
                ],
                template=InstanceTemplate(
                    metadata=ObjectMeta(labels={LABEL_VIRTUAL_MACHINE: name, "kubevirt.io/domain": name}),
                    spec=InstanceSpec(
                        domain=Domain(
                            cpu=CPU(cores=spec.cpus),
                            resources=DomainResources(requests={"memory": spec.memory}),
                            devices=Devices(disks=disks),
                        ),
                        volumes=volumes,
                    ),
                ),
            ),
        )

    def manifest(self, name: str, namespace: str, spec: VirtualMachineSpec) -> dict:
        return self.build(name, namespace, spec).to_json()
