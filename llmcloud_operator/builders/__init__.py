from .kubevirt import KubeVirtVMBuilder, KubeVirtVirtualMachine, render_cloud_init
from .serialize import to_manifest

__all__ = ["KubeVirtVMBuilder", "KubeVirtVirtualMachine", "render_cloud_init", "to_manifest"]
