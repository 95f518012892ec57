"""Reconciliation engine for the llmcloud platform.

Workspaces, virtual machines, model deployments, catalog services and
accounts are declared as custom resources; the reconcilers in
:mod:`llmcloud_operator.reconcilers` drive KubeVirt and plain Kubernetes
workloads toward them. :mod:`llmcloud_operator.handlers` wires everything
into kopf.
"""

__version__ = "0.1.0"
