from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from .common import CamelModel, Condition


class WorkspaceMember(CamelModel):
    username: str = Field(min_length=1)
    # owner, admin, developer or viewer; unrecognized roles are granted view access
    role: str = "viewer"


class WorkspaceResourceQuotas(CamelModel):
    max_vms: Optional[int] = Field(default=None, alias="maxVMs", ge=0)
    max_models: Optional[int] = Field(default=None, ge=0)
    max_cpu: Optional[str] = Field(default=None, alias="maxCPU")
    max_memory: Optional[str] = None

    def is_empty(self) -> bool:
        return all(v is None for v in (self.max_vms, self.max_models, self.max_cpu, self.max_memory))


class WorkspaceSpec(CamelModel):
    description: str = ""
    members: List[WorkspaceMember] = Field(default_factory=list)
    resource_quotas: Optional[WorkspaceResourceQuotas] = None


class WorkspaceStatus(CamelModel):
    namespace: Optional[str] = None
    phase: Optional[str] = None
    vm_count: int = Field(default=0, alias="vmCount")
    llm_model_count: int = Field(default=0, alias="llmModelCount")
    service_count: int = 0
    conditions: List[Condition] = Field(default_factory=list)
