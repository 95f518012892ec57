"""Spec/Status of the two Deployment-backed kinds: ModelDeployment and CatalogService."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import ConfigDict, Field, model_validator

from .common import CamelModel, Condition, ResourceRequirements


class ModelDeploymentSpec(CamelModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str = Field(min_length=1)
    model_size: Optional[str] = None
    provider: Optional[str] = None
    quantization: Optional[str] = None
    image: Optional[str] = None
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)
    replicas: int = Field(default=1, ge=0)

    @property
    def pull_reference(self) -> str:
        """``name[:size][-quantization]``, the tag form model runtimes pull by."""
        ref = self.model_name
        if self.model_size:
            ref = f"{ref}:{self.model_size}"
        if self.quantization:
            ref = f"{ref}-{self.quantization}"
        return ref


class SecretKeySelector(CamelModel):
    name: str
    key: str


class EnvVarSource(CamelModel):
    secret_key_ref: Optional[SecretKeySelector] = None


class EnvVar(CamelModel):
    name: str = Field(min_length=1)
    value: Optional[str] = None
    value_from: Optional[EnvVarSource] = None


class ServicePort(CamelModel):
    name: Optional[str] = None
    port: int = Field(ge=1, le=65535)
    target_port: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: Literal["TCP", "UDP", "SCTP"] = "TCP"

    @property
    def container_port(self) -> int:
        return self.target_port or self.port

    @property
    def port_name(self) -> str:
        return self.name or f"{self.protocol.lower()}-{self.port}"


class CatalogServiceSpec(CamelModel):
    type: str = Field(min_length=1)
    image: str = Field(min_length=1)
    replicas: int = Field(default=1, ge=0)
    ports: List[ServicePort] = Field(default_factory=list)
    env: List[EnvVar] = Field(default_factory=list)
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_port_names(self) -> "CatalogServiceSpec":
        names = [p.port_name for p in self.ports]
        if len(names) != len(set(names)):
            raise ValueError(f"port names must be unique, got {names}")
        return self


class WorkloadStatus(CamelModel):
    phase: Optional[str] = None
    ready_replicas: int = 0
    endpoint: Optional[str] = None
    conditions: List[Condition] = Field(default_factory=list)
