"""Configuration schema using Pydantic."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agentrt.core.types import Sensitivity


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ToolsConfig(Base):
    default_timeout: float | None = 30.0

    @field_validator("default_timeout")
    @classmethod
    def positive_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("defaultTimeout must be positive")
        return v


class ContextConfig(Base):
    provider_timeout: float = Field(5.0, gt=0)
    redact: bool = True


class MemoryConfig(Base):
    read_gate: Sensitivity = Sensitivity.CONFIDENTIAL
    encrypt_at: Sensitivity = Sensitivity.SECRET
    max_value_bytes: int = Field(256 * 1024, gt=0)


class AccessRuleConfig(Base):
    effect: Literal["allow", "deny"]
    identity: str = "*"
    resource_kind: str = "*"
    resource: str = "*"
    actions: list[str] = Field(default_factory=lambda: ["*"])


class AccessConfig(Base):
    default_clearance: Sensitivity = Sensitivity.INTERNAL
    default_effect: Literal["allow", "deny"] = "allow"
    clearances: dict[str, Sensitivity] = Field(default_factory=dict)
    rules: list[AccessRuleConfig] = Field(default_factory=list)


class ObservabilityConfig(Base):
    diagnostics_path: str | None = None
    rotate_bytes: int = Field(5 * 1024 * 1024, gt=0)
    max_backups: int = Field(3, ge=0)

    @property
    def diagnostics_file(self) -> Path | None:
        if not self.diagnostics_path:
            return None
        return Path(self.diagnostics_path).expanduser()


class Config(Base):
    """Root configuration for one runtime instance."""

    config_version: str = "v1"
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
