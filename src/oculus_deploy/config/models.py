"""Pydantic models for configuration schema."""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from oculus_deploy.inventory.models import ResourceKind, SubnetRole


def _default_region() -> str:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "us-east-1"


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = Field("oculus", min_length=1, max_length=64, pattern="^[a-z0-9-]+$")
    marker: str = Field("oculus", min_length=1, description="Substring identifying project resources")
    region: str = Field(default_factory=_default_region, min_length=1)
    stack_name: str = Field("OculusMiniStack", min_length=1)
    profile: Optional[str] = None

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        parts = v.split("-")
        if len(parts) < 3 or not parts[-1].isdigit():
            raise ValueError(f"Invalid AWS region: {v}")
        return v


class PathsConfig(BaseModel):
    """Filesystem locations, relative to the working directory."""

    cdk_dir: str = "cdk"
    cache_file: str = "aws-inventory.json"
    frontend_env_file: str = "app/.env.local"
    backend_env_file: str = "lambdas/.env"
    app_dir: str = "app"
    site_dir: str = "app/out"
    function_source: str = "lambdas/api.ts"


class DeployConfig(BaseModel):
    """Synthesis, deployment and seeding behaviour."""

    synth_attempts: int = Field(3, ge=1, le=10)
    synth_delay: float = Field(5.0, ge=0)
    network_context_key: str = Field("oculusVpcId", min_length=1)
    include_functions: bool = False
    seed_attempts: int = Field(5, ge=1, le=20)
    seed_delay: float = Field(3.0, ge=0)
    seed_path: str = "/admin/seed"
    # Case-insensitive substrings of the API function name; the CDK app
    # generates names like OculusMiniStack-oculusapifn1A2B3C
    api_function_patterns: List[str] = Field(
        default_factory=lambda: ["oculus_api", "oculus-api", "oculusapifn", "oculusdevapifn"],
        min_length=1,
    )

    @field_validator("seed_path")
    @classmethod
    def validate_seed_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("seed_path must start with '/'")
        return v


class ConfirmationConfig(BaseModel):
    """Tokens an operator must type to proceed."""

    create_token: str = Field("YES", min_length=1)
    destroy_token: str = Field("DELETE ALL", min_length=1)

    @model_validator(mode="after")
    def validate_tokens(self):
        """The destroy token must be distinct from and stronger than the create token."""
        if self.create_token.strip().casefold() == self.destroy_token.strip().casefold():
            raise ValueError("create_token and destroy_token must differ")
        if len(self.destroy_token.strip()) <= len(self.create_token.strip()):
            raise ValueError("destroy_token must be longer than create_token")
        return self


class PublicIpConfig(BaseModel):
    """Public egress address lookup."""

    url: str = Field("https://checkip.amazonaws.com", pattern="^https?://")
    timeout: float = Field(10.0, gt=0, le=60)


class RequirementConfig(BaseModel):
    """One entry of the required resource set."""

    name: str = Field(..., min_length=1)
    kind: ResourceKind
    min_count: int = Field(1, ge=1)
    role: Optional[SubnetRole] = None
    new_network_only: bool = False

    @model_validator(mode="after")
    def validate_role(self):
        if self.role is not None and self.kind != ResourceKind.SUBNET:
            raise ValueError("role is only valid for subnet requirements")
        return self


class OculusConfig(BaseModel):
    """Complete tool configuration."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    confirmation: ConfirmationConfig = Field(default_factory=ConfirmationConfig)
    public_ip: PublicIpConfig = Field(default_factory=PublicIpConfig)
    requirements: Optional[List[RequirementConfig]] = Field(
        None, description="Overrides the default required resource set"
    )

    @field_validator("requirements")
    @classmethod
    def validate_requirements(cls, v: Optional[List[RequirementConfig]]):
        """Requirement names must be unique."""
        if v is None:
            return v
        if not v:
            raise ValueError("requirements must not be empty when given")
        names = [requirement.name for requirement in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate requirement names: {', '.join(duplicates)}")
        return v
