"""Configuration management for the oculus deployment tool."""

from .models import (
    ConfirmationConfig,
    DeployConfig,
    OculusConfig,
    PathsConfig,
    ProjectConfig,
    PublicIpConfig,
    RequirementConfig,
)
from .parser import Config, ConfigValidationError, DEFAULT_CONFIG_FILE

__all__ = [
    "ConfirmationConfig",
    "DeployConfig",
    "OculusConfig",
    "PathsConfig",
    "ProjectConfig",
    "PublicIpConfig",
    "RequirementConfig",
    "Config",
    "ConfigValidationError",
    "DEFAULT_CONFIG_FILE",
]
