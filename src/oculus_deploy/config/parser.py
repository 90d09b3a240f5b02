"""YAML configuration parser for the oculus deployment tool."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import (
    ConfirmationConfig,
    DeployConfig,
    OculusConfig,
    PathsConfig,
    ProjectConfig,
    PublicIpConfig,
    RequirementConfig,
)

DEFAULT_CONFIG_FILE = "oculus.yaml"

SECTIONS = {
    "project": ProjectConfig,
    "paths": PathsConfig,
    "deploy": DeployConfig,
    "confirmation": ConfirmationConfig,
    "public_ip": PublicIpConfig,
}


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for the oculus deployment tool.

    A missing file is not an error: every setting has a default.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_FILE):
        """Initialize configuration manager.

        Args:
            config_path: Path to oculus.yaml configuration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}
        self.settings: OculusConfig = OculusConfig()

    @property
    def project(self) -> ProjectConfig:
        return self.settings.project

    @property
    def paths(self) -> PathsConfig:
        return self.settings.paths

    @property
    def deploy(self) -> DeployConfig:
        return self.settings.deploy

    @property
    def confirmation(self) -> ConfirmationConfig:
        return self.settings.confirmation

    @property
    def public_ip(self) -> PublicIpConfig:
        return self.settings.public_ip

    @property
    def requirements(self) -> Optional[List[RequirementConfig]]:
        return self.settings.requirements

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    self.data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Failed to parse YAML: {e}")
        else:
            self.data = {}

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.settings = OculusConfig(**self.data)
        return self

    def validate(self) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        if not isinstance(self.data, dict):
            return [{"loc": [], "msg": "Configuration must be a mapping"}]

        errors = []

        unknown = sorted(set(self.data) - set(SECTIONS) - {"requirements"})
        for key in unknown:
            errors.append({"loc": [key], "msg": f"Unknown configuration section '{key}'"})

        for section, model in SECTIONS.items():
            if section not in self.data:
                continue
            section_data = self.data[section]
            if not isinstance(section_data, dict):
                errors.append({"loc": [section], "msg": f"Section '{section}' must be a mapping"})
                continue
            try:
                model(**section_data)
            except ValidationError as e:
                for error in e.errors():
                    errors.append(
                        {
                            "loc": [section] + list(error["loc"]),
                            "msg": error["msg"],
                        }
                    )

        if "requirements" in self.data:
            try:
                OculusConfig(requirements=self.data["requirements"])
            except ValidationError as e:
                for error in e.errors():
                    errors.append({"loc": list(error["loc"]), "msg": error["msg"]})

        return errors

    def apply_overrides(
        self, profile: Optional[str] = None, region: Optional[str] = None
    ) -> "Config":
        """Apply command line overrides on top of the loaded file.

        Raises:
            ConfigValidationError: If an override is not a valid value
        """
        updates = {}
        if profile:
            updates["profile"] = profile
        if region:
            updates["region"] = region
        if updates:
            try:
                project = ProjectConfig(**{**self.project.model_dump(), **updates})
            except ValidationError as e:
                raise ConfigValidationError(
                    "Invalid command line override",
                    [{"loc": ["project"] + list(error["loc"]), "msg": error["msg"]} for error in e.errors()],
                )
            self.settings = self.settings.model_copy(update={"project": project})
        return self
