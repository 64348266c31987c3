"""Invalidation settings read from a serverless.yml style project file.

Only the parts of the file this tool cares about are modelled: the service
name, a few provider settings and the ``custom.CloudfrontInvalidation`` list.
Everything else in the document is ignored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

_LOGGER = logging.getLogger(__name__)

DEFAULT_STAGE = "dev"
DEFAULT_REGION = "us-east-1"


class ServerlessYamlLoader(yaml.SafeLoader):
    """SafeLoader that copes with CloudFormation short-form tags and leaves dates alone."""

    @classmethod
    def drop_implicit_resolver(cls, tag: str) -> None:
        # copy first so yaml.SafeLoader itself is left untouched
        if "yaml_implicit_resolvers" not in cls.__dict__:
            cls.yaml_implicit_resolvers = cls.yaml_implicit_resolvers.copy()
        for first_letter, mappings in cls.yaml_implicit_resolvers.items():
            cls.yaml_implicit_resolvers[first_letter] = [(t, regexp) for t, regexp in mappings if t != tag]


def _construct_intrinsic(loader: yaml.SafeLoader, suffix: str, node: yaml.Node) -> dict[str, Any]:
    """Turn ``!Ref Foo`` into ``{"Ref": "Foo"}`` and ``!GetAtt A.B`` into ``{"Fn::GetAtt": "A.B"}``."""
    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)
    key = "Ref" if suffix == "Ref" else f"Fn::{suffix}"
    return {key: value}


ServerlessYamlLoader.drop_implicit_resolver("tag:yaml.org,2002:timestamp")
ServerlessYamlLoader.add_multi_constructor("!", _construct_intrinsic)


class InvalidationTarget(BaseModel):
    """One CloudFront distribution to invalidate and the paths to invalidate on it."""

    distribution_id: str | None = Field(default=None, alias="distributionId")
    distribution_id_key: str | None = Field(default=None, alias="distributionIdKey")
    stage: str | None = None
    auto_invalidate: bool = Field(default=True, alias="autoInvalidate")
    items: tuple[str, ...]

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _warn_unknown_keys(cls, data: Any) -> Any:
        # unknown keys are dropped; a target left without identifiers fails on its own at run time
        if isinstance(data, dict):
            known = set(cls.model_fields) | {field.alias for field in cls.model_fields.values() if field.alias}
            unknown = sorted(str(key) for key in data if key not in known)
            if unknown:
                _LOGGER.warning("Ignoring unknown CloudfrontInvalidation keys: %s", ", ".join(unknown))
        return data

    @property
    def label(self) -> str:
        return self.distribution_id or self.distribution_id_key or "<unset>"


class ProviderSettings(BaseModel):
    stage: str = DEFAULT_STAGE
    region: str = DEFAULT_REGION
    profile: str | None = None
    stack_name: str | None = Field(default=None, alias="stackName")

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class CustomSettings(BaseModel):
    invalidations: tuple[InvalidationTarget, ...] = Field(default=(), alias="CloudfrontInvalidation")

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ProjectConfig(BaseModel):
    """The subset of a serverless project file needed to invalidate its distributions."""

    service: str
    provider: ProviderSettings = ProviderSettings()
    custom: CustomSettings = CustomSettings()

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @field_validator("service", mode="before")
    @classmethod
    def _service_name(cls, value: Any) -> Any:
        # older serverless versions allow `service: {name: foo}`
        if isinstance(value, dict) and "name" in value:
            return value["name"]
        return value

    @property
    def targets(self) -> tuple[InvalidationTarget, ...]:
        return self.custom.invalidations

    def stack_name(self, stage: str) -> str:
        """Name of the CloudFormation stack for ``stage``, following the Serverless naming convention."""
        return self.provider.stack_name or f"{self.service}-{stage}"

    def unresolved_variables(self) -> list[str]:
        """Settings still holding a Serverless ``${...}`` variable, which this tool does not expand."""
        values = {
            "service": self.service,
            "provider.stage": self.provider.stage,
            "provider.region": self.provider.region,
            "provider.profile": self.provider.profile,
            "provider.stackName": self.provider.stack_name,
        }
        return [name for name, value in values.items() if value and "${" in value]

    @classmethod
    def load(cls, config_path: Path) -> ProjectConfig:
        """Load the project file at config_path.

        Raises:
            ValidationError: If the invalidation settings are malformed
            yaml.YAMLError: If the file is not valid YAML
        """
        try:
            with config_path.open(encoding="utf-8") as config_file:
                config_data = yaml.load(config_file, Loader=ServerlessYamlLoader)

            if config_data is None:
                _LOGGER.warning("Config file %s is empty", config_path)
                config_data = {}

            return cls.model_validate(config_data)

        except ValidationError as e:
            _LOGGER.error("Invalid config in %s: %s", config_path, e)
            raise
        except Exception as e:
            _LOGGER.error("Failed to load config from %s: %s", config_path, e)
            raise

    def with_cli_overrides(
        self,
        stage: str | None = None,
        region: str | None = None,
        profile: str | None = None,
    ) -> ProjectConfig:
        """Create a new ProjectConfig with command line overrides applied."""
        provider = self.provider.model_dump()
        if stage:
            provider["stage"] = stage
            _LOGGER.debug("CLI override: stage = %s", stage)
        if region:
            provider["region"] = region
            _LOGGER.debug("CLI override: region = %s", region)
        if profile:
            provider["profile"] = profile
            _LOGGER.debug("CLI override: profile = %s", profile)
        return self.model_copy(update={"provider": ProviderSettings.model_validate(provider)})
