"""
Pydantic models for YAML configuration validation.

This module defines the schema for a transfer config file. Values may
reference environment variables as ``${VAR}`` or ``${VAR:-default}``,
either as the whole value or inside a longer string.

Example config.yml::

    source:
      url: ${SOURCE_N8N_URL}
      api_key: ${SOURCE_N8N_API_KEY}
    target:
      url: https://n8n.example.com
      api_key: ${TARGET_N8N_API_KEY}
      timeout: 20
    run:
      deduplicator: fuzzy
      validators: [schema, integrity]
      concurrency_limit: 5

Usage:
    from workflow_transfer.models.config_models import TransferConfig
    config = TransferConfig.from_yaml("config.yml")
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .run_models import RunOptions


class InstanceConfig(BaseModel):
    """Connection settings for one n8n instance."""
    model_config = ConfigDict(extra='forbid')

    url: Optional[str] = Field(default=None, description="Base URL, e.g. https://n8n.example.com")
    api_key: Optional[str] = Field(default=None, description="API key sent in the key header")
    timeout: Optional[float] = Field(default=None, gt=0, description="Per-call timeout (s)")
    max_requests_per_second: Optional[float] = Field(default=None, ge=0)
    cache_ttl_seconds: Optional[float] = Field(default=None, ge=0)


class RunConfig(RunOptions):
    """Run options plus the strategy choices for a transfer."""
    deduplicator: str = Field(default="exact", description="Registered deduplicator name")
    fuzzy_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    validators: List[str] = Field(default_factory=lambda: ["schema", "integrity"])
    mutation: str = Field(default="recreate", description="Registered mutation name")
    mutation_options: Dict[str, Any] = Field(default_factory=dict)

    def run_options(self) -> RunOptions:
        return RunOptions(**self.model_dump(include=set(RunOptions.model_fields)))


# ${VAR} or ${VAR:-default}
ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def resolve_env_refs(value: Any) -> Any:
    """
    Substitute environment references in every string of a parsed YAML tree.

    A value that is exactly one reference takes the variable's value, its
    default, or None when both are missing, so optional keys fall back to
    settings. References embedded in longer strings (``https://${HOST}/``)
    are replaced inline; a missing variable there becomes its default or "".
    """
    if isinstance(value, dict):
        return {key: resolve_env_refs(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_env_refs(item) for item in value]
    if not isinstance(value, str):
        return value

    whole = ENV_REF.fullmatch(value)
    if whole:
        name, default = whole.groups()
        return os.environ.get(name, default)
    return ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), value)


class TransferConfig(BaseModel):
    model_config = ConfigDict(extra='forbid')

    source: InstanceConfig = Field(default_factory=InstanceConfig)
    target: InstanceConfig = Field(default_factory=InstanceConfig)
    run: RunConfig = Field(default_factory=RunConfig)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "TransferConfig":
        """
        Load a transfer config file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the YAML root is not a mapping or a value is invalid
        """
        path = Path(yaml_path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")
        return cls(**resolve_env_refs(raw))
