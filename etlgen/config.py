"""Engine configuration: dialects, generator toggles and warehouse object names.

Every field has a sensible default so the engine works with no configuration
file at all. A YAML file can override any subset of fields; environment
variables override the file:

    ETLGEN_SOURCE_DIALECT   source_dialect
    ETLGEN_TARGET_DIALECT   target_dialect
    ETLGEN_PIPELINE         pipeline_name
    ETLGEN_CONFIG           path of the YAML file itself
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from etlgen.errors import ConfigError
from etlgen.generators.base import AuditNames
from etlgen.rules import HEADER_SCAN_LIMIT

ENV_OVERRIDES = {
    "ETLGEN_SOURCE_DIALECT": "source_dialect",
    "ETLGEN_TARGET_DIALECT": "target_dialect",
    "ETLGEN_PIPELINE": "pipeline_name",
}
CONFIG_PATH_ENV = "ETLGEN_CONFIG"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class EngineConfig:
    """Settings for one engine run."""

    source_dialect: str = "mssql"
    target_dialect: str = "mssql"
    pipeline_name: str = "Unknown_Pipeline"

    # Parser
    header_scan_limit: int = HEADER_SCAN_LIMIT
    extra_placeholders: list[str] = field(default_factory=list)

    # Schema catalog
    cache_ttl_seconds: float = 300.0
    poll_interval_seconds: float = 1.0
    poll_timeout_seconds: float = 60.0

    # Optional generators (the mapping-driven generator always runs)
    data_quality: bool = True
    schema_validation: bool = False
    audit: bool = False
    comprehensive: bool = False

    # Warehouse audit objects
    audit_schema: str = "Audit"
    execution_audit_table: str = "PipelineExecutionAudit"
    pipeline_audit_table: str = "PipelineAudit"
    reject_schema: str = "Reject"
    reject_suffix: str = "_Reject"
    landing_metadata_table: str = "Metadata.DLLanding"
    edw_metadata_table: str = "Metadata.EDWLanding"

    def enabled_generators(self) -> list[str]:
        """Names of the optional generators to run, in run order."""
        toggles = [
            ("data_quality", self.data_quality),
            ("schema_validation", self.schema_validation),
            ("audit", self.audit),
            ("comprehensive", self.comprehensive),
        ]
        return [name for name, on in toggles if on]

    def audit_names(self) -> AuditNames:
        return AuditNames(
            audit_schema=self.audit_schema,
            execution_audit_table=self.execution_audit_table,
            pipeline_audit_table=self.pipeline_audit_table,
            reject_schema=self.reject_schema,
            reject_suffix=self.reject_suffix,
            landing_metadata_table=self.landing_metadata_table,
            edw_metadata_table=self.edw_metadata_table,
        )


# ---------------------------------------------------------------------------
# Persistence (YAML)
# ---------------------------------------------------------------------------

def load_config(path: Path | str | None = None, env: dict[str, str] | None = None) -> EngineConfig:
    """Load configuration from YAML (if any) and apply environment overrides.

    ``path`` defaults to $ETLGEN_CONFIG. A missing file yields defaults.

    Raises:
        ConfigError: when the file is unreadable or is not a YAML mapping.
    """
    env = os.environ if env is None else env
    path = path or env.get(CONFIG_PATH_ENV)

    data: dict[str, Any] = {}
    if path:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path) as f:
                    loaded = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config {config_path}: {e}") from e
            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigError(f"Config {config_path} must be a mapping, got {type(loaded).__name__}")
            data = loaded or {}

    config = _dict_to_config(data)
    for var, attr in ENV_OVERRIDES.items():
        if env.get(var):
            setattr(config, attr, env[var])
    return config


def save_config(config: EngineConfig, path: Path) -> None:
    """Save an EngineConfig to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(_config_to_dict(config), f, default_flow_style=False, sort_keys=False, allow_unicode=True)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _config_to_dict(config: EngineConfig) -> dict[str, Any]:
    return {f.name: getattr(config, f.name) for f in fields(EngineConfig)}


def _dict_to_config(data: dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from a plain dict. Unknown keys are ignored."""
    known = {f.name for f in fields(EngineConfig)}
    config = EngineConfig(**{k: v for k, v in data.items() if k in known})
    config.extra_placeholders = [str(p) for p in config.extra_placeholders or []]
    return config
