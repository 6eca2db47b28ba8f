# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.settings",
#   "purpose": "Typed configuration consumed by the request subsystem",
#   "sections": [
#     {"id": "network-settings", "name": "NetworkSettings", "anchor": "class-networksettings", "kind": "class"},
#     {"id": "logging-configuration", "name": "LoggingConfiguration", "anchor": "class-loggingconfiguration", "kind": "class"},
#     {"id": "configuration", "name": "Configuration", "anchor": "class-configuration", "kind": "class"},
#     {"id": "environment-overrides", "name": "EnvironmentOverrides", "anchor": "class-environmentoverrides", "kind": "class"},
#     {"id": "load-configuration", "name": "load_configuration", "anchor": "function-load-configuration", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Typed configuration consumed by the request subsystem.

The request layer only reads configuration: per-host ``network_settings``
fragments, global network defaults, transport policy (timeout, retries, TLS
strictness), the plaintext-HTTP whitelist, and named concurrency limits.
Values come from a YAML file, then from ``GUARDEDFETCH_*`` environment
variables, validated through Pydantic models.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import platformdirs
import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .formatting import PlainRenderer, Renderer, RichRenderer
from .network.limits import ConcurrencyGate
from .network.policy import NetworkPolicy, PolicyFragment, parse_proxy

__all__ = [
    "NetworkSettings",
    "LoggingConfiguration",
    "Configuration",
    "EnvironmentOverrides",
    "default_config_path",
    "load_configuration",
]

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"
APP_NAME = "guardedfetch"


def _validate_proxy(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        parse_proxy(value)
    except ConfigurationError as exc:
        raise ValueError(str(exc)) from exc
    return value


class NetworkSettings(BaseModel):
    """Network settings scoped to hosts matching a glob pattern."""

    enable_network: Optional[bool] = None
    ca_file_path: Optional[Path] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("http_proxy", "https_proxy")
    @classmethod
    def validate_proxy(cls, value: Optional[str]) -> Optional[str]:
        return _validate_proxy(value)


class LoggingConfiguration(BaseModel):
    """Logging-related configuration."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=100, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown logging level '{value}'")
        return level


class Configuration(BaseModel):
    """Configuration read interface for the request subsystem."""

    network_settings: Dict[str, NetworkSettings] = Field(
        default_factory=dict,
        description="Glob pattern to partial network settings, in priority order of specificity",
    )
    enable_network: bool = Field(default=True)
    ca_file_path: Optional[Path] = Field(default=None)
    http_proxy: Optional[str] = Field(default=None)
    https_proxy: Optional[str] = Field(default=None)
    http_timeout: float = Field(default=60.0, gt=0.0, le=3600.0, description="Transport timeout in seconds")
    http_retry: int = Field(default=3, ge=0, le=20, description="Retry limit handed to the transport")
    enable_strict_ssl: bool = Field(default=True)
    unsafe_http_whitelist: List[str] = Field(default_factory=list)
    network_concurrency: int = Field(default=50, ge=1, le=1024)
    enable_colors: bool = Field(default=False)
    enable_hyperlinks: bool = Field(default=False)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    _limits: Dict[str, ConcurrencyGate] = PrivateAttr(default_factory=dict)

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @field_validator("http_proxy", "https_proxy")
    @classmethod
    def validate_proxy(cls, value: Optional[str]) -> Optional[str]:
        return _validate_proxy(value)

    @field_validator("network_settings")
    @classmethod
    def validate_patterns(cls, value: Dict[str, NetworkSettings]) -> Dict[str, NetworkSettings]:
        for pattern in value:
            if not pattern.strip():
                raise ValueError("network_settings patterns must not be empty")
        return value

    def policy_fragments(self) -> List[PolicyFragment]:
        """Return ``network_settings`` as fragments in configuration order."""
        return [
            PolicyFragment(pattern=pattern, **settings.model_dump())
            for pattern, settings in self.network_settings.items()
        ]

    def network_defaults(self) -> NetworkPolicy:
        return NetworkPolicy(
            enable_network=self.enable_network,
            ca_file_path=self.ca_file_path,
            http_proxy=self.http_proxy,
            https_proxy=self.https_proxy,
        )

    def get_limit(self, name: str) -> ConcurrencyGate:
        """Return the gate sized by the integer setting ``name``, creating it once."""
        gate = self._limits.get(name)
        if gate is None:
            limit = getattr(self, name, None)
            if not isinstance(limit, int) or isinstance(limit, bool):
                raise ConfigurationError(f"Setting '{name}' is not a concurrency limit")
            gate = ConcurrencyGate(limit, name=name)
            self._limits[name] = gate
        return gate

    def renderer(self) -> Renderer:
        """Return the renderer matching the colour and hyperlink settings."""
        if self.enable_colors or self.enable_hyperlinks:
            return RichRenderer(
                enable_colors=self.enable_colors,
                enable_hyperlinks=self.enable_hyperlinks,
            )
        return PlainRenderer()

    def config_hash(self) -> str:
        """Compute a short deterministic fingerprint of the configuration."""
        config_str = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(config_str.encode("utf-8")).hexdigest()[:16]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Configuration":
        """Validate a raw mapping, raising :class:`ConfigurationError` on failure."""
        try:
            return cls.model_validate(dict(data))
        except PydanticValidationError as exc:
            messages = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
            )
            raise ConfigurationError(f"Configuration validation failed: {messages}") from exc


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived overrides."""

    enable_network: Optional[bool] = None
    ca_file_path: Optional[Path] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    http_timeout: Optional[float] = None
    http_retry: Optional[int] = None
    enable_strict_ssl: Optional[bool] = None
    network_concurrency: Optional[int] = None
    log_level: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="GUARDEDFETCH_", case_sensitive=False, extra="ignore"
    )


def default_config_path() -> Path:
    """Return the per-user configuration file location."""
    return Path(platformdirs.user_config_dir(APP_NAME)) / CONFIG_FILE_NAME


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Unable to parse configuration file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Unable to read configuration file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


def load_configuration(path: Optional[Path] = None) -> Configuration:
    """Load configuration from YAML and apply environment overrides.

    Args:
        path: Explicit configuration file. When omitted, the per-user file is
            used if it exists, otherwise defaults apply.

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        data = _read_yaml(path)
    else:
        candidate = default_config_path()
        if candidate.exists():
            data = _read_yaml(candidate)

    try:
        overrides = EnvironmentOverrides().model_dump(exclude_none=True)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid GUARDEDFETCH_* environment value: {exc}") from exc

    log_level = overrides.pop("log_level", None)
    if overrides:
        logger.debug("Applying environment overrides", extra={"keys": sorted(overrides)})
    data.update(overrides)
    if log_level is not None:
        data["logging"] = {**dict(data.get("logging") or {}), "level": log_level}

    return Configuration.from_mapping(data)
