"""
SWAPVAULT Configuration System

Unified configuration management with YAML files, environment variables,
validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (SWAPVAULT_*)
    2. Runtime overrides (ConfigManager.set)
    3. Config file (./swapvault.yaml, or an explicit path)
    4. Default values

YAML files are checked against CONFIG_SCHEMA before any value is applied;
a file with an unknown section or a bad value changes nothing.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml
from jsonschema import Draft202012Validator

from swapvault.errors import SwapVaultError
from swapvault.identity import Pubkey

T = TypeVar("T")

DEFAULT_PROGRAM_ID = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class ConfigError(SwapVaultError):
    """Configuration error."""
    default_message = "Invalid configuration"


def _is_base58_identity(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        Pubkey.from_base58(value)
    except ValueError:
        return False
    return True


def _is_relayer_list(value: Any) -> bool:
    return isinstance(value, str) and all(
        _is_base58_identity(part.strip()) for part in value.split(",") if part.strip()
    )


def _is_executor_key_list(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if len(bytes.fromhex(part)) != 32:
                return False
        except ValueError:
            return False
    return True


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            value = self._coerce(os.environ[self.env_var])
            if self.validator and not self.validator(value):
                raise ConfigError(f"Invalid value for {self.env_var}: {value!r}")
            return value

        return self._value if self._value is not None else self.default

    def set(self, value: T) -> None:
        """Set the value with validation."""
        if self.validator and not self.validator(value):
            raise ConfigError(f"Invalid value for config: {value!r}")

        old_value = self._value
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        try:
            if target_type == bool:
                return value.strip().lower() in ("true", "1", "yes", "on")  # type: ignore
            elif target_type == int:
                return int(value)  # type: ignore
            elif target_type == float:
                return float(value)  # type: ignore
            else:
                return value  # type: ignore
        except ValueError:
            raise ConfigError(f"Cannot parse {self.env_var}={value!r} as {target_type.__name__}")

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


@dataclass
class ProverConfig:
    """Configuration for the Proof Generator."""
    verifiable_enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="SWAPVAULT_PROVER_VERIFIABLE",
        description="Try the verifiable backend before falling back",
        validator=lambda x: isinstance(x, bool),
    ))
    timeout_seconds: ConfigValue[float] = field(default_factory=lambda: ConfigValue(
        default=300.0,
        env_var="SWAPVAULT_PROVER_TIMEOUT",
        description="Hard bound on one verifiable execution, in seconds",
        validator=lambda x: isinstance(x, (int, float)) and not isinstance(x, bool) and x > 0,
    ))
    isolation: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="process",
        env_var="SWAPVAULT_PROVER_ISOLATION",
        description="Guest isolation (process, thread)",
        validator=lambda x: x in ("process", "thread"),
    ))
    cross_check: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="SWAPVAULT_PROVER_CROSS_CHECK",
        description="Recompute verified digests directly and compare",
        validator=lambda x: isinstance(x, bool),
    ))


@dataclass
class LedgerConfig:
    """Configuration for the ledger programs."""
    program_id: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default=DEFAULT_PROGRAM_ID,
        env_var="SWAPVAULT_PROGRAM_ID",
        description="Program identity (base58)",
        validator=_is_base58_identity,
    ))
    vault_seed: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="vault",
        env_var="SWAPVAULT_VAULT_SEED",
        description="Seed the vault address is derived from",
        validator=lambda x: isinstance(x, str) and 0 < len(x.encode()) <= 32,
    ))

    def program_identity(self) -> Pubkey:
        return Pubkey.from_base58(self.program_id.get())

    def seed(self) -> bytes:
        return self.vault_seed.get().encode()


@dataclass
class SecurityConfig:
    """Configuration for the registration and settlement capabilities."""
    registration: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="open",
        env_var="SWAPVAULT_REGISTRATION",
        description="Who may register swaps (open, allowlist)",
        validator=lambda x: x in ("open", "allowlist"),
    ))
    allowed_relayers: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="SWAPVAULT_ALLOWED_RELAYERS",
        description="Comma-separated base58 relayer identities",
        validator=_is_relayer_list,
    ))
    settlement: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="trust",
        env_var="SWAPVAULT_SETTLEMENT",
        description="What a withdraw must prove (trust, attestation)",
        validator=lambda x: x in ("trust", "attestation"),
    ))
    trusted_executor_keys: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="SWAPVAULT_TRUSTED_EXECUTOR_KEYS",
        description="Comma-separated hex Ed25519 executor keys accepted at settlement",
        validator=_is_executor_key_list,
    ))

    def relayer_identities(self) -> List[Pubkey]:
        raw = self.allowed_relayers.get()
        return [Pubkey.from_base58(p.strip()) for p in raw.split(",") if p.strip()]

    def executor_keys(self) -> List[bytes]:
        raw = self.trusted_executor_keys.get()
        return [bytes.fromhex(p.strip()) for p in raw.split(",") if p.strip()]


@dataclass
class RelayerConfig:
    """Configuration for the relayer intent queue."""
    queue_path: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="SWAPVAULT_INTENT_QUEUE",
        description="JSON file backing the intent queue (empty keeps it in memory)",
        validator=lambda x: isinstance(x, str),
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for Observability."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="SWAPVAULT_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in LOG_LEVELS,
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="SWAPVAULT_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class SwapVaultConfig:
    """Root configuration."""
    prover: ProverConfig = field(default_factory=ProverConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    relayer: RelayerConfig = field(default_factory=RelayerConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def _section(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "object", "additionalProperties": False, "properties": properties}


CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "swapvault configuration",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "prover": _section({
            "verifiable_enabled": {"type": "boolean"},
            "timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
            "isolation": {"enum": ["process", "thread"]},
            "cross_check": {"type": "boolean"},
        }),
        "ledger": _section({
            "program_id": {"type": "string", "pattern": "^[1-9A-HJ-NP-Za-km-z]{32,44}$"},
            "vault_seed": {"type": "string", "minLength": 1, "maxLength": 32},
        }),
        "security": _section({
            "registration": {"enum": ["open", "allowlist"]},
            "allowed_relayers": {"type": "string"},
            "settlement": {"enum": ["trust", "attestation"]},
            "trusted_executor_keys": {"type": "string"},
        }),
        "relayer": _section({
            "queue_path": {"type": "string"},
        }),
        "observability": _section({
            "log_level": {"enum": list(LOG_LEVELS)},
            "log_format": {"enum": ["json", "text"]},
        }),
    },
}

_config_validator = Draft202012Validator(CONFIG_SCHEMA)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = SwapVaultConfig()
        self._config_paths: List[Path] = []
        self._watchers: List[Callable[[SwapVaultConfig], None]] = []
        self._initialized = True

    @property
    def config(self) -> SwapVaultConfig:
        """Get the current configuration."""
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {path}: {e}")

        if data:
            self.apply(data)
        if path not in self._config_paths:
            self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load ./swapvault.yaml when it exists."""
        path = Path("swapvault.yaml")
        if path.exists():
            self.load_from_file(path)

    def apply(self, data: Dict[str, Any]) -> None:
        """Validate a whole mapping against the schema, then apply it."""
        errors = sorted(_config_validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            where = ".".join(str(p) for p in first.path) or "<root>"
            raise ConfigError(f"Invalid configuration at {where}: {first.message}")

        targets = []
        for section_name, values in data.items():
            section = getattr(self._config, section_name)
            for key, value in values.items():
                target = getattr(section, key)
                if target.validator and not target.validator(value):
                    raise ConfigError(f"Invalid value for {section_name}.{key}: {value!r}")
                targets.append((target, value))

        for target, value in targets:
            target.set(value)

        for watcher in self._watchers:
            watcher(self._config)

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("prover.timeout_seconds", 30.0)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("prover.isolation")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, "__dataclass_fields__") or part not in obj.__dataclass_fields__:
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def watch(self, callback: Callable[[SwapVaultConfig], None]) -> None:
        """Register a callback for configuration changes."""
        self._watchers.append(callback)

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        for path in list(self._config_paths):
            if path.exists():
                self.load_from_file(path)

    def reset(self) -> None:
        """Drop every override and loaded file. Environment still applies."""
        self._config = SwapVaultConfig()
        self._config_paths.clear()
        self._watchers.clear()

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value!r}")
                except ConfigError as e:
                    errors.append(f"{path}: {e.message}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def to_yaml(self) -> str:
        return self._config.to_yaml()

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


def get_config() -> SwapVaultConfig:
    """Get the current swapvault configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
