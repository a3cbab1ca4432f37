"""
tokenledger Configuration Manager

Centralized configuration for the ledger engines supporting:
- Environment-based configs (development/staging/production)
- Config file loading (YAML/JSON)
- Command-line override support
- Environment variable support (TOKENLEDGER_*)
- Per-section validation
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .ledger_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent / "config"
ENV_PREFIX = "TOKENLEDGER_"


class Environment(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class VestingConfig:
    """Linear vesting window shared by every schedule of one ledger"""
    start: int = 0
    end: int = 31_536_000
    cliff_duration: int = 0

    def validate(self):
        if self.start < 0:
            raise ConfigurationError(f"Invalid start: {self.start}. Must be >= 0")
        if self.end < self.start:
            raise ConfigurationError(f"Invalid end: {self.end}. Must be >= start ({self.start})")
        if self.cliff_duration < 0:
            raise ConfigurationError(f"Invalid cliff_duration: {self.cliff_duration}. Must be >= 0")


@dataclass
class StakingConfig:
    """Staking reward and fee parameters (rates in basis points)"""
    reward_rate: int = 6500
    reward_interval: int = 31_536_000  # 365 days
    staking_fee_rate: int = 150
    unstaking_fee_rate: int = 50
    cliff_time: int = 72 * 3600

    def validate(self):
        if self.reward_rate < 0:
            raise ConfigurationError(f"Invalid reward_rate: {self.reward_rate}. Must be >= 0")
        if self.reward_interval < 1:
            raise ConfigurationError(f"Invalid reward_interval: {self.reward_interval}. Must be >= 1")
        for name in ("staking_fee_rate", "unstaking_fee_rate"):
            value = getattr(self, name)
            if not (0 <= value <= 10_000):
                raise ConfigurationError(f"Invalid {name}: {value}. Must be between 0-10000")
        if self.cliff_time < 0:
            raise ConfigurationError(f"Invalid cliff_time: {self.cliff_time}. Must be >= 0")


@dataclass
class PresaleConfig:
    """Fixed-rate presale pricing and purchase bounds"""
    rate: int = 100  # sale tokens per whole payment token
    min_purchase: int = 0  # in payment token base units
    max_purchase: int = 0  # per buyer, 0 = unlimited

    def validate(self):
        if self.rate < 1:
            raise ConfigurationError(f"Invalid rate: {self.rate}. Must be >= 1")
        if self.min_purchase < 0:
            raise ConfigurationError(f"Invalid min_purchase: {self.min_purchase}. Must be >= 0")
        if self.max_purchase < 0:
            raise ConfigurationError(f"Invalid max_purchase: {self.max_purchase}. Must be >= 0")
        if self.max_purchase and self.max_purchase < self.min_purchase:
            raise ConfigurationError("max_purchase must be >= min_purchase")


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    enable_file_logging: bool = False
    log_file: str = "logs/tokenledger.json"
    max_log_size: int = 10485760  # 10MB
    backup_count: int = 5
    enable_console_logging: bool = True

    def validate(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")
        if self.max_log_size < 1024:
            raise ConfigurationError(f"Invalid max_log_size: {self.max_log_size}. Must be >= 1024")


SECTIONS = {
    "vesting": VestingConfig,
    "staking": StakingConfig,
    "presale": PresaleConfig,
    "logging": LoggingConfig,
}


class ConfigManager:
    """
    Configuration Manager for tokenledger

    Sources, highest priority first:
    1. Command-line overrides ("section.key" -> value)
    2. Environment variables (TOKENLEDGER_SECTION_KEY)
    3. Environment-specific config file
    4. default config file
    5. Built-in dataclass defaults
    """

    def __init__(self,
                 environment: Optional[str] = None,
                 config_dir: Optional[Union[str, Path]] = None,
                 cli_overrides: Optional[Dict[str, Any]] = None):
        load_dotenv()

        self.environment = self._determine_environment(environment)
        self.config_dir = Path(config_dir).resolve() if config_dir else DEFAULT_CONFIG_DIR
        self.cli_overrides = cli_overrides or {}

        self.vesting: VestingConfig = VestingConfig()
        self.staking: StakingConfig = StakingConfig()
        self.presale: PresaleConfig = PresaleConfig()
        self.logging: LoggingConfig = LoggingConfig()

        self._raw_config: Dict[str, Any] = {}

        self._load_configuration()

    def _determine_environment(self, environment: Optional[str]) -> Environment:
        if environment:
            env_str = environment.lower()
        else:
            env_str = os.getenv(f"{ENV_PREFIX}ENVIRONMENT", "development").lower()

        env_mapping = {
            "dev": Environment.DEVELOPMENT,
            "development": Environment.DEVELOPMENT,
            "staging": Environment.STAGING,
            "stage": Environment.STAGING,
            "prod": Environment.PRODUCTION,
            "production": Environment.PRODUCTION,
        }

        return env_mapping.get(env_str, Environment.DEVELOPMENT)

    def _load_configuration(self):
        default_config = self._load_config_file("default")
        env_config = self._load_config_file(self.environment.value)

        merged_config = self._merge_configs(default_config, env_config)
        merged_config = self._apply_env_variables(merged_config)
        merged_config = self._apply_cli_overrides(merged_config)

        self._raw_config = merged_config

        self._parse_configuration(merged_config)
        self._validate_configuration()
        logger.debug(
            "Configuration loaded",
            extra={"event": "config.loaded", "environment": self.environment.value},
        )

    def _load_config_file(self, filename: str) -> Dict[str, Any]:
        """Load ``<filename>.yaml`` or ``<filename>.json``; missing files yield {}."""
        yaml_path = self.config_dir / f"{filename}.yaml"
        if yaml_path.exists():
            with open(yaml_path, "r") as f:
                try:
                    return yaml.safe_load(f) or {}
                except yaml.YAMLError as exc:
                    raise ConfigurationError(f"Malformed YAML in {yaml_path}: {exc}") from exc

        json_path = self.config_dir / f"{filename}.json"
        if json_path.exists():
            with open(json_path, "r") as f:
                try:
                    return json.load(f)
                except json.JSONDecodeError as exc:
                    raise ConfigurationError(f"Malformed JSON in {json_path}: {exc}") from exc

        return {}

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_variables(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides

        Example:
        TOKENLEDGER_STAKING_REWARD_RATE=6500
        TOKENLEDGER_VESTING_CLIFF_DURATION=86400
        """
        result = config.copy()

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key == f"{ENV_PREFIX}ENVIRONMENT":
                continue

            parts = key[len(ENV_PREFIX):].lower().split("_")
            if len(parts) < 2:
                continue

            section = parts[0]
            config_key = "_".join(parts[1:])
            if section not in SECTIONS:
                continue

            section_values = dict(result.get(section) or {})
            section_values[config_key] = self._parse_env_value(value)
            result[section] = section_values

        return result

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool]:
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _apply_cli_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        result = config.copy()

        for key, value in self.cli_overrides.items():
            parts = key.split(".")

            if len(parts) == 1:
                result[key] = value
            elif len(parts) == 2:
                section, config_key = parts
                section_values = dict(result.get(section) or {})
                section_values[config_key] = value
                result[section] = section_values

        return result

    def _parse_configuration(self, config: Dict[str, Any]):
        for section, section_cls in SECTIONS.items():
            values = config.get(section) or {}
            known = {f.name for f in fields(section_cls)}
            unknown = set(values) - known
            if unknown:
                raise ConfigurationError(
                    f"Unknown {section} settings: {', '.join(sorted(unknown))}"
                )
            setattr(self, section, section_cls(**values))

    def _validate_configuration(self):
        for section in SECTIONS:
            getattr(self, section).validate()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw configuration value by dot-notation key, e.g. "staking.reward_rate"."""
        value: Any = self._raw_config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"environment": self.environment.value}
        for section in SECTIONS:
            data[section] = asdict(getattr(self, section))
        return data

    def reload(self):
        self._load_configuration()

    def __repr__(self) -> str:
        return f"ConfigManager(environment={self.environment.value})"
