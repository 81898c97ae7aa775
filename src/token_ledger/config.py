"""Configuration management for token-ledger.

Supports loading configuration from:
1. Default values
2. Config file (<data_dir>/config.yaml)
3. Environment variables

Configuration precedence: env vars > config file > defaults
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from solders.pubkey import Pubkey

from .logging import get_logger, level_from_name
from .pubkeys import NATIVE_MINT, TOKEN_PROGRAM_ID, parse_pubkey
from .rent import (
    DEFAULT_BURN_PERCENT,
    DEFAULT_EXEMPTION_THRESHOLD,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
    Rent,
)

logger = get_logger("config")

DEFAULT_DATA_DIR = Path.home() / ".token-ledger"
DEFAULT_LOG_LEVEL = "INFO"
MAX_CONFIG_SIZE = 1024 * 1024  # 1MB

ENV_PROGRAM_ID = "TOKEN_LEDGER_PROGRAM_ID"
ENV_NATIVE_MINT = "TOKEN_LEDGER_NATIVE_MINT"
ENV_LOG_LEVEL = "TOKEN_LEDGER_LOG_LEVEL"


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class ProgramConfig:
    """Addresses the processor runs with."""

    program_id: str = str(TOKEN_PROGRAM_ID)
    native_mint: str = str(NATIVE_MINT)

    @property
    def program_key(self) -> Pubkey:
        return parse_pubkey(self.program_id)

    @property
    def native_mint_key(self) -> Pubkey:
        return parse_pubkey(self.native_mint)

    def validate(self) -> None:
        """Validate configuration.

        Raises ConfigError if validation fails.
        """
        for name in ("program_id", "native_mint"):
            try:
                parse_pubkey(getattr(self, name))
            except ValueError as e:
                raise ConfigError(f"{name}: {e}") from e

        if self.program_id == self.native_mint:
            raise ConfigError("program_id and native_mint must differ")


@dataclass
class RentConfig:
    """Rent parameters published to the rent sysvar."""

    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: float = DEFAULT_EXEMPTION_THRESHOLD
    burn_percent: int = DEFAULT_BURN_PERCENT

    def validate(self) -> None:
        """Validate configuration.

        Raises ConfigError if validation fails.
        """
        if self.lamports_per_byte_year < 1:
            raise ConfigError(
                f"lamports_per_byte_year must be >= 1, got {self.lamports_per_byte_year}"
            )

        if self.exemption_threshold <= 0:
            raise ConfigError(
                f"exemption_threshold must be > 0, got {self.exemption_threshold}"
            )

        if not 0 <= self.burn_percent <= 100:
            raise ConfigError(f"burn_percent must be 0..100, got {self.burn_percent}")

    def to_rent(self) -> Rent:
        return Rent(
            lamports_per_byte_year=self.lamports_per_byte_year,
            exemption_threshold=self.exemption_threshold,
            burn_percent=self.burn_percent,
        )


@dataclass
class LoggingConfig:
    level: str = DEFAULT_LOG_LEVEL
    json_format: bool = False

    @property
    def level_value(self) -> int:
        return level_from_name(self.level)

    def validate(self) -> None:
        try:
            level_from_name(self.level)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        if self.level_value < logging.INFO:
            logger.warning("Log level %s prints every handler's record changes", self.level)


@dataclass
class Config:
    """Main configuration container."""

    program: ProgramConfig = field(default_factory=ProgramConfig)
    rent: RentConfig = field(default_factory=RentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate all configuration."""
        self.program.validate()
        self.rent.validate()
        self.logging.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "program": {
                "program_id": self.program.program_id,
                "native_mint": self.program.native_mint,
            },
            "rent": {
                "lamports_per_byte_year": self.rent.lamports_per_byte_year,
                "exemption_threshold": self.rent.exemption_threshold,
                "burn_percent": self.rent.burn_percent,
            },
            "logging": {
                "level": self.logging.level,
                "json_format": self.logging.json_format,
            },
        }


def load_config(config_path: Path | None = None, data_dir: Path | None = None) -> Config:
    """
    Load configuration from file and environment.

    Args:
        config_path: Explicit path to config file (optional)
        data_dir: Data directory to look for config.yaml (optional)

    Returns:
        Validated Config object
    """
    config = Config()

    # Determine config file path
    if config_path is None and data_dir is not None:
        config_path = data_dir / "config.yaml"

    # Load from file if exists
    if config_path and config_path.exists():
        try:
            config = _load_config_file(config_path)
            logger.debug("Loaded config from %s", config_path)
        except (OSError, yaml.YAMLError, ConfigError, ValueError, TypeError) as e:
            logger.warning("Failed to load config from %s: %s", config_path, e)
            config = Config()

    # Override with environment variables
    config = _apply_env_overrides(config)

    # Validate
    config.validate()

    return config


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _load_config_file(config_path: Path) -> Config:
    """Load configuration from YAML file."""
    # Security: limit file size
    size = config_path.stat().st_size
    if size > MAX_CONFIG_SIZE:
        raise ConfigError(f"Config file too large: {size} > {MAX_CONFIG_SIZE}")

    with open(config_path, encoding="utf-8") as f:
        # Use safe_load to prevent code execution
        data = yaml.safe_load(f)

    if data is None:
        return Config()

    if not isinstance(data, dict):
        raise ConfigError("Config file must be a YAML mapping")

    # Validate keys
    allowed_keys = {"program", "rent", "logging"}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        logger.warning("Unknown config keys ignored: %s", unknown_keys)

    program_data = _section(data, "program")
    program = ProgramConfig(
        program_id=str(program_data.get("program_id", TOKEN_PROGRAM_ID)),
        native_mint=str(program_data.get("native_mint", NATIVE_MINT)),
    )

    rent_data = _section(data, "rent")
    rent = RentConfig(
        lamports_per_byte_year=int(
            rent_data.get("lamports_per_byte_year", DEFAULT_LAMPORTS_PER_BYTE_YEAR)
        ),
        exemption_threshold=float(
            rent_data.get("exemption_threshold", DEFAULT_EXEMPTION_THRESHOLD)
        ),
        burn_percent=int(rent_data.get("burn_percent", DEFAULT_BURN_PERCENT)),
    )

    logging_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=str(logging_data.get("level", DEFAULT_LOG_LEVEL)),
        json_format=bool(logging_data.get("json_format", False)),
    )

    return Config(program=program, rent=rent, logging=logging_config)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    env_program_id = os.environ.get(ENV_PROGRAM_ID)
    if env_program_id:
        config.program.program_id = env_program_id.strip()
        logger.debug("Using program id from env: %s", env_program_id)

    env_native_mint = os.environ.get(ENV_NATIVE_MINT)
    if env_native_mint:
        config.program.native_mint = env_native_mint.strip()
        logger.debug("Using native mint from env: %s", env_native_mint)

    env_level = os.environ.get(ENV_LOG_LEVEL)
    if env_level:
        try:
            level_from_name(env_level)
            config.logging.level = env_level.upper()
        except ValueError:
            logger.warning("Invalid %s: %s", ENV_LOG_LEVEL, env_level)

    return config


def save_config(config: Config, config_path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        config_path: Path to write config file
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)

    logger.info("Saved config to %s", config_path)
