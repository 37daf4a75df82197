"""Configuration file support for vcf-site-finalizer."""

import logging
import math
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .genotyping.likelihoods import DEFAULT_MAX_ALT_ALLELES

logger = logging.getLogger(__name__)

CONFIG_TABLE = "vcf_site_finalizer"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class FinalizerConfig:
    """Configuration for site finalization."""

    max_alt_alleles: int = DEFAULT_MAX_ALT_ALLELES
    summarize_pls: bool = False
    standard_min_confidence: float = 30.0
    heterozygosity: float = 0.001
    log_level: str = "INFO"

    @property
    def min_qual_approx(self) -> float:
        """QUALapprox threshold with the heterozygosity prior applied."""
        return self.standard_min_confidence - 10 * math.log10(self.heterozygosity)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values.

    Raises:
        ConfigValidationError: If any configuration value is invalid.
    """
    if "max_alt_alleles" in config_dict:
        max_alt = config_dict["max_alt_alleles"]
        if not isinstance(max_alt, int) or isinstance(max_alt, bool):
            raise ConfigValidationError(
                f"max_alt_alleles must be an integer, got {type(max_alt).__name__}"
            )
        if max_alt <= 0:
            raise ConfigValidationError(f"max_alt_alleles must be positive, got {max_alt}")

    if "summarize_pls" in config_dict:
        summarize = config_dict["summarize_pls"]
        if not isinstance(summarize, bool):
            raise ConfigValidationError(
                f"summarize_pls must be a boolean, got {type(summarize).__name__}"
            )

    if "standard_min_confidence" in config_dict:
        confidence = config_dict["standard_min_confidence"]
        if not _is_number(confidence):
            raise ConfigValidationError(
                f"standard_min_confidence must be a number, got {type(confidence).__name__}"
            )

    if "heterozygosity" in config_dict:
        het = config_dict["heterozygosity"]
        if not _is_number(het):
            raise ConfigValidationError(
                f"heterozygosity must be a number, got {type(het).__name__}"
            )
        if not 0 < het < 1:
            raise ConfigValidationError(f"heterozygosity must be in (0, 1), got {het}")

    if "log_level" in config_dict:
        log_level = config_dict["log_level"]
        if not isinstance(log_level, str):
            raise ConfigValidationError(
                f"log_level must be a string, got {type(log_level).__name__}"
            )
        if log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{log_level}'"
            )


def build_config(config_dict: dict[str, Any]) -> FinalizerConfig:
    """Validate ``config_dict`` and build a config, ignoring unknown keys."""
    validate_config(config_dict)

    valid_fields = {f.name for f in fields(FinalizerConfig)}
    unknown = sorted(set(config_dict) - valid_fields)
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

    filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}
    if "standard_min_confidence" in filtered_config:
        filtered_config["standard_min_confidence"] = float(
            filtered_config["standard_min_confidence"]
        )
    if "heterozygosity" in filtered_config:
        filtered_config["heterozygosity"] = float(filtered_config["heterozygosity"])
    if "log_level" in filtered_config:
        filtered_config["log_level"] = filtered_config["log_level"].upper()

    return FinalizerConfig(**filtered_config)


def load_config(config_path: Path, overrides: dict[str, Any] | None = None) -> FinalizerConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML configuration file.
        overrides: Optional dict of values to override loaded config.

    Returns:
        FinalizerConfig instance with loaded values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigValidationError: If any configuration value is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        toml_data = tomllib.load(f)

    config_dict = dict(toml_data.get(CONFIG_TABLE, {}))

    if overrides:
        config_dict.update(overrides)

    return build_config(config_dict)
