"""
Configuration management and loading.

Handles the tariff schedule and insight provider settings.
"""

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict

import yaml

DEFAULT_INSIGHTS_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class TariffConfig:
    """Three-tier progressive water tariff.

    Limits are in cubic metres, rates in currency per cubic metre and the
    base fee is charged on every invoice.
    """
    base_fee: float
    tier1_limit: float
    tier1_rate: float
    tier2_limit: float
    tier2_rate: float
    tier3_rate: float

    def __post_init__(self):
        """Validate tariff values are non-negative and limits are ordered."""
        for tariff_field in fields(self):
            value = getattr(self, tariff_field.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{tariff_field.name} must be a number")
            if not math.isfinite(value):
                raise ValueError(f"{tariff_field.name} must be a finite number")
            if value < 0:
                raise ValueError(f"{tariff_field.name} must be >= 0")
        if self.tier1_limit > self.tier2_limit:
            raise ValueError("tier1_limit must be <= tier2_limit")


@dataclass(frozen=True)
class InsightsConfig:
    """Settings for the AI insight and OCR provider."""
    model: str = DEFAULT_INSIGHTS_MODEL

    def __post_init__(self):
        if not isinstance(self.model, str) or not self.model.strip():
            raise ValueError("insights model must be a non-empty string")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    tariff: TariffConfig
    insights: InsightsConfig = field(default_factory=InsightsConfig)


DEFAULT_TARIFF_CONFIG = TariffConfig(
    base_fee=15.00,
    tier1_limit=10,
    tier1_rate=1.50,
    tier2_limit=30,
    tier2_rate=2.75,
    tier3_rate=4.50,
)

DEFAULT_APP_CONFIG = AppConfig(tariff=DEFAULT_TARIFF_CONFIG)

_TARIFF_KEYS = (
    "base_fee",
    "tier1_limit",
    "tier1_rate",
    "tier2_limit",
    "tier2_rate",
    "tier3_rate",
)


def load_app_config(path: str) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    Validation is strict: unknown keys, missing keys and out-of-range values
    are all rejected so that a bad tariff is caught at startup instead of
    producing wrong invoices.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = {'tariff', 'insights'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'tariff' not in raw_config:
        raise ValueError("Missing required 'tariff' section")

    tariff_data = raw_config['tariff']
    if not isinstance(tariff_data, dict):
        raise ValueError("'tariff' must be a dictionary")
    tariff = _parse_tariff_config(tariff_data)

    insights_data = raw_config.get('insights') or {}
    if not isinstance(insights_data, dict):
        raise ValueError("'insights' must be a dictionary")
    insights = _parse_insights_config(insights_data)

    return AppConfig(tariff=tariff, insights=insights)


def _parse_tariff_config(data: Dict) -> TariffConfig:
    """Parse and validate the tariff section.

    Raises:
        ValueError: If the section is incomplete or invalid
    """
    unknown_keys = set(data.keys()) - set(_TARIFF_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown tariff keys: {unknown_keys}")

    values = {}
    for key in _TARIFF_KEYS:
        if key not in data:
            raise ValueError(f"Missing required '{key}' in tariff")
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"'{key}' in tariff must be a number")
        values[key] = float(value)

    return TariffConfig(**values)


def _parse_insights_config(data: Dict) -> InsightsConfig:
    """Parse and validate the optional insights section."""
    allowed_keys = {'model'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in insights: {unknown_keys}")

    model = data.get('model', DEFAULT_INSIGHTS_MODEL)
    if not isinstance(model, str):
        raise ValueError("'model' in insights must be a string")

    return InsightsConfig(model=model)
