# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB Pulse.

This module is responsible for:
- loading the main application configuration from a TOML file,
- turning the [insights] table into an InsightPolicy,
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import tomllib  # Python 3.11+

from .db import DatabaseConfig
from .dismissals import DISMISSED_KEY
from .engine import DEFAULT_POLICY, InsightPolicy
from .records import Settings

DEFAULT_CONFIG_FILE = "smb_pulse_config.toml"

DISPLAY_MODES: tuple[str, ...] = ("table", "csv", "both")


@dataclass(frozen=True)
class DataPaths:
    """Locations of the CSV record files (each one optional)."""

    transactions: Optional[Path]
    invoices: Optional[Path]
    tax_payments: Optional[Path]


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB Pulse.

    This aggregates:
    - the business settings (currency symbol, tax rates),
    - the CSV files holding the records,
    - the database configuration and the storage key for dismissals,
    - the insight thresholds,
    - display options.
    """

    settings: Settings
    data: DataPaths
    database: DatabaseConfig
    dismissed_key: str
    policy: InsightPolicy
    display_mode: str


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _parse_rate(section: Mapping[str, Any], key: str) -> float:
    value = section.get(key, 0)
    if isinstance(value, bool):
        raise ValueError(f"Invalid value for 'business.{key}': expected a number.")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for 'business.{key}': expected a number."
        ) from exc


def _parse_settings(raw: Mapping[str, Any]) -> Settings:
    business = _section(raw, "business")
    return Settings(
        currency_symbol=str(business.get("currency_symbol") or "$"),
        tax_rate=_parse_rate(business, "tax_rate"),
        state_tax_rate=_parse_rate(business, "state_tax_rate"),
    )


def parse_policy(
    overrides: Mapping[str, Any],
    base: InsightPolicy = DEFAULT_POLICY,
) -> InsightPolicy:
    """
    Build an InsightPolicy from `base` and a mapping of overrides.

    Integer fields (window lengths, counts, months) must be whole numbers;
    ratio fields accept any number.

    Raises:
        ValueError: on unknown keys, non-numeric values, non-positive
            windows or a start month outside 1-12.
    """
    types = {f.name: f.type for f in fields(InsightPolicy)}

    unknown = sorted(set(overrides).difference(types))
    if unknown:
        raise ValueError(f"Unknown [insights] option(s): {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, value in overrides.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Invalid value for 'insights.{key}': expected a number.")
        if types[key] in (int, "int"):
            if not float(value).is_integer():
                raise ValueError(
                    f"Invalid value for 'insights.{key}': expected an integer."
                )
            values[key] = int(value)
        else:
            values[key] = float(value)

    policy = replace(base, **values)

    for key in ("cashflow_window_days", "trend_window_days", "concentration_window_days"):
        if getattr(policy, key) <= 0:
            raise ValueError(f"'insights.{key}' must be a positive number of days.")
    if not 1 <= policy.tax_check_start_month <= 12:
        raise ValueError("'insights.tax_check_start_month' must be between 1 and 12.")

    return policy


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB Pulse application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [business]
        currency_symbol, tax_rate and state_tax_rate (percentages).

    [data]
        Optional CSV paths: transactions, invoices, tax_payments.

    [storage]
        engine ("sqlite"), path of the database file and dismissed_key,
        the slot holding the dismissed insight ids.

    [insights]
        Optional overrides for any InsightPolicy threshold.

    [display]
        mode: "table", "csv" or "both".

    All sections are optional. All file paths are resolved relative to the
    directory of the TOML file itself.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file. Defaults to
        'smb_pulse_config.toml' in the current directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Business settings
    settings = _parse_settings(raw)

    # 2) Data files
    data_section = _section(raw, "data")

    def _resolve_optional(rel: Any) -> Optional[Path]:
        if not rel:
            return None
        return (base_dir / str(rel)).resolve()

    data = DataPaths(
        transactions=_resolve_optional(data_section.get("transactions")),
        invoices=_resolve_optional(data_section.get("invoices")),
        tax_payments=_resolve_optional(data_section.get("tax_payments")),
    )

    # 3) Storage
    storage_section = _section(raw, "storage")
    db_engine = str(storage_section.get("engine") or "sqlite")
    db_path_raw = storage_section.get("path") or "data/db/smb_pulse.sqlite"
    database = DatabaseConfig(engine=db_engine, path=(base_dir / str(db_path_raw)).resolve())
    dismissed_key = str(storage_section.get("dismissed_key") or DISMISSED_KEY)

    # 4) Insight thresholds
    policy = parse_policy(_section(raw, "insights"))

    # 5) Display options
    display_mode = str(_section(raw, "display").get("mode", "table"))
    if display_mode not in DISPLAY_MODES:
        raise ValueError(
            f"Invalid value for 'display.mode': {display_mode!r}. "
            f"Expected one of: {', '.join(DISPLAY_MODES)}."
        )

    return AppConfig(
        settings=settings,
        data=data,
        database=database,
        dismissed_key=dismissed_key,
        policy=policy,
        display_mode=display_mode,
    )
