"""
Configuration Loader (``coin_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into a frozen
``CoinSettings``.  The public runtime entry point is
``coin_config.get_active_config()``; this module is the tooling under it.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown setting name or unparseable value  -> ``ValueError``.
* Out-of-range value  -> ``ValueError`` from ``CoinSettings``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from coin_config.schema import DECIMAL_FIELDS, FLOAT_FIELDS, INT_FIELDS, CoinSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_setting(name: str, value: Any) -> Any:
    """Coerce one raw YAML value to the type ``CoinSettings`` declares."""
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        if name in DECIMAL_FIELDS:
            # str() first so YAML floats like 0.01 stay exact
            return Decimal(str(value))
        if name in INT_FIELDS:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(f"{name}: expected an integer, got {value!r}")
            return int(value)
        if name in FLOAT_FIELDS:
            return float(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"{name}: cannot parse {value!r}") from exc
    raise ValueError(f"Unknown setting: {name}")


def parse_settings(
    data: dict[str, Any],
    overrides: dict[str, Any] | None = None,
) -> CoinSettings:
    """
    Build ``CoinSettings`` from a loaded configuration document.

    The document has optional ``config_id`` and ``version`` keys and a
    ``settings`` mapping.  ``overrides`` are applied on top of the file.
    Settings that are absent keep their defaults.
    """
    raw = dict(data.get("settings") or {})
    raw.update(overrides or {})

    known = set(CoinSettings.setting_names())
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown setting(s): {', '.join(unknown)}")

    kwargs = {name: parse_setting(name, value) for name, value in raw.items()}
    return CoinSettings(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        **kwargs,
    )


def load_settings(
    path: Path,
    overrides: dict[str, Any] | None = None,
) -> CoinSettings:
    return parse_settings(load_yaml_file(path), overrides)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical data, identical hash."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
