"""
coin_config -- single public entrypoint for coin ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``CoinSettings``.
    ``ConfigProvider`` adds named lookup for callers that address
    settings by key (``MIN_BILL_AMOUNT``, ``WELCOME_BONUS_AMOUNT``, ...).

Architecture position:
    Configuration.  Sits above ``coin_kernel``.  The kernel MUST NEVER
    import from ``coin_config``; ``coin_config.bridges`` translates
    settings into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``ValueError`` -- unknown setting or invalid value.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``COIN_CONFIG_TRACE`` log entry with the config id, version and
    checksum of the settings in force.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from coin_config.loader import compute_checksum, load_yaml_file, parse_settings
from coin_config.schema import CoinSettings

_logger = logging.getLogger("coin_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
) -> CoinSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            ``coin_config/sets/default.yaml``.
        overrides: Setting values applied on top of the file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a setting is unknown or invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_FILE
    settings = parse_settings(load_yaml_file(path), overrides)

    _logger.info(
        "COIN_CONFIG_TRACE",
        extra={
            "trace_type": "COIN_CONFIG_TRACE",
            "config_set_id": settings.config_id,
            "config_set_version": settings.version,
            "config_path": str(path),
            "checksum": compute_checksum(asdict(settings)),
            "override_count": len(overrides or {}),
        },
    )
    return settings


class ConfigProvider:
    """Named access to settings by upper-case key, with caller defaults."""

    def __init__(self, settings: CoinSettings | None = None):
        self.settings = settings or CoinSettings()

    def get(self, name: str, default: Any = None) -> Any:
        attr = name.lower()
        if attr not in CoinSettings.setting_names():
            return default
        return getattr(self.settings, attr)

    def as_dict(self) -> dict[str, Any]:
        return {n.upper(): getattr(self.settings, n) for n in CoinSettings.setting_names()}


__all__ = [
    "CoinSettings",
    "ConfigProvider",
    "get_active_config",
]
