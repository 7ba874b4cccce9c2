"""JSON configuration for order-lens runs."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from order_lens.errors import OrderLensError
from order_lens.fields import UNKNOWN_LABEL
from order_lens.stats import TOP_N

CONFIG_ENV_VAR = "ORDER_LENS_CONFIG"
DEFAULT_CONFIG_NAME = "order-lens.json"
SUPPORTED_CONFIG_SUFFIXES = {".json", ".yml", ".yaml"}

DEFAULT_CONFIG_TEXT = """{
  "coercion": {
    "strict": false
  },
  "statistics": {
    "top_n": 15,
    "unknown_label": "Không xác định"
  },
  "remote": {
    "max_file_mb": 100
  },
  "export": {
    "format_currency": false
  }
}
"""


class ConfigError(OrderLensError, ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    strict: bool = False
    top_n: int = TOP_N
    unknown_label: str = UNKNOWN_LABEL
    max_file_mb: int = 100
    format_currency: bool = False


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    value = payload.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a JSON object.")
    return value


def settings_from_dict(payload: dict[str, Any]) -> Settings:
    coercion = _section(payload, "coercion")
    statistics = _section(payload, "statistics")
    remote = _section(payload, "remote")
    export = _section(payload, "export")

    top_n = statistics.get("top_n", TOP_N)
    if not isinstance(top_n, int) or isinstance(top_n, bool) or top_n < 1:
        raise ConfigError("statistics.top_n must be a positive integer.")
    max_file_mb = remote.get("max_file_mb", 100)
    if not isinstance(max_file_mb, int) or isinstance(max_file_mb, bool) or max_file_mb < 1:
        raise ConfigError("remote.max_file_mb must be a positive integer.")

    return Settings(
        strict=bool(coercion.get("strict", False)),
        top_n=top_n,
        unknown_label=str(statistics.get("unknown_label", UNKNOWN_LABEL)),
        max_file_mb=max_file_mb,
        format_currency=bool(export.get("format_currency", False)),
    )


def load_config(path: Optional[Path] = None) -> Settings:
    """
    Read settings from a JSON config file.

    With no path, ORDER_LENS_CONFIG is consulted; with neither, defaults apply.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return Settings()
        path = Path(env_path)

    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError("Config must be .json, .yml, or .yaml")
    if suffix in {".yml", ".yaml"}:
        raise ConfigError("YAML configs are not supported yet. Use JSON for now.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise ConfigError(f"Could not read config: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config root must be a JSON object.")
    return settings_from_dict(payload)
