"""Load model settings from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from hetdsge.core.settings import Setting

_SETTING_FIELDS = {"value", "in_filename", "code", "description"}


def _to_setting(key: str, entry: Any) -> Setting:
    if not isinstance(entry, dict):
        return Setting(key=str(key), value=entry)
    unknown = set(entry) - _SETTING_FIELDS
    if unknown:
        raise ValueError(f"Setting '{key}' has unknown fields: {sorted(unknown)}")
    if "value" not in entry:
        raise ValueError(f"Setting '{key}' is missing 'value'")
    return Setting(key=str(key), **entry)


def settings_from_yaml(config_path: Path | str) -> list[Setting]:
    """Read custom settings from a YAML file.

    The file holds a top-level mapping, optionally nested under
    ``settings``. Each entry is either a plain value or a mapping with
    ``value`` and optional ``in_filename``, ``code`` and ``description``::

        nx: 30
        data_vintage:
          value: "250101"
          in_filename: true
          code: vint

    Args:
        config_path: Path to the YAML file

    Returns:
        Settings in file order, ready to pass as ``custom_settings``

    Raises:
        ValueError: If the file is not a mapping or an entry is malformed
    """
    config_path = Path(config_path)
    payload = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if payload is None:
        return []
    if not isinstance(payload, dict):
        raise ValueError("Settings YAML must define a top-level mapping")

    entries = payload.get("settings", payload)
    if not isinstance(entries, dict):
        raise ValueError("settings must be a mapping")
    return [_to_setting(key, entry) for key, entry in entries.items()]
