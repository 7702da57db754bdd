"""
Settings file loader (``billing_modules.settings.loader``).

Reads a YAML file of settings, either nested::

    tax:
      vatRate: 0.12
    scheduler:
      cronExpression: "0 8 * * *"

or already flattened (``tax.vatRate: 0.12``), and returns a flat dict of
dotted keys.

Failure modes
-------------
* Missing file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Top level not a mapping -> ``ValueError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; empty files yield an empty dict."""
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping at the top level")
    return data


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Collapse nested mappings into dotted keys."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict) and not dotted.startswith("branding."):
            flat.update(flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_settings_file(path: Path | str) -> dict[str, Any]:
    return flatten(load_yaml_file(Path(path)))
