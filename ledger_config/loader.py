"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings document and parses it into a frozen
``LedgerSettings``.  Runtime callers go through
``ledger_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError``.  A typo never silently falls back to
  a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings, so two installations can be compared.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings document must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any], overrides: dict[str, Any] | None = None) -> LedgerSettings:
    """
    Build LedgerSettings from a parsed document plus optional overrides.

    Missing keys take their defaults.  The checksum covers the effective
    values, defaults included.

    Raises:
        ValueError: unknown key or invalid value.
    """
    merged = dict(data)
    if overrides:
        merged.update(overrides)

    unknown = set(merged) - LedgerSettings.field_names()
    if unknown:
        raise ValueError(f"Unknown settings keys: {sorted(unknown)}")

    settings = LedgerSettings(**merged)
    effective = {
        key: value
        for key, value in dataclasses.asdict(settings).items()
        if key != "checksum"
    }
    return dataclasses.replace(settings, checksum=compute_checksum(effective))


def load_settings(path: Path, overrides: dict[str, Any] | None = None) -> LedgerSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path), overrides)
