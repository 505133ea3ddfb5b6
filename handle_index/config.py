# ==================================================
# handle_index/config.py
# ==================================================
"""Index configuration: dataclass defaults, YAML files and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

PATH_ENV = "HANDLE_INDEX_PATH"


@dataclass(frozen=True)
class IndexConfig:
    path: str = "data/user-db"
    segments: int = 256
    bloom_fp: float = 0.01
    expected_keys: int = 1_000_000
    sync_writes: bool = False
    skip_errors: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "IndexConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "IndexConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(config_path: Path) -> Mapping[str, Any]:
    """Parse a YAML configuration file into a mapping."""
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def resolve_config(config_path: Path | None = None,
                   environ: Mapping[str, str] | None = None) -> IndexConfig:
    """
    Build the effective configuration.

    Precedence, lowest first: dataclass defaults, the YAML file, then the
    ``HANDLE_INDEX_PATH`` environment variable for the store location.
    """
    environ = os.environ if environ is None else environ
    config = IndexConfig()
    if config_path is not None:
        config = IndexConfig.from_mapping(load_config(config_path))
    return config.with_overrides(path=environ.get(PATH_ENV))
