from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import ValidationError

from package_resolver.domain.models import ProviderConfig, SourceConfig, SourcesConfig

logger = logging.getLogger(__name__)

DATA_ROOT_ENV_VAR = "PACKAGE_RESOLVER_DATA_DIR"

# Resolve repository root (project root, not the Python package root)
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _REPO_ROOT / "data"

PROVIDER_CONFIG_FILE = "provider.json"
SOURCES_FILE = "sources.yaml"


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable PACKAGE_RESOLVER_DATA_DIR
    2. '<project root>/data'
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        data_dir = Path(env_path).expanduser()
    else:
        data_dir = _DEFAULT_DATA_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def load_provider_config(data_dir: Optional[Path] = None) -> ProviderConfig:
    """
    Load provider.json, merging with defaults for any missing fields,
    and write it back so any new fields are persisted.
    """
    data_dir = data_dir or get_data_dir()
    path = data_dir / PROVIDER_CONFIG_FILE
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            config = ProviderConfig(**raw)
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            # If parsing fails, fall back to defaults and overwrite file.
            logger.warning(f"Ignoring invalid provider configuration {path}: {e}")
            config = ProviderConfig()
    else:
        config = ProviderConfig()

    if not config.install_root:
        config.install_root = str(data_dir / "packages")

    path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    return config


def load_sources(data_dir: Optional[Path] = None) -> List[SourceConfig]:
    """
    Read the configured package sources from sources.yaml.

    Expected shape:

        sources:
          - name: local
            location: /srv/packages
          - name: nuget.org
            location: https://api.nuget.org/v3/index.json
    """
    data_dir = data_dir or get_data_dir()
    path = data_dir / SOURCES_FILE
    if not path.exists():
        return []

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return SourcesConfig(**raw).sources


def save_sources(sources: List[SourceConfig], data_dir: Optional[Path] = None) -> None:
    data_dir = data_dir or get_data_dir()
    path = data_dir / SOURCES_FILE
    payload = SourcesConfig(sources=sources).model_dump(mode="json")
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
