"""YAML configuration loader with environment variable overrides.

Configuration is layered, later layers win:

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides
  3. Environment vars    -- set at deploy time

``load_config()`` reads the YAML file, then deep-merges the env-derived
values from :class:`Settings` on top.  The YAML file holds the knobs that
are awkward as env vars: the retrieval system prompt, generation options,
and the context budget.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from docrag.config.settings import Settings


def load_config(path: str | None = None, settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  Defaults to
              ``settings.config_path``.
        settings: Settings instance to merge.  A fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "providers": {
            "extractors": settings.extractor_names,
            "embedding": settings.embedding_provider,
            "vector_store": settings.vector_store_provider,
            "llm": settings.llm_provider,
            "storage": settings.storage_provider,
        },
        "chunking": {
            "size": settings.chunk_size,
            "overlap": settings.chunk_overlap,
        },
        "retrieval": {
            "top_k": settings.retrieval_top_k,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
