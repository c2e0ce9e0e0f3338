"""Unit tests for the YAML + environment configuration loader."""

from __future__ import annotations

from pathlib import Path

import yaml

from docrag.config.loader import _deep_merge, load_config
from docrag.config.settings import Settings


def _write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_env_values_override_yaml(self, tmp_path: Path) -> None:
        config_file = _write_yaml(
            tmp_path / "config.yaml",
            {
                "chunking": {"size": 500, "overlap": 50},
                "retrieval": {"top_k": 2, "system_prompt": "Be terse."},
            },
        )
        settings = Settings(_env_file=None, chunk_size=1200, retrieval_top_k=8)

        config = load_config(str(config_file), settings=settings)

        assert config["chunking"] == {"size": 1200, "overlap": 200}
        assert config["retrieval"]["top_k"] == 8
        assert config["retrieval"]["system_prompt"] == "Be terse."

    def test_missing_file_uses_settings_only(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, llm_provider="ollama")
        config = load_config(str(tmp_path / "absent.yaml"), settings=settings)
        assert config["providers"]["llm"] == "ollama"
        assert config["providers"]["extractors"] == ["text", "pdf", "web", "image"]

    def test_shipped_config_parses(self) -> None:
        shipped = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
        config = load_config(str(shipped), settings=Settings(_env_file=None))
        assert config["generation"]["max_tokens"] == 500
        assert config["retrieval"]["max_context_chars"] == 12000
        assert "context provided" in config["retrieval"]["system_prompt"]


class TestDeepMerge:
    def test_nested_dicts_merge(self) -> None:
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        _deep_merge(base, {"a": {"y": 3, "z": 4}, "c": 5})
        assert base == {"a": {"x": 1, "y": 3, "z": 4}, "b": 1, "c": 5}

    def test_scalar_replaces_dict(self) -> None:
        base = {"a": {"x": 1}}
        _deep_merge(base, {"a": "flat"})
        assert base == {"a": "flat"}
