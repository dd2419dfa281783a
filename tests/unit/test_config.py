"""Unit tests for the YAML + environment configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from docrag.config import Settings, build_settings, load_config
from docrag.utils.errors import ConfigurationError


def _write_yaml(tmp_path: Path, body: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return str(path)


class TestLoadConfig:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_config(str(tmp_path / "absent.yaml")) == {}

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "chunking: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_config(path)

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_shipped_config_parses(self) -> None:
        config = load_config(str(Path(__file__).parents[2] / "config" / "config.yaml"))
        assert config["chunking"]["chunk_size"] == 1000


class TestBuildSettings:
    def test_sections_are_flattened(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CHUNK_SIZE", raising=False)
        monkeypatch.delenv("VECTOR_STORE", raising=False)
        path = _write_yaml(
            tmp_path,
            "chunking:\n  chunk_size: 800\n  chunk_overlap: 100\nvector_store:\n  vector_store: memory\n",
        )

        settings = build_settings(path)

        assert settings.chunk_size == 800
        assert settings.chunk_overlap == 100
        assert settings.vector_store == "memory"

    def test_environment_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "500")
        path = _write_yaml(tmp_path, "chunking:\n  chunk_size: 800\n  chunk_overlap: 100\n")

        assert build_settings(path).chunk_size == 500

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "misc:\n  not_a_setting: 1\n")
        assert isinstance(build_settings(path), Settings)

    def test_overrides_win(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, "search:\n  search_default_top_k: 7\n")
        assert build_settings(path, overrides={"search_default_top_k": 3}).search_default_top_k == 3

    def test_invalid_chunking_is_configuration_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CHUNK_SIZE", raising=False)
        monkeypatch.delenv("CHUNK_OVERLAP", raising=False)
        path = _write_yaml(tmp_path, "chunking:\n  chunk_size: 100\n  chunk_overlap: 100\n")

        with pytest.raises(ConfigurationError, match="chunk_overlap"):
            build_settings(path)
