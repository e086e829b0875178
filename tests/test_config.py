# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for layered configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from artifact_bundler.config import CONFIG_FILENAME, ConfigLoader, load_config
from artifact_bundler.config.models import default_cache_dir
from artifact_bundler.errors import ConfigError
from artifact_bundler.platforms import Platform


def _loader(root: Path, *, explicit: Path | None = None) -> ConfigLoader:
    return ConfigLoader.for_root(root, explicit=explicit, user_config=root / "no-user-config.toml")


def test_defaults_without_files(tmp_path: Path) -> None:
    result = _loader(tmp_path).load()
    assert result.sources == []
    assert result.config.acquisition.retries == 3
    assert result.config.scan.workers >= 1
    assert Platform.WINDOWS in result.config.packaging.platforms


def test_project_file_overrides_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[tool.artifact-bundler.acquisition]\nretries = 5\nconcurrency = 2\n",
        encoding="utf-8",
    )
    (tmp_path / CONFIG_FILENAME).write_text("[acquisition]\nretries = 7\n", encoding="utf-8")
    result = _loader(tmp_path).load()
    assert result.config.acquisition.retries == 7
    assert result.config.acquisition.concurrency == 2
    assert len(result.sources) == 2


def test_explicit_file_wins_and_scenarios_lowercased(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("[packaging]\nallow_ambiguous = false\n", encoding="utf-8")
    explicit = tmp_path / "ci.toml"
    explicit.write_text(
        "[packaging]\nallow_ambiguous = true\narchive = \"zip\"\n\n[scenarios]\nRansomware = [\"tag:evtx\"]\n",
        encoding="utf-8",
    )
    config = _loader(tmp_path, explicit=explicit).load().config
    assert config.packaging.allow_ambiguous
    assert config.packaging.archive == "zip"
    assert config.scenarios == {"ransomware": ["tag:evtx"]}


def test_missing_explicit_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path, explicit=tmp_path / "absent.toml")


@pytest.mark.parametrize(
    "body",
    [
        "[acquisition]\nretries = 0\n",
        "[scan]\nunknown_key = 1\n",
        "[acquisition\n",
    ],
)
def test_invalid_configuration_is_rejected(tmp_path: Path, body: str) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError):
        _loader(tmp_path).load()


def test_cache_dir_follows_xdg_cache_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))
    assert default_cache_dir() == tmp_path / "xdg" / "artifact-bundler"
