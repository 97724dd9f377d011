"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitebundle.config import BuildConfiguration, ConfigError, default_config, load_config


def test_load_config_defaults_when_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SITEBUNDLE_ENVIRONMENT", raising=False)
    config = load_config(tmp_path)
    root = tmp_path.resolve()

    assert config.paths.sources == root / "sites"
    assert config.paths.packages == root / "jspm_packages"
    assert config.config_file == root / "jspm.js"
    assert config.default_group == "common"
    assert config.group_property == "groups.js"
    assert config.build.environment == "development"
    assert config.precompile_path == root / ".sitebundle" / "jspm" / "precompiled"
    assert config.bundle_path == root / ".sitebundle" / "jspm" / "bundles"


def test_load_config_reads_yaml_sections(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SITEBUNDLE_ENVIRONMENT", raising=False)
    (tmp_path / ".sitebundle.yml").write_text(
        """
paths:
  sources: src/sites
  packages: ${root}/vendor
  cache: build
loader:
  config_filename: config.js
  default_group: shared
  precompile_path: ${cache}/pre
build:
  environment: production
  settings:
    js:
      banner: Built ${date}
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path / ".sitebundle.yml")
    root = tmp_path.resolve()

    assert config.paths.sources == root / "src" / "sites"
    assert config.paths.packages == root / "vendor"
    assert config.config_file == root / "config.js"
    assert config.default_group == "shared"
    assert config.precompile_path == root / "build" / "pre"
    assert config.build.environment == "production"
    assert config.build.get("js.banner") == "Built ${date}"


def test_environment_variable_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".sitebundle.yml").write_text("build:\n  environment: production\n", encoding="utf-8")
    monkeypatch.setenv("SITEBUNDLE_ENVIRONMENT", "staging")

    assert load_config(tmp_path).build.environment == "staging"
    assert load_config(tmp_path, environment="local").build.environment == "local"


def test_build_settings_override_loader_defaults(tmp_path: Path) -> None:
    config = default_config(tmp_path)
    config.build = BuildConfiguration(
        settings={"jspm.defaultGroup": "base", "js": {"bundlePath": "${root}/public/js"}}
    )

    assert config.default_group == "base"
    assert config.bundle_path == tmp_path.resolve() / "public" / "js"


def test_build_configuration_get_falls_back_to_default() -> None:
    build = BuildConfiguration(settings={"js": {"precompile": True}})

    assert build.get("js.precompile") is True
    assert build.get("js.bundle", False) is False
    assert build.get("filters.jsUrl") is None


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / ".sitebundle.yml").write_text("paths: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_non_mapping_root_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / ".sitebundle.yml").write_text("- one\n- two\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_unknown_path_placeholder_raises_config_error(tmp_path: Path) -> None:
    (tmp_path / ".sitebundle.yml").write_text("paths:\n  sources: ${nowhere}/sites\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)
