"""Tests for loader configuration parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitebundle.errors import ConfigurationReadError
from sitebundle.loader_config import parse_loader_config, read_loader_config
from tests._fixtures.source_tree import LOADER_CONFIG


def test_parse_reads_object_literal_and_ignores_comments() -> None:
    config = parse_loader_config(LOADER_CONFIG)

    assert config.values["baseURL"] == "/"
    assert config.paths == {
        "github:*": "jspm_packages/github/*",
        "npm:*": "jspm_packages/npm/*",
    }


def test_parse_merges_multiple_calls_in_order() -> None:
    text = """
    System.config({
      defaultJSExtensions: true,
      map: {"jquery": "npm:jquery@3.1.0"}
    });
    /* generated below */
    System.config({map:{"lodash":'npm:lodash@4.17.4'}, baseURL: "/static"});
    """

    config = parse_loader_config(text)

    assert config.values["defaultJSExtensions"] is True
    assert config.values["baseURL"] == "/static"
    assert config.map == {"jquery": "npm:jquery@3.1.0", "lodash": "npm:lodash@4.17.4"}


def test_with_paths_extends_without_mutating() -> None:
    config = parse_loader_config(LOADER_CONFIG)

    extended = config.with_paths({"base/*": "sites/base/*"})

    assert extended.paths["base/*"] == "sites/base/*"
    assert extended.paths["npm:*"] == "jspm_packages/npm/*"
    assert "base/*" not in config.paths


def test_code_is_never_executed() -> None:
    text = 'System.config({ "baseURL": "/", "evil": "require(\'child_process\')" });'

    config = parse_loader_config(text)

    assert config.values["evil"] == "require('child_process')"


@pytest.mark.parametrize(
    "text",
    [
        "var config = {};",
        "System.config([1, 2]);",
        'System.config({ "baseURL": "/" ',
        "System.config(loadFromDisk());",
        "System.config({ paths: [unclosed });",
    ],
)
def test_invalid_sources_raise_configuration_read_error(text: str) -> None:
    with pytest.raises(ConfigurationReadError):
        parse_loader_config(text)


def test_read_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationReadError):
        read_loader_config(tmp_path / "jspm.js")
