"""Explicit parsing of the module-loader configuration source."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import ConfigurationReadError

_CONFIG_CALL = re.compile(r"\bSystem\.config\s*\(")


@dataclass
class LoaderConfiguration:
    """Structured value of one or more `System.config({...})` calls."""

    values: Dict[str, Any] = field(default_factory=dict)

    @property
    def paths(self) -> Dict[str, str]:
        paths = self.values.get("paths")
        return dict(paths) if isinstance(paths, dict) else {}

    @property
    def map(self) -> Dict[str, Any]:
        mapping = self.values.get("map")
        return dict(mapping) if isinstance(mapping, dict) else {}

    def with_paths(self, extra: Dict[str, str]) -> "LoaderConfiguration":
        """Return a copy whose `paths` table is extended by `extra`."""
        values = dict(self.values)
        paths = self.paths
        paths.update(extra)
        values["paths"] = paths
        return LoaderConfiguration(values=values)


def read_loader_config(path: Path) -> LoaderConfiguration:
    """Read and parse the loader configuration file at `path`."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationReadError(f"Failed to read loader configuration {path}: {exc}") from exc
    return parse_loader_config(text, source=str(path))


def parse_loader_config(text: str, *, source: str = "<string>") -> LoaderConfiguration:
    """Parse every `System.config(...)` object literal in `text` and merge them in order."""
    cleaned = _normalize(text)
    literals = _extract_literals(cleaned, source)
    if not literals:
        raise ConfigurationReadError(f"No System.config(...) call found in {source}")

    merged: Dict[str, Any] = {}
    for literal in literals:
        try:
            value = yaml.safe_load(literal)
        except yaml.YAMLError as exc:
            raise ConfigurationReadError(f"Failed to parse loader configuration in {source}: {exc}") from exc
        if not isinstance(value, dict):
            raise ConfigurationReadError(f"System.config(...) in {source} must receive an object")
        for key, item in value.items():
            if isinstance(item, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **item}
            else:
                merged[key] = item
    return LoaderConfiguration(values=merged)


def _normalize(text: str) -> str:
    # Drops comments and spaces out `key:value` so the literal reads as a YAML
    # flow mapping; string literals (e.g. "jspm_packages/*") are left untouched.
    output: List[str] = []
    quote: str | None = None
    index = 0
    while index < len(text):
        char = text[index]
        pair = text[index : index + 2]
        if quote:
            output.append(char)
            if char == "\\" and index + 1 < len(text):
                output.append(text[index + 1])
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in {'"', "'"}:
            quote = char
            output.append(char)
        elif pair == "//":
            end = text.find("\n", index)
            index = len(text) if end == -1 else end
            continue
        elif pair == "/*":
            end = text.find("*/", index + 2)
            index = len(text) if end == -1 else end + 2
            continue
        elif char == ":":
            output.append(": ")
        else:
            output.append(char)
        index += 1
    return "".join(output)


def _extract_literals(text: str, source: str) -> List[str]:
    literals: List[str] = []
    for match in _CONFIG_CALL.finditer(text):
        start = text.find("{", match.end())
        if start == -1:
            raise ConfigurationReadError(f"System.config(...) in {source} has no object argument")
        literals.append(_balanced(text, start, source))
    return literals


def _balanced(text: str, start: int, source: str) -> str:
    depth = 0
    quote: str | None = None
    index = start
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in {'"', "'"}:
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
        index += 1
    raise ConfigurationReadError(f"Unbalanced System.config(...) object in {source}")


__all__ = [
    "LoaderConfiguration",
    "parse_loader_config",
    "read_loader_config",
]
