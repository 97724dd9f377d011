"""Shared helpers for module ids, slugs and environment activation."""

from __future__ import annotations

import re
from pathlib import Path

_ENVIRONMENT_BLOCK = re.compile(
    r"/\*\s*\+environment\s*:\s*(?P<name>[\w.-]+)\s*\*/(?P<body>.*?)/\*\s*-environment\s*\*/",
    re.DOTALL | re.IGNORECASE,
)


def urlify(value: object) -> str:
    """Return a lowercase, url-safe slug for `value`."""
    slug = str(value).strip().lower()
    slug = re.sub(r"[^a-z0-9_\-.]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def normalize_path_separators(value: str) -> str:
    return value.replace("\\", "/")


def module_id(path: Path | str, sources_root: Path | str) -> str:
    """Derive the sources-relative ModuleId for a file path."""
    path_str = normalize_path_separators(str(path))
    root_str = normalize_path_separators(str(sources_root)).rstrip("/")
    if path_str.startswith(root_str + "/"):
        return path_str[len(root_str) + 1 :]
    return path_str.lstrip("/")


def activate_environment(source: str, environment: str | None) -> str:
    """Keep `+environment` blocks of the active environment and drop all others."""

    def _replace(match: "re.Match[str]") -> str:
        if environment and match.group("name").lower() == environment.lower():
            return match.group("body")
        return ""

    return _ENVIRONMENT_BLOCK.sub(_replace, source)


def shorten(path: Path | str, limit: int = 80) -> str:
    """Shorten a path for log output, keeping its tail."""
    text = normalize_path_separators(str(path))
    if len(text) <= limit:
        return text
    return "..." + text[-(limit - 3) :]


__all__ = [
    "activate_environment",
    "module_id",
    "normalize_path_separators",
    "shorten",
    "urlify",
]
