"""Configuration loading for sitebundle (.sitebundle.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import SiteBundleError

CONFIG_FILENAME = ".sitebundle.yml"
ENVIRONMENT_VARIABLE = "SITEBUNDLE_ENVIRONMENT"

DEFAULT_BUNDLE_TEMPLATE = "${site.name|urlify}/${group|urlify}.js"
DEFAULT_BUNDLE_URL_TEMPLATE = "/${site.name|urlify}/${group|urlify}.js"

_MISSING = object()


class ConfigError(SiteBundleError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class PathsConfig:
    """Resolved filesystem locations used by the pipelines."""

    root: Path
    sources: Path
    packages: Path
    config: Path
    cache: Path


@dataclass
class LoaderConfig:
    """Module-loader settings from the `loader` section."""

    config_filename: str = "jspm.js"
    default_group: str = "common"
    group_property: str = "groups.js"
    runtime_url: str = "/jspm_packages/system.js"
    polyfill_file: str = "system-polyfills.js"
    runtime_file: str = "system.src.js"
    precompile_path: str = "${cache}/jspm/precompiled"
    bundle_path: str = "${cache}/jspm/bundles"
    bundle_template: str = DEFAULT_BUNDLE_TEMPLATE
    bundle_url_template: str = DEFAULT_BUNDLE_URL_TEMPLATE


@dataclass(frozen=True)
class BuildConfiguration:
    """Read-only build environment and its dotted key/value settings."""

    environment: str = "development"
    settings: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up `key` either as a flat dotted key or as a nested path."""
        if key in self.settings:
            return self.settings[key]
        value = lookup_path(self.settings, key, _MISSING)
        return default if value is _MISSING else value


@dataclass
class SiteBundleConfig:
    """Represents the settings defined in .sitebundle.yml."""

    paths: PathsConfig
    loader: LoaderConfig = field(default_factory=LoaderConfig)
    build: BuildConfiguration = field(default_factory=BuildConfiguration)

    @property
    def root(self) -> Path:
        return self.paths.root

    @property
    def config_file(self) -> Path:
        """Full path to the module-loader configuration source."""
        return self.paths.config / self.loader.config_filename

    @property
    def polyfill_path(self) -> Path:
        return self.paths.packages / self.loader.polyfill_file

    @property
    def runtime_path(self) -> Path:
        return self.paths.packages / self.loader.runtime_file

    @property
    def default_group(self) -> str:
        return str(self.build.get("jspm.defaultGroup", self.loader.default_group))

    @property
    def group_property(self) -> str:
        return self.loader.group_property

    @property
    def precompile_path(self) -> Path:
        return self.resolve(self.loader.precompile_path)

    @property
    def bundle_path(self) -> Path:
        return self.resolve(str(self.build.get("js.bundlePath", self.loader.bundle_path)))

    @property
    def bundle_template(self) -> str:
        return str(self.build.get("js.bundleTemplate", self.loader.bundle_template))

    @property
    def bundle_url_template(self) -> str:
        return str(self.build.get("js.bundleUrlTemplate", self.loader.bundle_url_template))

    def resolve(self, value: str | Path) -> Path:
        """Resolve a configured path, expanding `${root}`-style placeholders."""
        placeholders = {
            "root": self.paths.root,
            "sources": self.paths.sources,
            "packages": self.paths.packages,
            "cache": self.paths.cache,
        }
        return _resolve_path(str(value), self.paths.root, placeholders)


def default_config(root: Path) -> SiteBundleConfig:
    """Return the configuration used when no .sitebundle.yml exists."""
    root = root.resolve()
    return SiteBundleConfig(paths=_build_paths(root, {}))


def load_config(config_path: Path, *, environment: str | None = None) -> SiteBundleConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    paths = _build_paths(root, _as_dict(data.get("paths")))

    loader = LoaderConfig()
    loader_data = _as_dict(data.get("loader"))
    for name in loader.__dataclass_fields__:
        value = _as_str(loader_data.get(name))
        if value is not None:
            setattr(loader, name, value)

    build_data = _as_dict(data.get("build"))
    env_name = (
        environment
        or os.environ.get(ENVIRONMENT_VARIABLE)
        or _as_str(build_data.get("environment"))
        or "development"
    )
    build = BuildConfiguration(
        environment=env_name,
        settings=_as_dict(build_data.get("settings")),
    )

    return SiteBundleConfig(paths=paths, loader=loader, build=build)


def lookup_path(data: Any, path: str, default: Any = None) -> Any:
    """Return the value at a dotted `path` inside nested mappings."""
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def _build_paths(root: Path, data: Dict[str, Any]) -> PathsConfig:
    placeholders: Dict[str, Path] = {"root": root}
    sources = _resolve_path(_as_str(data.get("sources")) or "sites", root, placeholders)
    placeholders["sources"] = sources
    packages = _resolve_path(_as_str(data.get("packages")) or "jspm_packages", root, placeholders)
    placeholders["packages"] = packages
    cache = _resolve_path(_as_str(data.get("cache")) or ".sitebundle", root, placeholders)
    placeholders["cache"] = cache
    config_dir = _resolve_path(_as_str(data.get("config")) or "${root}", root, placeholders)
    return PathsConfig(root=root, sources=sources, packages=packages, config=config_dir, cache=cache)


def _resolve_path(value: str, root: Path, placeholders: Mapping[str, Path]) -> Path:
    for key, replacement in placeholders.items():
        value = value.replace("${" + key + "}", str(replacement))
    if "${" in value:
        raise ConfigError(f"Unknown placeholder in path <{value}>")
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None
