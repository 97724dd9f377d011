"""URL helpers and static lookup roots for serving built JavaScript."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .config import BuildConfiguration, SiteBundleConfig, as_bool
from .models import Site
from .templates import render_template

RUNTIME = "runtime"
CONFIGURATION = "configuration"


@dataclass(frozen=True)
class LookupRoot:
    """A directory that answers requests matching `pattern` for the given extensions."""

    pattern: str
    directory: Path
    extensions: Tuple[str, ...]


def js_url(
    value: Any,
    config: SiteBundleConfig,
    build: BuildConfiguration | None = None,
    *,
    site: Optional[Site] = None,
    group: str | None = None,
) -> str:
    """Return the URL a page should use to load `value`.

    `"runtime"` and `"configuration"` map to the loader runtime and its config
    file. A `Site` (or `None`, meaning `site`) maps to the bundle URL of `group`.
    Any other string is treated as a plain link and returned unchanged.
    """
    build = build or config.build
    if isinstance(value, str):
        if value == RUNTIME:
            return config.loader.runtime_url
        if value == CONFIGURATION:
            return "/" + config.loader.config_filename
        return value

    target = value if isinstance(value, Site) else site
    if target is None:
        raise ValueError("A site is required to build a bundle url")
    path = render_template(
        config.bundle_url_template,
        site=target,
        group=group or config.default_group,
    )
    base_url = build.get("filters.jsUrl")
    if base_url:
        path = _join_url(str(base_url), path)
    return path


def lookup_roots(
    config: SiteBundleConfig, build: BuildConfiguration | None = None
) -> List[LookupRoot]:
    """Ordered static roots: packages, loader config, then the active js root."""
    build = build or config.build
    roots = [
        LookupRoot("/jspm_packages/*", config.paths.packages, (".js",)),
        LookupRoot("*", config.paths.config, (".js", ".json")),
    ]
    if as_bool(build.get("js.precompile", False)):
        roots.append(LookupRoot("*", config.precompile_path, (".js",)))
    elif as_bool(build.get("js.bundle", False)):
        roots.append(LookupRoot("*", config.bundle_path, (".js",)))
    else:
        roots.append(LookupRoot("*", config.paths.sources, (".js",)))
    return roots


def _join_url(base: str, path: str) -> str:
    return base.rstrip("/") + "/" + path.lstrip("/")


__all__ = ["CONFIGURATION", "LookupRoot", "RUNTIME", "js_url", "lookup_roots"]
