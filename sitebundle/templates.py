"""Mini-template rendering for bundle filenames, URLs and banners."""

from __future__ import annotations

from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from .errors import SiteBundleError
from .utils import normalize_path_separators, urlify


class TemplateRenderError(SiteBundleError):
    """Raised when a filename or URL template cannot be rendered."""


def _create_env() -> Environment:
    env = Environment(
        variable_start_string="${",
        variable_end_string="}",
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.filters["urlify"] = urlify
    return env


_ENV = _create_env()


def render_template(template: str, **variables: Any) -> str:
    """Render a `${...}` template such as `${site.name|urlify}/${group}.js`."""
    try:
        return _ENV.from_string(template).render(**variables)
    except TemplateError as exc:
        raise TemplateRenderError(f"Failed to render template <{template}>: {exc}") from exc


def render_path(template: str, **variables: Any) -> str:
    """Render a template and normalise it into a forward-slash path."""
    return normalize_path_separators(render_template(template, **variables))


__all__ = ["TemplateRenderError", "render_path", "render_template"]
