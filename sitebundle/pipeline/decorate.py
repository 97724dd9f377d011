"""Banner decoration for built files."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..config import BuildConfiguration
from ..logging import get_logger
from ..models import OutputFile
from ..templates import render_template
from .stage import FileStream, Params, StageLifecycle, passthrough, transform


def banner_comment(banner: Any) -> str | None:
    """Wrap a configured `js.banner` value into a block comment."""
    if not banner:
        return None
    return f"/** {banner} **/"


class DecorateStage:
    """Prepends a rendered banner to every record.

    The banner template comes from the `decoratePrepend` parameter and may use
    `${...}` placeholders filled from `decorateVariables` (e.g. `${gitHash}`).
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_logger("pipeline.decorate")
        self.lifecycle = StageLifecycle("DecorateStage")

    def process(
        self, stream: Optional[FileStream], build: BuildConfiguration, params: Params
    ) -> FileStream:
        if stream is None:
            raise ValueError("DecorateStage needs an input stream")

        prepend = params.get("decoratePrepend")
        if not prepend:
            return transform(self.lifecycle, stream, passthrough)

        variables: Dict[str, Any] = dict(_as_mapping(params.get("decorateVariables")))
        banner = render_template(str(prepend), **variables)

        async def _decorate(record: OutputFile) -> List[OutputFile]:
            self.logger.debug("Decorating %s", record.path)
            contents = banner.encode("utf-8") + b"\n" + record.contents
            return [OutputFile(path=record.path, contents=contents)]

        return transform(self.lifecycle, stream, _decorate)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


__all__ = ["DecorateStage", "banner_comment"]
