"""Terminal stages that persist pipeline records."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..config import BuildConfiguration
from ..logging import get_logger
from ..models import OutputFile
from .stage import FileStream, Params, StageLifecycle, source, transform


class WriteFilesStage:
    """Writes every received record below a destination directory.

    The destination comes from the constructor or the `writePath` parameter.
    Records are forwarded after they were written, so the tail of a pipeline
    ending in this stage resolves only once every write finished.
    """

    def __init__(
        self, destination: Path | str | None = None, *, logger: logging.Logger | None = None
    ) -> None:
        self.destination = Path(destination) if destination is not None else None
        self.logger = logger or get_logger("pipeline.write")
        self.lifecycle = StageLifecycle("WriteFilesStage")
        self.written: List[Path] = []

    def process(
        self, stream: Optional[FileStream], build: BuildConfiguration, params: Params
    ) -> FileStream:
        destination = self._resolve_destination(params)

        async def _write(record: OutputFile) -> List[OutputFile]:
            target = destination / record.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(record.contents)
            self.written.append(target)
            self.logger.info("Wrote %s <%.1fkb>", record.path, len(record.contents) / 1024)
            return [record]

        if stream is None:

            async def _nothing(output: FileStream) -> None:
                self.logger.debug("No input stream given; nothing to write")

            return source(self.lifecycle, _nothing, logger=self.logger)
        return transform(self.lifecycle, stream, _write)

    def _resolve_destination(self, params: Params) -> Path:
        write_path = params.get("writePath")
        if write_path:
            return Path(write_path)
        if self.destination is None:
            raise ValueError("WriteFilesStage needs a destination or a writePath parameter")
        return self.destination


__all__ = ["WriteFilesStage"]
