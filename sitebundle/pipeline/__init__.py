"""Stage contract, pipeline composition and generic stages."""

from .decorate import DecorateStage, banner_comment
from .sinks import WriteFilesStage
from .stage import (
    FileStream,
    Pipeline,
    Stage,
    StageLifecycle,
    StageState,
    passthrough,
    pipe,
    source,
    transform,
)

__all__ = [
    "DecorateStage",
    "FileStream",
    "Pipeline",
    "Stage",
    "StageLifecycle",
    "StageState",
    "WriteFilesStage",
    "banner_comment",
    "passthrough",
    "pipe",
    "source",
    "transform",
]
