"""Stage contract, record streams and pipeline composition."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from ..config import BuildConfiguration
from ..errors import StageStateError
from ..models import OutputFile

Params = Mapping[str, Any]


@dataclass(frozen=True)
class _EndOfStream:
    error: Optional[BaseException] = None


class FileStream:
    """FIFO stream of records; ends exactly once, either cleanly or with an error."""

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Union[OutputFile, _EndOfStream]]" = asyncio.Queue()
        self._closed = False
        self._finished = False
        self._driver: Optional["asyncio.Task[None]"] = None

    @classmethod
    def of(cls, records: Iterable[OutputFile]) -> "FileStream":
        """Return an already-ended stream holding `records`."""
        stream = cls()
        for record in records:
            stream.write(record)
        stream.end()
        return stream

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, record: OutputFile) -> None:
        if self._closed:
            raise StageStateError("Cannot write to a stream that already ended")
        self._queue.put_nowait(record)

    def end(self) -> None:
        if self._closed:
            raise StageStateError("Stream already ended")
        self._closed = True
        self._queue.put_nowait(_EndOfStream())

    def fail(self, error: BaseException) -> None:
        if self._closed:
            raise StageStateError("Stream already ended")
        self._closed = True
        self._queue.put_nowait(_EndOfStream(error))

    def __aiter__(self) -> "FileStream":
        return self

    async def __anext__(self) -> OutputFile:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _EndOfStream):
            self._finished = True
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item

    async def collect(self) -> List[OutputFile]:
        """Drain the stream, returning every record or raising its failure."""
        return [record async for record in self]

    def cancel(self) -> None:
        """Stop the task producing into this stream if it is still running."""
        if self._driver is not None and not self._driver.done():
            self._driver.cancel()

    def _attach(self, task: "asyncio.Task[None]") -> None:
        self._driver = task


class StageState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StageLifecycle:
    """Tracks `idle -> running -> completed | failed` for a single-use stage."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = StageState.IDLE

    def start(self) -> None:
        if self.state is not StageState.IDLE:
            raise StageStateError(f"Stage <{self.name}> was already used ({self.state.value})")
        self.state = StageState.RUNNING

    def complete(self) -> None:
        self.state = StageState.COMPLETED

    def fail(self) -> None:
        self.state = StageState.FAILED


@runtime_checkable
class Stage(Protocol):
    """A pipeline unit: consumes an optional stream and returns its output stream."""

    def process(
        self, stream: Optional[FileStream], build: BuildConfiguration, params: Params
    ) -> FileStream:
        ...


Producer = Callable[[FileStream], Awaitable[None]]
Handler = Callable[[OutputFile], Awaitable[Iterable[OutputFile]]]


def source(
    lifecycle: StageLifecycle, produce: Producer, *, logger: logging.Logger | None = None
) -> FileStream:
    """Start a self-driving source stage that writes into the returned stream."""
    lifecycle.start()
    output = FileStream()

    async def _drive() -> None:
        try:
            await produce(output)
        except asyncio.CancelledError as exc:
            lifecycle.fail()
            output.fail(exc)
            raise
        except Exception as exc:
            lifecycle.fail()
            if logger is not None:
                logger.error("Stage <%s> failed: %s", lifecycle.name, exc)
            output.fail(exc)
            return
        lifecycle.complete()
        output.end()

    output._attach(asyncio.get_running_loop().create_task(_drive()))
    return output


def transform(
    lifecycle: StageLifecycle,
    stream: FileStream,
    handle: Handler,
    *,
    finish: Optional[Callable[[], Awaitable[Iterable[OutputFile]]]] = None,
    logger: logging.Logger | None = None,
) -> FileStream:
    """Start a transform stage emitting zero or more records per input record, in order."""

    async def _produce(output: FileStream) -> None:
        try:
            async for record in stream:
                for produced in await handle(record):
                    output.write(produced)
        except (Exception, asyncio.CancelledError):
            # Nothing reads the input once this stage fails.
            stream.cancel()
            raise
        if finish is not None:
            for produced in await finish():
                output.write(produced)

    return source(lifecycle, _produce, logger=logger)


async def passthrough(record: OutputFile) -> List[OutputFile]:
    return [record]


class Pipeline:
    """An ordered chain of stages; itself usable as a stage."""

    def __init__(self, *stages: Stage) -> None:
        if not stages:
            raise ValueError("A pipeline needs at least one stage")
        self.stages = tuple(stages)

    def pipe(self, stage: Stage) -> "Pipeline":
        """Return a new pipeline feeding this pipeline's output into `stage`."""
        if isinstance(stage, Pipeline):
            return Pipeline(*self.stages, *stage.stages)
        return Pipeline(*self.stages, stage)

    def process(
        self, stream: Optional[FileStream], build: BuildConfiguration, params: Params
    ) -> FileStream:
        for stage in self.stages:
            stream = stage.process(stream, build, params)
        assert stream is not None
        return stream

    async def run(
        self, build: BuildConfiguration | None = None, params: Params | None = None
    ) -> List[OutputFile]:
        """Drive the chain from its head and resolve once the tail stream ends."""
        stream = self.process(None, build or BuildConfiguration(), dict(params or {}))
        return await stream.collect()


def pipe(first: Stage, *rest: Stage) -> Pipeline:
    pipeline = first if isinstance(first, Pipeline) else Pipeline(first)
    for stage in rest:
        pipeline = pipeline.pipe(stage)
    return pipeline


__all__ = [
    "FileStream",
    "Params",
    "Pipeline",
    "Stage",
    "StageLifecycle",
    "StageState",
    "passthrough",
    "pipe",
    "source",
    "transform",
]
