"""Watch mode: serialized incremental precompiles driven by file invalidations."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Protocol

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .catalog import Catalog
from .errors import SiteBundleError
from .logging import get_logger
from .models import Entity, Invalidation

EntityRunner = Callable[[Entity], Awaitable[object]]
FullRunner = Callable[[], Awaitable[object]]


class InvalidationSource(Protocol):
    def __aiter__(self) -> AsyncIterator[Invalidation]:
        ...


class WatchLoop:
    """Re-runs the precompile for each updated entity, one run at a time.

    Runs are awaited one after another, both across the entities of a single
    invalidation and across invalidations; the bundler and transpiler adapters
    must never see overlapping invocations. Failed runs are logged and the loop
    keeps listening.
    """

    def __init__(
        self,
        source: InvalidationSource,
        run_entity: EntityRunner,
        *,
        run_all: FullRunner | None = None,
        extension: str = ".js",
        logger: logging.Logger | None = None,
    ) -> None:
        self.source = source
        self.run_entity = run_entity
        self.run_all = run_all
        self.extension = extension.lower()
        self.logger = logger or get_logger("watch")
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Run one full precompile, then handle invalidations until the source ends."""
        if self.run_all is not None:
            async with self._lock:
                await self._guarded(self.run_all(), "initial precompile")
        async for invalidation in self.source:
            await self.handle(invalidation)

    async def handle(self, invalidation: Invalidation) -> int:
        """Process one invalidation; returns the number of entity runs triggered."""
        extensions = {extension.lower() for extension in invalidation.extensions}
        if self.extension not in extensions or not invalidation.updated:
            return 0
        runs = 0
        async with self._lock:
            for entity in invalidation.updated:
                self.logger.info("Detected update in <%s>", entity.path_string)
                await self._guarded(self.run_entity(entity), entity.path_string)
                runs += 1
        return runs

    async def _guarded(self, run: Awaitable[object], label: str) -> None:
        try:
            await run
        except Exception as exc:
            self.logger.error("Rebuild of <%s> failed: %s", label, exc)


_WRITE_EVENTS = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}
)


class _InvalidationHandler(FileSystemEventHandler):
    def __init__(self, notify: Callable[[str], None]) -> None:
        self.notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        # Reads emit opened/closed events; only writes invalidate.
        if event.is_directory or event.event_type not in _WRITE_EVENTS:
            return
        self.notify(os.fsdecode(event.src_path))
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            self.notify(os.fsdecode(dest_path))


class WatchdogInvalidationSource:
    """Watches the sources tree and reports the entities whose files changed.

    Events arrive on the observer thread and are handed to the event loop with
    `call_soon_threadsafe`. Paths seen within `debounce` seconds of the first
    event form one batch; each batch triggers a rescan so that added and
    removed files are picked up before entities are matched.
    """

    def __init__(
        self,
        scan: Callable[[], Catalog],
        root: Path | str,
        *,
        debounce: float = 0.2,
        observer_factory: Callable[[], BaseObserver] = Observer,
        logger: logging.Logger | None = None,
    ) -> None:
        self._scan = scan
        self.root = Path(root)
        self.debounce = debounce
        self._observer_factory = observer_factory
        self.logger = logger or get_logger("watch.observer")
        self.catalog: Optional[Catalog] = None
        self.started = asyncio.Event()

    def __aiter__(self) -> AsyncIterator[Invalidation]:
        return self._watch()

    async def _watch(self) -> AsyncIterator[Invalidation]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[str] = asyncio.Queue()

        def notify(path: str) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(queue.put_nowait, path)

        self.catalog = self._scan()
        observer = self._observer_factory()
        observer.schedule(_InvalidationHandler(notify), str(self.root), recursive=True)
        observer.start()
        self.logger.debug("Watching %s", self.root)
        self.started.set()
        try:
            while True:
                changed = {await queue.get()}
                await asyncio.sleep(self.debounce)
                while not queue.empty():
                    changed.add(queue.get_nowait())
                try:
                    self.catalog = self._scan()
                except (SiteBundleError, OSError) as exc:
                    self.logger.error("Rescan after change failed: %s", exc)
                    continue
                paths = sorted(changed)
                self.logger.debug("Detected %d changed files", len(paths))
                yield Invalidation(
                    updated=entities_touching(self.catalog, paths),
                    extensions=frozenset(Path(path).suffix.lower() for path in paths),
                )
        finally:
            observer.stop()
            observer.join()
            self.started.clear()


def entities_touching(catalog: Catalog, paths: Iterable[str]) -> List[Entity]:
    """Entities owning one of `paths`, or a directory one of them lives in."""
    wanted = {Path(path).resolve() for path in paths}
    wanted_dirs = {path.parent for path in wanted}
    updated: List[Entity] = []
    for entity in catalog.entities:
        files = {file.path.resolve() for file in entity.files}
        if files & wanted or {path.parent for path in files} & wanted_dirs:
            updated.append(entity)
    return updated


__all__ = [
    "InvalidationSource",
    "WatchLoop",
    "WatchdogInvalidationSource",
    "entities_touching",
]
