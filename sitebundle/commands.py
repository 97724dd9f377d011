"""High-level bundle, precompile and watch flows."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from . import assets
from .bundler import Bundler
from .catalog import WILDCARD, Catalog, CatalogScanner
from .config import SiteBundleConfig
from .git import GitInfo
from .logging import get_logger
from .models import Entity, OutputFile, Site
from .pipeline import DecorateStage, Pipeline, WriteFilesStage, banner_comment
from .stages import BundleCompileStage, PrecompileStage
from .transpiler import CommandTranspiler, Transpiler
from .watch import InvalidationSource, WatchdogInvalidationSource, WatchLoop


class Commands:
    """Entry points behind the `bundle`, `precompile` and `watch` commands."""

    def __init__(
        self,
        config: SiteBundleConfig,
        *,
        catalog: Catalog | None = None,
        scanner: CatalogScanner | None = None,
        bundler: Bundler | None = None,
        transpiler: Transpiler | None = None,
        git: GitInfo | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.scanner = scanner or CatalogScanner()
        self.bundler = bundler
        self.transpiler = transpiler or CommandTranspiler()
        self.git = git or GitInfo()
        self.logger = logger or get_logger("commands")
        self._catalog = catalog

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = self.scan()
        return self._catalog

    def scan(self) -> Catalog:
        return self.scanner.scan(self.config.paths.sources)

    async def bundle(
        self, query: str = WILDCARD, destination: Path | str | None = None
    ) -> List[OutputFile]:
        """Bundle every site matched by `query` and write the bundles to disk."""
        build = self.config.build
        write_path = self.config.resolve(destination) if destination else self.config.bundle_path
        self.logger.info("Bundling <%s> into %s", query, write_path)
        pipeline = (
            Pipeline(BundleCompileStage(self.catalog, self.config, bundler=self.bundler))
            .pipe(DecorateStage())
            .pipe(WriteFilesStage(write_path))
        )
        params: Dict[str, Any] = {
            "query": query,
            "decoratePrepend": banner_comment(build.get("js.banner")),
            "decorateVariables": self.banner_variables(),
        }
        return await pipeline.run(build, params)

    async def precompile(
        self, query: str = WILDCARD, *, entities: Optional[Iterable[Entity]] = None
    ) -> List[OutputFile]:
        """Transpile the JS files of the matched entities into the precompile path."""
        pipeline = Pipeline(
            PrecompileStage(self.catalog, self.config, self.transpiler, entities=entities)
        ).pipe(WriteFilesStage(self.config.precompile_path))
        return await pipeline.run(self.config.build, {"query": query})

    async def precompile_entity(self, entity: Entity) -> List[OutputFile]:
        return await self.precompile(entity.path_string, entities=[entity])

    async def watch(
        self,
        query: str = WILDCARD,
        *,
        source: InvalidationSource | None = None,
        debounce: float = 0.2,
    ) -> None:
        """Precompile everything once, then re-precompile entities as they change."""
        if source is None:
            source = WatchdogInvalidationSource(
                self._rescan, self.config.paths.sources, debounce=debounce
            )

        async def _run_all() -> List[OutputFile]:
            return await self.precompile(query)

        loop = WatchLoop(source, self.precompile_entity, run_all=_run_all, logger=self.logger)
        await loop.start()

    def js_url(self, value: Any, *, site: Site | None = None, group: str | None = None) -> str:
        """URL a page loads `value` from under the current build configuration."""
        return assets.js_url(value, self.config, site=site, group=group)

    def lookup_roots(self) -> List[assets.LookupRoot]:
        """Static roots a server should search for `.js`/`.json` requests, in order."""
        return assets.lookup_roots(self.config)

    def banner_variables(self) -> Dict[str, str]:
        variables = {"date": datetime.now(UTC).isoformat(timespec="seconds")}
        variables.update(self.git.variables(self.config.root))
        return variables

    def _rescan(self) -> Catalog:
        self._catalog = self.scan()
        return self._catalog


__all__ = ["Commands"]
