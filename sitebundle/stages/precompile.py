"""Precompiles entity sources file by file through a transpiler."""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, Optional

from ..catalog import WILDCARD, Catalog, FilePredicate, is_js
from ..config import BuildConfiguration, SiteBundleConfig
from ..errors import TranspileError
from ..logging import get_logger
from ..models import Entity, OutputFile
from ..pipeline.stage import FileStream, Params, StageLifecycle, source
from ..transpiler import PRECOMPILE_OPTIONS, Transpiler
from ..utils import activate_environment, module_id


class PrecompileStage:
    """Source stage emitting one transpiled file per JS source of the selected entities.

    A file that cannot be read or fails to transpile is logged and dropped; its
    siblings and the remaining entities are still processed. A query starting
    with a site name only compiles files from that site's lineage.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: SiteBundleConfig,
        transpiler: Transpiler,
        *,
        entities: Optional[Iterable[Entity]] = None,
        predicate: FilePredicate = is_js,
        logger: logging.Logger | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config
        self.transpiler = transpiler
        self.entities = list(entities) if entities is not None else None
        self.predicate = predicate
        self.logger = logger or get_logger("stages.precompile")
        self.lifecycle = StageLifecycle("PrecompileStage")

    def process(
        self, stream: Optional[FileStream], build: BuildConfiguration, params: Params
    ) -> FileStream:
        query = str(params.get("query") or WILDCARD)

        async def _produce(output: FileStream) -> None:
            if stream is not None:
                async for record in stream:
                    output.write(record)
            self.logger.info("Precompiling js files")
            sites = self._site_scope(query)
            for entity in self._select(query):
                for file in await self.process_entity(entity, build, sites=sites):
                    output.write(file)

        return source(self.lifecycle, _produce, logger=self.logger)

    async def process_entities(
        self, build: BuildConfiguration | None = None, query: str = WILDCARD
    ) -> List[OutputFile]:
        """Precompile every entity matched by `query`, in catalog order."""
        entities = self._select(query)
        sites = self._site_scope(query)
        result: List[OutputFile] = []
        for entity in entities:
            result.extend(await self.process_entity(entity, build, sites=sites))
        return result

    async def process_entity(
        self,
        entity: Entity,
        build: BuildConfiguration | None = None,
        *,
        sites: AbstractSet[str] | None = None,
    ) -> List[OutputFile]:
        """Transpile the entity's JS files; failing files are skipped."""
        result: List[OutputFile] = []
        for file in entity.files:
            if not self.predicate(file) or (sites is not None and file.site not in sites):
                continue
            filename = module_id(file.path, self.config.paths.sources)
            self.logger.debug("Transpiling <%s>", filename)
            try:
                source_text = file.read_text()
                if build is not None:
                    source_text = activate_environment(source_text, build.environment)
                contents = await self.transpiler.transform(source_text, PRECOMPILE_OPTIONS)
            except (TranspileError, OSError, UnicodeDecodeError) as exc:
                self.logger.warning("Failed transforming js file <%s>: %s", filename, exc)
                continue
            result.append(OutputFile.from_text(filename, contents))
        return result

    def _select(self, query: str) -> List[Entity]:
        if self.entities is not None:
            return list(self.entities)
        return self.catalog.find_entities(query)

    def _site_scope(self, query: str) -> AbstractSet[str] | None:
        if self.entities is not None:
            return None
        site = self.catalog.query_site(query)
        if site is None:
            return None
        return {ancestor.name for ancestor in site.lineage()}


__all__ = ["PrecompileStage"]
