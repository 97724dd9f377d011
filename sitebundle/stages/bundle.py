"""Compiles bundle manifests into output files through a bundler."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from ..bundler import Bundler, BundleOptions, ConcatBundler
from ..catalog import WILDCARD, Catalog
from ..config import BuildConfiguration, SiteBundleConfig
from ..errors import BundleCompileError
from ..loader_config import LoaderConfiguration, read_loader_config
from ..logging import get_logger
from ..manifests import BundleManifestGenerator, ManifestMap
from ..models import OutputFile
from ..pipeline.stage import FileStream, Params, StageLifecycle, passthrough, source, transform
from ..utils import normalize_path_separators, shorten, urlify

_PACKAGE_PREFIXES = ("github", "npm", "bower")


@dataclass
class BundleSession:
    """Bundler configuration owned by exactly one compile call."""

    loader: LoaderConfiguration
    options: BundleOptions
    fetched: Set[str] = field(default_factory=set)


class BundleCompileStage:
    """Source stage producing one bundle file per manifest of every matched site."""

    def __init__(
        self,
        catalog: Catalog,
        config: SiteBundleConfig,
        *,
        bundler: Bundler | None = None,
        generator: BundleManifestGenerator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config
        self.bundler = bundler or ConcatBundler()
        self.logger = logger or get_logger("stages.bundle")
        self.generator = generator or BundleManifestGenerator(catalog, config, logger=self.logger)
        self.lifecycle = StageLifecycle("BundleCompileStage")

    @property
    def default_group(self) -> str:
        return self.config.default_group

    def process(
        self, stream: Optional[FileStream], build: BuildConfiguration, params: Params
    ) -> FileStream:
        if stream is not None:
            return transform(self.lifecycle, stream, passthrough)

        query = str(params.get("query") or WILDCARD)
        template = params.get("filenameTemplate")

        async def _produce(output: FileStream) -> None:
            site_manifests = self.generator.generate_all(
                query, filename_template=str(template) if template else None
            )
            self.logger.info("Bundling js files")
            for manifests in site_manifests:
                for file in await self.compile(manifests, build):
                    output.write(file)

        return source(self.lifecycle, _produce, logger=self.logger)

    async def compile(
        self, manifests: ManifestMap, build: BuildConfiguration | None = None
    ) -> List[OutputFile]:
        """Compile a site's manifests strictly in order; the first failure aborts the batch."""
        session = self.create_session()
        result: List[OutputFile] = []
        for group, manifest in manifests.items():
            self.logger.info("Creating bundle <%s>", manifest.filename)
            expression = self.expression(group, manifest.include, manifest.exclude)
            try:
                bundled = await self.bundler.bundle(expression, session.options)
            except Exception as exc:
                self.logger.error("Bundling <%s> failed: %s", manifest.filename, exc)
                raise BundleCompileError(manifest.filename, exc) from exc

            chunks: List[str] = []
            for filename in manifest.prepend:
                chunks.append(Path(filename).read_text(encoding="utf-8"))
                self.logger.debug("Prepended %s", shorten(filename))
            chunks.append(bundled.source)
            result.append(OutputFile.from_text(manifest.filename, "".join(chunks)))
        return result

    def expression(self, group: str, include: Sequence[str], exclude: Sequence[str]) -> str:
        """Module arithmetic for a bundle: includes joined by `+`, excludes subtracted."""
        modules = " + ".join(include)
        if group != self.default_group and exclude:
            modules += " - " + " - ".join(exclude)
        return modules

    def create_session(self) -> BundleSession:
        """Read the loader configuration and derive this call's path mapping."""
        loader = read_loader_config(self.config.config_file).with_paths(self.path_mapping())
        session = BundleSession(
            loader=loader,
            options=BundleOptions(base_path=self.config.root, paths=loader.paths),
        )
        session.options.on_fetch = lambda module, path: self._log_fetch(session, module, path)
        return session

    def path_mapping(self) -> Dict[str, str]:
        packages = normalize_path_separators(str(self.config.paths.packages))
        mapping = {"jspm_packages/*": f"{packages}/*"}
        for prefix in _PACKAGE_PREFIXES:
            mapping[f"{prefix}:*"] = f"{packages}/{prefix}/*"
        sources = _relative_to(self.config.paths.sources, self.config.root)
        for site in self.catalog.sites:
            mapping[f"{site.name}/*"] = f"{sources}/{site.name}/*"
            mapping.setdefault(f"{urlify(site.name)}/*", f"{sources}/{site.name}/*")
        return mapping

    def _log_fetch(self, session: BundleSession, module: str, path: Path) -> None:
        key = str(path)
        if key in session.fetched:
            return
        session.fetched.add(key)
        size = path.stat().st_size / 1024 if path.exists() else 0.0
        self.logger.info("Added %s <%.1fkb>", shorten(path), size)


def _relative_to(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return normalize_path_separators(str(path))


__all__ = ["BundleCompileStage", "BundleSession"]
