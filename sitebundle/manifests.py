"""Bundle manifest generation: partitions a site's modules into named bundles."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

from .catalog import WILDCARD, Catalog, FilePredicate, is_js
from .config import SiteBundleConfig
from .logging import get_logger
from .models import BundleManifest, Entity, Site, SourceFile
from .templates import render_path
from .utils import module_id

ManifestMap = Dict[str, BundleManifest]


class BundleManifestGenerator:
    """Computes group -> BundleManifest mappings for catalog sites.

    Every group of a site becomes one manifest whose `include` holds the
    module ids tagged with that group and whose `exclude` holds every other
    module of the site, so bundles never duplicate each other's modules.
    The default group additionally prepends the loader bootstrap files.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: SiteBundleConfig,
        *,
        predicate: FilePredicate = is_js,
        logger: logging.Logger | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config
        self.predicate = predicate
        self.logger = logger or get_logger("manifests")

    @property
    def default_group(self) -> str:
        return self.config.default_group

    def generate_all(
        self, query: str = WILDCARD, *, filename_template: str | None = None
    ) -> List[ManifestMap]:
        """Return one manifest mapping per site matched by `query`, in catalog order."""
        self.logger.info("Generating bundle configuration for <%s>", query)
        sites = self.catalog.resolve_sites(query)
        return [self.generate(site, filename_template=filename_template) for site in sites]

    def generate(
        self,
        site: Site,
        *,
        entities: Optional[Iterable[Entity]] = None,
        filename_template: str | None = None,
    ) -> ManifestMap:
        """Return the group -> manifest mapping for `site` (optionally scoped to `entities`)."""
        template = filename_template or self.config.bundle_template
        grouped = self.catalog.files_by_site_grouped(
            site,
            self.predicate,
            self.config.group_property,
            self.default_group,
            entities=entities,
        )

        modules_by_group: "OrderedDict[str, List[str]]" = OrderedDict()
        for group, files in grouped.items():
            modules_by_group[group] = _unique(self._module_id(file) for file in files)
        all_modules = _unique(module for modules in modules_by_group.values() for module in modules)

        manifests: ManifestMap = OrderedDict()
        for group, include in modules_by_group.items():
            if not include:
                continue
            self.logger.debug("Generating bundle config for <%s> / <%s>", site.name, group)
            included = set(include)
            manifest = BundleManifest(
                site=site.name,
                group=group,
                filename=render_path(template, site=site, group=group),
                include=list(include),
                exclude=[module for module in all_modules if module not in included],
            )
            if group == self.default_group:
                manifest.prepend.extend(self.bootstrap_files())
            manifests[group] = manifest
        return manifests

    def bootstrap_files(self) -> List[str]:
        """Polyfill, runtime and loader configuration, in prepend order."""
        return [
            str(self.config.polyfill_path),
            str(self.config.runtime_path),
            str(self.config.config_file),
        ]

    def _module_id(self, file: SourceFile) -> str:
        return module_id(file.path, self.config.paths.sources)


def _unique(items: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def all_modules(manifests: ManifestMap) -> Sequence[str]:
    """Ordered union of every module included by a site's manifests."""
    return _unique(module for manifest in manifests.values() for module in manifest.include)


__all__ = ["BundleManifestGenerator", "ManifestMap", "all_modules"]
