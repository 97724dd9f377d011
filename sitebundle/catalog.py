"""Site, entity and file catalog backed by a sources directory."""

from __future__ import annotations

import os
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import yaml

from .config import ConfigError
from .errors import NotFoundError
from .logging import get_logger
from .models import Entity, Site, SourceFile
from .utils import urlify

WILDCARD = "*"

SITE_METADATA = "site.yml"
ENTITY_METADATA = "entity.yml"

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".sitebundle",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
    SITE_METADATA,
    ENTITY_METADATA,
}

_CONTENT_TYPE_BY_SUFFIX = {
    ".js": "js",
    ".mjs": "js",
    ".jsx": "js",
    ".css": "css",
    ".scss": "css",
    ".sass": "css",
    ".j2": "markup",
    ".html": "markup",
    ".md": "text",
    ".json": "data",
    ".yml": "data",
    ".yaml": "data",
}

FilePredicate = Callable[[SourceFile], bool]


def is_js(file: SourceFile) -> bool:
    return file.content_type == "js"


class Catalog:
    """Read-only view over sites, their entities and files."""

    def __init__(self, sites: Sequence[Site], entities: Sequence[Entity]) -> None:
        self._sites = list(sites)
        self._entities = list(entities)

    @property
    def sites(self) -> List[Site]:
        return list(self._sites)

    @property
    def entities(self) -> List[Entity]:
        return list(self._entities)

    def find_site(self, query: str) -> Site:
        """Resolve exactly one site by name (or its url-safe slug)."""
        needle = query.strip().strip("/")
        for site in self._sites:
            if site.name == needle or urlify(site.name) == needle.lower():
                return site
        raise NotFoundError("site", query)

    def resolve_sites(self, query: str = WILDCARD) -> List[Site]:
        if query == WILDCARD:
            return self.sites
        return [self.find_site(query)]

    def entities_for_site(self, site: Site) -> List[Entity]:
        """Entities defined by the site or any site it extends, in catalog order."""
        lineage = site.lineage()
        return [entity for entity in self._entities if entity.site in lineage]

    def query_site(self, query: str) -> Optional[Site]:
        """The site named by the first segment of `query`, if there is one."""
        if query == WILDCARD:
            return None
        head = query.strip().strip("/").split("/", 1)[0]
        try:
            return self.find_site(head)
        except NotFoundError:
            return None

    def find_entities(self, query: str = WILDCARD) -> List[Entity]:
        """Entities whose path string equals or is nested below `query`.

        A query starting with a site name is read against that site's lineage,
        so `extended/elements/button` also finds the `base` button that
        `extended` overrides.
        """
        if query == WILDCARD:
            return self.entities
        needle = query.strip().strip("/")
        site = self.query_site(needle)
        if site is None:
            scope, rest = self._entities, needle
        else:
            scope, rest = self.entities_for_site(site), needle.partition("/")[2]
        found = [
            entity
            for entity in scope
            if _path_matches(
                entity.path_string if site is None else f"{entity.category}/{entity.name}", rest
            )
        ]
        if not found:
            raise NotFoundError("entity", query)
        return found

    def files_by_site_grouped(
        self,
        site: Site,
        predicate: FilePredicate,
        group_property: str,
        default_group: str,
        entities: Optional[Iterable[Entity]] = None,
    ) -> "OrderedDict[str, List[SourceFile]]":
        """Group matching files by their group tag, ancestor sites first per entity."""
        scope = list(entities) if entities is not None else self.entities_for_site(site)
        lineage = site.lineage()
        grouped: "OrderedDict[str, List[SourceFile]]" = OrderedDict()
        for entity in scope:
            for ancestor in lineage:
                for file in entity.files:
                    if file.site != ancestor.name or not predicate(file):
                        continue
                    group = file.group(group_property, default_group)
                    grouped.setdefault(group, []).append(file)
        return grouped


class CatalogScanner:
    """Walks a sources directory laid out as `<site>/<category>/<entity>/...`."""

    def __init__(self) -> None:
        self.logger = get_logger("catalog")

    def scan(self, root: Path | str) -> Catalog:
        """Return a catalog describing every site found below `root`."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Sources path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Sources path is not a directory: {root}")

        site_dirs = [
            path
            for path in sorted(root_path.iterdir())
            if path.is_dir() and not path.name.startswith((".", "_")) and path.name not in _EXCLUDED_DIRS
        ]
        sites = self._build_sites(site_dirs)

        entities: Dict[Tuple[str, str], Entity] = OrderedDict()
        metadata: Dict[Tuple[str, str, str], Dict[str, object]] = {}
        for site in _parents_first(sites):
            site_dir = root_path / site.name
            for category_dir, entity_dir in _iter_entity_dirs(site_dir):
                key = (category_dir.name, entity_dir.name)
                metadata[(site.name,) + key] = _read_metadata(entity_dir / ENTITY_METADATA)
                entity = entities.get(key)
                if entity is None or entity.site not in site.lineage():
                    if entity is not None:
                        self.logger.debug(
                            "Entity %s/%s is redefined by unrelated site %s",
                            key[0],
                            key[1],
                            site.name,
                        )
                        key = (f"{site.name}:{key[0]}", key[1])
                    entity = Entity(site=site, category=category_dir.name, name=entity_dir.name)
                    entities[key] = entity
                for path in _iter_files(entity_dir):
                    entity.files.append(
                        SourceFile(
                            path=path,
                            content_type=_detect_content_type(path),
                            site=site.name,
                        )
                    )

        by_name = {site.name: site for site in sites}
        for entity in entities.values():
            for file in entity.files:
                file.properties = _merged_properties(
                    by_name[file.site], entity.category, entity.name, metadata
                )

        ordered = sorted(
            entities.values(),
            key=lambda item: (sites.index(item.site), item.category, item.name),
        )
        self.logger.debug("Catalog scanned %d sites and %d entities", len(sites), len(ordered))
        return Catalog(sites, ordered)

    def _build_sites(self, site_dirs: Sequence[Path]) -> List[Site]:
        sites = [Site(name=path.name) for path in site_dirs]
        by_name = {site.name: site for site in sites}
        for path, site in zip(site_dirs, sites):
            data = _read_metadata(path / SITE_METADATA)
            parent = data.get("extends")
            if parent is None:
                continue
            parent_name = str(parent).strip().strip("/")
            if parent_name not in by_name:
                raise ConfigError(f"Site <{site.name}> extends unknown site <{parent_name}>")
            site.extends = by_name[parent_name]
        for site in sites:
            site.lineage()
        return sites


def _path_matches(path: str, needle: str) -> bool:
    return not needle or path == needle or path.startswith(f"{needle}/")


def _parents_first(sites: Sequence[Site]) -> List[Site]:
    ordered: List[Site] = []
    for site in sites:
        for ancestor in site.lineage():
            if ancestor not in ordered:
                ordered.append(ancestor)
    return ordered


def _iter_entity_dirs(site_dir: Path) -> Iterator[Tuple[Path, Path]]:
    for category_dir in sorted(site_dir.iterdir()):
        if not category_dir.is_dir() or category_dir.name in _EXCLUDED_DIRS:
            continue
        for entity_dir in sorted(category_dir.iterdir()):
            if entity_dir.is_dir() and entity_dir.name not in _EXCLUDED_DIRS:
                yield category_dir, entity_dir


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            yield Path(dirpath) / filename


def _detect_content_type(path: Path) -> str:
    return _CONTENT_TYPE_BY_SUFFIX.get(path.suffix.lower(), "other")


def _read_metadata(path: Path) -> Dict[str, object]:
    if not path.exists():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path} must contain a mapping at the root")
    return loaded


def _merged_properties(
    site: Site,
    category: str,
    name: str,
    metadata: Dict[Tuple[str, str, str], Dict[str, object]],
) -> Dict[str, object]:
    merged: Dict[str, object] = {}
    for ancestor in site.lineage():
        _deep_merge(merged, metadata.get((ancestor.name, category, name), {}))
    return merged


def _deep_merge(target: Dict[str, object], source: Dict[str, object]) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            nested = dict(existing)
            _deep_merge(nested, value)
            target[key] = nested
        else:
            target[key] = value


__all__ = ["Catalog", "CatalogScanner", "FilePredicate", "WILDCARD", "is_js"]
