"""Core data models shared across sitebundle components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Sequence


@dataclass(eq=False)
class Site:
    """A site with an optional parent it extends."""

    name: str
    extends: Optional["Site"] = None

    def lineage(self) -> List["Site"]:
        """Return the inheritance chain, root site first."""
        chain: List[Site] = []
        current: Optional[Site] = self
        while current is not None:
            if current in chain:
                raise ValueError(f"Site <{self.name}> has a cyclic extends chain")
            chain.insert(0, current)
            current = current.extends
        return chain

    def __repr__(self) -> str:
        parent = self.extends.name if self.extends else None
        return f"Site(name={self.name!r}, extends={parent!r})"


@dataclass(eq=False)
class SourceFile:
    """A catalog file owned by a site and (usually) an entity."""

    path: Path
    content_type: str
    site: str
    properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    def group(self, property_path: str, default: str) -> str:
        """Read the group tag at `property_path`, falling back to `default`."""
        current: Any = self.properties
        for part in property_path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        if current is None or current == "":
            return default
        return str(current)

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8")


@dataclass(eq=False)
class Entity:
    """A named unit (e.g. a UI component) defined by a site."""

    site: Site
    category: str
    name: str
    files: List[SourceFile] = field(default_factory=list)

    @property
    def path_string(self) -> str:
        return f"{self.site.name}/{self.category}/{self.name}"

    def __repr__(self) -> str:
        return f"Entity({self.path_string!r}, files={len(self.files)})"


@dataclass
class BundleManifest:
    """Computed description of one bundle prior to compilation."""

    site: str
    group: str
    filename: str
    prepend: List[str] = field(default_factory=list)
    append: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "prepend": list(self.prepend),
            "append": list(self.append),
            "include": list(self.include),
            "exclude": list(self.exclude),
        }


@dataclass
class OutputFile:
    """A record flowing through pipelines: a relative path plus its contents."""

    path: str
    contents: bytes

    @classmethod
    def from_text(cls, path: str, text: str) -> "OutputFile":
        return cls(path=path, contents=text.encode("utf-8"))

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")


@dataclass(frozen=True)
class Invalidation:
    """Notification that entities changed on disk."""

    updated: Sequence[Entity]
    extensions: FrozenSet[str]


__all__ = [
    "BundleManifest",
    "Entity",
    "Invalidation",
    "OutputFile",
    "Site",
    "SourceFile",
]
