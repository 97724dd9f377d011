"""Bundler interface and a concatenating reference implementation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

FetchHook = Callable[[str, Path], None]

_OPERATOR = re.compile(r"\s+([+-])\s+")


@dataclass
class BundleOptions:
    """Per-call bundler configuration; built fresh for every compile batch."""

    base_path: Path
    paths: Dict[str, str] = field(default_factory=dict)
    runtime: str = "babel"
    minify: bool = False
    source_maps: bool = False
    on_fetch: Optional[FetchHook] = None

    def locate(self, module: str) -> Path:
        """Resolve a module id through the `paths` table (longest wildcard prefix wins)."""
        best: Tuple[int, str] | None = None
        for pattern, target in self.paths.items():
            if pattern.endswith("*"):
                prefix = pattern[:-1]
                if module.startswith(prefix) and (best is None or len(prefix) > best[0]):
                    best = (len(prefix), target.replace("*", module[len(prefix) :], 1))
            elif pattern == module:
                best = (len(pattern) + 1, target)
        resolved = best[1] if best else module
        if resolved.startswith("file:///"):
            resolved = resolved[len("file://") :]
        path = Path(resolved)
        return path if path.is_absolute() else self.base_path / path


@dataclass
class BundleResult:
    source: str
    modules: List[str] = field(default_factory=list)


class Bundler(Protocol):
    """Turns a module arithmetic expression into concatenated bundle source."""

    async def bundle(self, expression: str, options: BundleOptions) -> BundleResult:
        ...


def parse_expression(expression: str) -> List[str]:
    """Evaluate `a + b - c` left to right into an ordered module list."""
    parts = _OPERATOR.split(expression.strip())
    if not parts or not parts[0]:
        raise ValueError("Empty module expression")
    modules: List[str] = [parts[0]]
    for operator, term in zip(parts[1::2], parts[2::2]):
        if operator == "+":
            if term not in modules:
                modules.append(term)
        else:
            modules = [module for module in modules if module != term]
    return modules


class ConcatBundler:
    """Concatenates the expression's modules in order without resolving imports."""

    async def bundle(self, expression: str, options: BundleOptions) -> BundleResult:
        modules = parse_expression(expression)
        chunks: List[str] = []
        for module in modules:
            path = options.locate(module)
            source = path.read_text(encoding="utf-8")
            if options.on_fetch is not None:
                options.on_fetch(module, path)
            chunks.append(source if source.endswith("\n") else source + "\n")
        return BundleResult(source="".join(chunks), modules=modules)


__all__ = [
    "BundleOptions",
    "BundleResult",
    "Bundler",
    "ConcatBundler",
    "FetchHook",
    "parse_expression",
]
