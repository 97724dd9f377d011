"""Error taxonomy shared by the bundling and precompile pipelines."""

from __future__ import annotations


class SiteBundleError(RuntimeError):
    """Base class for all sitebundle failures."""


class NotFoundError(SiteBundleError):
    """Raised when a site or entity query matches nothing."""

    def __init__(self, kind: str, query: str) -> None:
        super().__init__(f"No {kind} found for query <{query}>")
        self.kind = kind
        self.query = query


class TranspileError(SiteBundleError):
    """Raised by a transpiler when a single source file cannot be transformed."""

    def __init__(self, message: str, *, filename: str | None = None) -> None:
        super().__init__(message)
        self.filename = filename


class BundleCompileError(SiteBundleError):
    """Raised when the bundler fails for a manifest; aborts the compile batch."""

    def __init__(self, filename: str, cause: BaseException | str) -> None:
        super().__init__(f"Failed to compile bundle <{filename}>: {cause}")
        self.filename = filename


class ConfigurationReadError(SiteBundleError):
    """Raised when the module-loader configuration source cannot be read or parsed."""


class StageStateError(SiteBundleError):
    """Raised when a single-use pipeline stage is processed twice."""


__all__ = [
    "BundleCompileError",
    "ConfigurationReadError",
    "NotFoundError",
    "SiteBundleError",
    "StageStateError",
    "TranspileError",
]
