"""Concrete pipeline stages for bundling and precompiling sources."""

from .bundle import BundleCompileStage, BundleSession
from .precompile import PrecompileStage

__all__ = ["BundleCompileStage", "BundleSession", "PrecompileStage"]
