"""Transpiler interface and a command-line backed adapter."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from .errors import TranspileError

Runner = Callable[[Sequence[str], str, Mapping[str, str]], Awaitable[Tuple[int, str, str]]]


@dataclass(frozen=True)
class TranspileOptions:
    """The fixed option set used for precompiling sources."""

    module_format: str = "systemjs"
    browsers: Tuple[str, ...] = ("last 2 Chrome versions",)
    use_built_ins: str = "usage"
    runtime_helpers: bool = False
    runtime_polyfill: bool = False
    runtime_regenerator: bool = False
    async_to_generator: bool = True
    babelrc: bool = False


PRECOMPILE_OPTIONS = TranspileOptions()


class Transpiler(Protocol):
    """Transforms source text; raises TranspileError on failure."""

    async def transform(self, source: str, options: TranspileOptions) -> str:
        ...


class CommandTranspiler:
    """Pipes source text through an external transpiler executable (babel by default)."""

    DEFAULT_COMMAND: Tuple[str, ...] = ("npx", "babel")

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        runner: Runner | None = None,
        filename: str = "module.js",
    ) -> None:
        self.command = list(command or self.DEFAULT_COMMAND)
        self.filename = filename
        self._runner = runner or self._default_runner

    def build_args(self, options: TranspileOptions) -> List[str]:
        args = list(self.command)
        if not options.babelrc:
            args.append("--no-babelrc")
        args.extend(["--presets", "@babel/preset-env"])
        plugins = [f"@babel/plugin-transform-modules-{options.module_format}"]
        if options.async_to_generator:
            plugins.append("@babel/plugin-transform-async-to-generator")
        if any((options.runtime_helpers, options.runtime_polyfill, options.runtime_regenerator)):
            plugins.append("@babel/plugin-transform-runtime")
        args.extend(["--plugins", ",".join(plugins)])
        args.extend(["--filename", self.filename])
        return args

    def build_env(self, options: TranspileOptions) -> Dict[str, str]:
        return {"BROWSERSLIST": ", ".join(options.browsers)}

    async def transform(self, source: str, options: TranspileOptions) -> str:
        args = self.build_args(options)
        env = self.build_env(options)
        try:
            code, stdout, stderr = await self._runner(args, source, env)
        except OSError as exc:
            raise TranspileError(f"Failed to start transpiler {args[0]}: {exc}") from exc
        if code != 0:
            message = stderr.strip() or f"exit status {code}"
            raise TranspileError(f"Transpiler failed for targets <{env['BROWSERSLIST']}>: {message}")
        return stdout

    @staticmethod
    async def _default_runner(
        args: Sequence[str], source: str, env: Mapping[str, str]
    ) -> Tuple[int, str, str]:
        process = await asyncio.create_subprocess_exec(
            *args,
            env={**os.environ, **env},
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate(source.encode("utf-8"))
        returncode: Optional[int] = process.returncode
        return (
            returncode if returncode is not None else 1,
            stdout.decode("utf-8"),
            stderr.decode("utf-8", errors="replace"),
        )


__all__ = [
    "CommandTranspiler",
    "PRECOMPILE_OPTIONS",
    "TranspileOptions",
    "Transpiler",
]
