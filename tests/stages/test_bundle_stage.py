"""Tests for BundleCompileStage."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Tuple

import pytest

from sitebundle.bundler import BundleOptions, BundleResult, parse_expression
from sitebundle.config import BuildConfiguration
from sitebundle.errors import BundleCompileError, ConfigurationReadError
from sitebundle.manifests import BundleManifestGenerator
from sitebundle.models import OutputFile
from sitebundle.pipeline import FileStream, Pipeline, WriteFilesStage
from sitebundle.stages import BundleCompileStage
from tests._fixtures.source_tree import SourceTreeBuilder


class RecordingBundler:
    """Bundler double that reports every module as fetched (twice) and echoes the expression."""

    def __init__(self, *, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.calls: List[Tuple[str, BundleOptions]] = []

    async def bundle(self, expression: str, options: BundleOptions) -> BundleResult:
        self.calls.append((expression, options))
        if self.fail_on is not None and self.fail_on in expression:
            raise RuntimeError(f"cannot resolve {self.fail_on}")
        modules = parse_expression(expression)
        for module in modules + modules:
            if options.on_fetch is not None:
                options.on_fetch(module, options.locate(module))
        return BundleResult(source=f"/* {expression} */\n", modules=modules)


def _project(source_tree: SourceTreeBuilder) -> None:
    source_tree.write_loader_files()
    source_tree.write_entity("base", "elements", "button", files={"button.js": "button();\n"})
    source_tree.write_entity("base", "elements", "teaser", files={"teaser.js": "teaser();\n"})
    source_tree.write_entity("base", "modules", "core", group="core", files={"core.js": "core();\n"})


def _stage(source_tree: SourceTreeBuilder, bundler=None) -> BundleCompileStage:
    return BundleCompileStage(source_tree.scan(), source_tree.config(), bundler=bundler)


def test_compiled_bundle_starts_with_prepends_in_order(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    stage = _stage(source_tree)
    destination = source_tree.path() / "out"
    manifests = stage.generator.generate(stage.catalog.find_site("base"))

    asyncio.run(Pipeline(stage).pipe(WriteFilesStage(destination)).run())

    for manifest in manifests.values():
        contents = (destination / manifest.filename).read_text(encoding="utf-8")
        prefix = "".join(Path(path).read_text(encoding="utf-8") for path in manifest.prepend)
        assert contents.startswith(prefix)
    loader = (source_tree.path() / "jspm.js").read_text(encoding="utf-8")
    common = (destination / "base" / "common.js").read_text(encoding="utf-8")
    assert common == "/* polyfills */\n/* runtime */\n" + loader + "button();\nteaser();\n"
    assert (destination / "base" / "core.js").read_text(encoding="utf-8") == "core();\n"


def test_expression_subtracts_excludes_for_non_default_groups(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    stage = _stage(source_tree)

    assert stage.expression("common", ["a.js", "b.js"], ["c.js"]) == "a.js + b.js"
    assert stage.expression("core", ["c.js"], ["a.js", "b.js"]) == "c.js - a.js - b.js"
    assert stage.expression("core", ["c.js"], []) == "c.js"


def test_compile_passes_manifest_expressions_in_order(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    bundler = RecordingBundler()
    stage = _stage(source_tree, bundler)
    manifests = stage.generator.generate(stage.catalog.find_site("base"))

    files = asyncio.run(stage.compile(manifests))

    assert [file.path for file in files] == ["base/common.js", "base/core.js"]
    assert [expression for expression, _ in bundler.calls] == [
        "base/elements/button/button.js + base/elements/teaser/teaser.js",
        "base/modules/core/core.js - base/elements/button/button.js - base/elements/teaser/teaser.js",
    ]
    assert files[1].text == f"/* {bundler.calls[1][0]} */\n"


def test_each_compile_call_owns_its_session(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    bundler = RecordingBundler()
    stage = _stage(source_tree, bundler)
    manifests = stage.generator.generate(stage.catalog.find_site("base"))

    asyncio.run(stage.compile(manifests))
    asyncio.run(stage.compile(manifests))

    first_options, second_options = bundler.calls[0][1], bundler.calls[2][1]
    assert first_options is not second_options
    assert bundler.calls[0][1] is bundler.calls[1][1]
    assert first_options.paths["base/*"] == "sites/base/*"


def test_fetched_files_are_logged_once(source_tree: SourceTreeBuilder, caplog: pytest.LogCaptureFixture) -> None:
    _project(source_tree)
    stage = _stage(source_tree, RecordingBundler())
    manifests = stage.generator.generate(stage.catalog.find_site("base"))

    with caplog.at_level(logging.INFO, logger="sitebundle"):
        asyncio.run(stage.compile(manifests))

    added = [record.getMessage() for record in caplog.records if record.getMessage().startswith("Added")]
    assert len(added) == 3
    assert any("button.js" in message for message in added)


def test_bundler_failure_aborts_batch(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    bundler = RecordingBundler(fail_on="button.js + ")
    stage = _stage(source_tree, bundler)
    destination = source_tree.path() / "out"

    with pytest.raises(BundleCompileError) as excinfo:
        asyncio.run(Pipeline(stage).pipe(WriteFilesStage(destination)).run())

    assert excinfo.value.filename == "base/common.js"
    assert len(bundler.calls) == 1
    assert not (destination / "base" / "core.js").exists()


def test_missing_loader_config_fails_before_bundling(source_tree: SourceTreeBuilder) -> None:
    source_tree.write_entity("base", "elements", "button")
    bundler = RecordingBundler()
    stage = _stage(source_tree, bundler)
    manifests = stage.generator.generate(stage.catalog.find_site("base"))

    with pytest.raises(ConfigurationReadError):
        asyncio.run(stage.compile(manifests))
    assert bundler.calls == []


def test_input_stream_passes_through_unchanged(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    bundler = RecordingBundler()
    stage = _stage(source_tree, bundler)
    record = OutputFile.from_text("other.js", "other();\n")

    async def _scenario() -> List[OutputFile]:
        return await stage.process(FileStream.of([record]), BuildConfiguration(), {}).collect()

    assert asyncio.run(_scenario()) == [record]
    assert bundler.calls == []


def test_path_mapping_covers_packages_and_sites(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    source_tree.write_entity("Main Site", "elements", "button")
    stage = _stage(source_tree)
    packages = source_tree.config().paths.packages.as_posix()

    mapping = stage.path_mapping()

    assert mapping["npm:*"] == f"{packages}/npm/*"
    assert mapping["jspm_packages/*"] == f"{packages}/*"
    assert mapping["Main Site/*"] == "sites/Main Site/*"
    assert mapping["main-site/*"] == "sites/Main Site/*"


def test_generator_can_be_injected(source_tree: SourceTreeBuilder) -> None:
    _project(source_tree)
    catalog, config = source_tree.scan(), source_tree.config()
    generator = BundleManifestGenerator(catalog, config)
    stage = BundleCompileStage(catalog, config, generator=generator, bundler=RecordingBundler())

    files = asyncio.run(Pipeline(stage).run(params={"query": "base", "filenameTemplate": "${group}.js"}))

    assert [file.path for file in files] == ["common.js", "core.js"]
