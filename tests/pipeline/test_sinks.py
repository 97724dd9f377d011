"""Tests for WriteFilesStage and DecorateStage."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from sitebundle.config import BuildConfiguration
from sitebundle.models import OutputFile
from sitebundle.pipeline import DecorateStage, FileStream, WriteFilesStage, banner_comment


def _run(stage, records, params):
    async def _scenario():
        stream = FileStream.of(records)
        return await stage.process(stream, BuildConfiguration(), params).collect()

    return asyncio.run(_scenario())


def test_write_files_stage_writes_and_forwards(tmp_path: Path) -> None:
    stage = WriteFilesStage(tmp_path / "out")
    records = [OutputFile.from_text("base/common.js", "a();\n"), OutputFile.from_text("b.js", "b();\n")]

    forwarded = _run(stage, records, {})

    assert [record.path for record in forwarded] == ["base/common.js", "b.js"]
    assert (tmp_path / "out" / "base" / "common.js").read_text(encoding="utf-8") == "a();\n"
    assert stage.written == [tmp_path / "out" / "base" / "common.js", tmp_path / "out" / "b.js"]


def test_write_path_parameter_wins_over_constructor(tmp_path: Path) -> None:
    stage = WriteFilesStage(tmp_path / "unused")

    _run(stage, [OutputFile.from_text("a.js", "a")], {"writePath": str(tmp_path / "override")})

    assert (tmp_path / "override" / "a.js").exists()
    assert not (tmp_path / "unused").exists()


def test_write_files_stage_without_destination_fails() -> None:
    with pytest.raises(ValueError):
        _run(WriteFilesStage(), [], {})


def test_banner_comment_wraps_value() -> None:
    assert banner_comment("Site ${gitHash}") == "/** Site ${gitHash} **/"
    assert banner_comment(None) is None
    assert banner_comment("") is None


def test_decorate_stage_prepends_rendered_banner() -> None:
    params = {
        "decoratePrepend": "/** build ${gitHash} on ${gitBranch} **/",
        "decorateVariables": {"gitHash": "abc123", "gitBranch": "main"},
    }

    records = _run(DecorateStage(), [OutputFile.from_text("a.js", "a();\n")], params)

    assert records[0].text == "/** build abc123 on main **/\na();\n"


def test_decorate_stage_passes_records_without_banner() -> None:
    records = _run(DecorateStage(), [OutputFile.from_text("a.js", "a();\n")], {"decoratePrepend": None})

    assert records[0].text == "a();\n"
