"""
Tests for the emitter: staging, manifests, ownership checks and failures.
"""

import json
import os
import stat
from pathlib import Path

import pytest

from fhirgen.codegen.core import emitter as emitter_module
from fhirgen.codegen.core.emitter import (
    MANIFEST_NAME,
    EmitError,
    Emitter,
    emit,
    read_manifest,
)
from fhirgen.codegen.core.generator import DuplicatePath, GeneratedFile, InvalidOutputPath


def make_files(**contents):
    return [
        GeneratedFile.from_text(path.replace("__", "/"), text)
        for path, text in contents.items()
    ]


@pytest.fixture
def files():
    return make_files(pkg__a_txt="alpha\n", pkg__sub__b_txt="beta\n", top_txt="top\n")


class TestCleanEmit:
    """Tests for the default rebuild-and-swap mode."""

    def test_writes_tree_and_manifest(self, files, output_dir):
        report = emit(files, output_dir, metadata={"language": "go"})
        assert report.success
        assert report.written == ["pkg/a_txt", "pkg/sub/b_txt", "top_txt"]
        assert (output_dir / "pkg" / "sub" / "b_txt").read_text() == "beta\n"

        manifest = read_manifest(output_dir)
        assert manifest["generator"] == "fhirgen"
        assert manifest["language"] == "go"
        assert [entry["path"] for entry in manifest["files"]] == report.written
        assert manifest["files"][0]["sha256"] == files[0].sha256

    def test_rerun_replaces_previous_tree(self, files, output_dir):
        emit(files, output_dir)
        emit(make_files(new_txt="new\n"), output_dir)
        assert (output_dir / "new_txt").exists()
        assert not (output_dir / "pkg").exists()
        assert sorted(p.name for p in output_dir.iterdir()) == [MANIFEST_NAME, "new_txt"]

    def test_no_staging_left_behind(self, files, output_dir):
        emit(files, output_dir)
        emit(files, output_dir)
        assert [p.name for p in output_dir.parent.iterdir()] == ["out"]

    def test_empty_directory_is_accepted(self, files, output_dir):
        output_dir.mkdir()
        assert emit(files, output_dir).success

    def test_refuses_unowned_directory(self, files, output_dir):
        output_dir.mkdir()
        (output_dir / "precious.txt").write_text("keep me")
        with pytest.raises(EmitError, match="Refusing"):
            emit(files, output_dir)
        assert (output_dir / "precious.txt").read_text() == "keep me"

    def test_root_is_a_file(self, files, tmp_path):
        target = tmp_path / "file"
        target.write_text("")
        with pytest.raises(EmitError, match="not a directory"):
            emit(files, target)

    def test_write_failure_keeps_previous_tree(self, files, output_dir, monkeypatch):
        emit(files, output_dir)
        before = (output_dir / MANIFEST_NAME).read_text()

        real_write = emitter_module._write_atomic

        def flaky_write(target, content):
            if target.name == "b_txt":
                raise OSError("disk full")
            real_write(target, content)

        monkeypatch.setattr(emitter_module, "_write_atomic", flaky_write)
        report = emit(make_files(pkg__sub__b_txt="changed\n", other_txt="x\n"), output_dir)

        assert not report.success
        assert report.written == []
        assert [failure.path for failure in report.failures] == ["pkg/sub/b_txt"]
        assert "disk full" in report.failures[0].error
        assert (output_dir / MANIFEST_NAME).read_text() == before
        assert (output_dir / "pkg" / "sub" / "b_txt").read_text() == "beta\n"
        assert not (output_dir / "other_txt").exists()

    def test_raise_for_failures(self, files, output_dir, monkeypatch):
        def failing_write(target, content):
            raise OSError("read-only")

        monkeypatch.setattr(emitter_module, "_write_atomic", failing_write)
        report = emit(files, output_dir)
        assert len(report.failures) == 3
        with pytest.raises(EmitError) as exc_info:
            report.raise_for_failures()
        assert len(exc_info.value.failures) == 3

    def test_parallel_writes(self, files, output_dir):
        report = Emitter(max_workers=4).emit(files, output_dir)
        assert report.success
        assert (output_dir / "top_txt").read_text() == "top\n"


class TestInPlaceEmit:
    """Tests for writing over an existing tree without cleaning it."""

    def test_keeps_unrelated_files(self, files, output_dir):
        output_dir.mkdir()
        (output_dir / "notes.md").write_text("mine")
        report = emit(files, output_dir, clean=False)
        assert report.success
        assert not report.clean
        assert (output_dir / "notes.md").read_text() == "mine"
        assert read_manifest(output_dir) is not None

    def test_partial_failure(self, files, output_dir, monkeypatch):
        real_write = emitter_module._write_atomic

        def flaky_write(target, content):
            if target.name == "a_txt":
                raise OSError("permission denied")
            real_write(target, content)

        monkeypatch.setattr(emitter_module, "_write_atomic", flaky_write)
        report = emit(files, output_dir, clean=False)
        assert report.written == ["pkg/sub/b_txt", "top_txt"]
        assert [failure.path for failure in report.failures] == ["pkg/a_txt"]
        assert read_manifest(output_dir) is None


class TestValidation:
    """Tests for checks done before any I/O."""

    def test_duplicate_path(self, output_dir):
        files = make_files(a_txt="1") + make_files(a_txt="2")
        with pytest.raises(DuplicatePath):
            emit(files, output_dir)
        assert not output_dir.exists()

    def test_escaping_path(self, output_dir):
        with pytest.raises(InvalidOutputPath):
            emit([GeneratedFile.from_text("../evil.txt", "x")], output_dir)
        assert not output_dir.exists()

    def test_manifest_name_is_reserved(self, output_dir):
        with pytest.raises(EmitError, match="reserved"):
            emit([GeneratedFile.from_text(MANIFEST_NAME, "{}")], output_dir)

    def test_unreadable_manifest(self, output_dir):
        output_dir.mkdir()
        (output_dir / MANIFEST_NAME).write_text("{not json")
        with pytest.raises(EmitError, match="Unreadable manifest"):
            read_manifest(output_dir)

    def test_manifest_is_valid_json(self, files, output_dir):
        emit(files, output_dir)
        data = json.loads((output_dir / MANIFEST_NAME).read_text())
        assert len(data["files"]) == 3


class TestRootHandling:
    """Tests for permissions and failures around the output root itself."""

    @pytest.fixture
    def umask_022(self):
        previous = os.umask(0o022)
        yield
        os.umask(previous)

    def test_clean_tree_follows_umask(self, files, output_dir, umask_022):
        emit(files, output_dir)
        assert stat.S_IMODE(output_dir.stat().st_mode) == 0o755
        assert stat.S_IMODE((output_dir / "pkg").stat().st_mode) == 0o755

    def test_rerun_keeps_permissions(self, files, output_dir, umask_022):
        emit(files, output_dir)
        emit(files, output_dir)
        assert stat.S_IMODE(output_dir.stat().st_mode) == 0o755

    def test_dangling_symlink_root(self, files, tmp_path):
        link = tmp_path / "out"
        link.symlink_to(tmp_path / "missing")
        with pytest.raises(EmitError, match="dangling symlink"):
            emit(files, link)

    def test_swap_failure_becomes_emit_error(self, files, output_dir, monkeypatch):
        emit(files, output_dir)
        before = (output_dir / MANIFEST_NAME).read_text()
        real_replace = os.replace

        def refuse_root(src, dst):
            if Path(src) == output_dir:
                raise OSError("device busy")
            real_replace(src, dst)

        monkeypatch.setattr(emitter_module.os, "replace", refuse_root)
        with pytest.raises(EmitError, match="device busy"):
            emit(make_files(new_txt="new\n"), output_dir)

        assert (output_dir / MANIFEST_NAME).read_text() == before
        assert [p.name for p in output_dir.parent.iterdir()] == ["out"]

    def test_in_place_manifest_failure_is_reported(self, files, output_dir, monkeypatch):
        real_write = emitter_module._write_atomic

        def no_manifest(target, content):
            if target.name == MANIFEST_NAME:
                raise OSError("quota exceeded")
            real_write(target, content)

        monkeypatch.setattr(emitter_module, "_write_atomic", no_manifest)
        report = emit(files, output_dir, clean=False)
        assert not report.success
        assert [failure.path for failure in report.failures] == [MANIFEST_NAME]
