"""Tests for textfmt.convert — staging paths and the atomic swap."""

import errno
import os
import stat
import sys
import tempfile

import pytest

from textfmt import convert as convert_mod
from textfmt.convert import (
    TMP_MAX_TRIAL,
    SwapError,
    TempPathError,
    convert,
    convert_all,
    swap_files,
    tmp_path,
)
from textfmt.eol import LineEnding, LineEndingRewriter
from textfmt.transform import DEFAULT_CHUNK_SIZE, Status, Transformer, pump


def write(path, data):
    with open(path, "wb") as f:
        f.write(data)


def read(path):
    with open(path, "rb") as f:
        return f.read()


class FailingTransformer(Transformer):
    """Passes data through, then fails like a full disk on the given call."""

    def __init__(self, fail_on_call=2):
        self.calls = 0
        self.fail_on_call = fail_on_call

    def transform(self, src, at_eof, dst_size):
        self.calls += 1
        if self.calls >= self.fail_on_call:
            raise OSError(28, "No space left on device")
        out = src[:dst_size]
        status = Status.NEED_OUTPUT if len(src) > dst_size else Status.NEED_INPUT
        return out, len(out), status


class ShortWriter:
    """File stand-in that accepts *limit* bytes, then fails like a full disk."""

    def __init__(self, f, limit):
        self.f = f
        self.limit = limit
        self.written = 0

    def write(self, data):
        if self.written + len(data) > self.limit:
            raise OSError(errno.ENOSPC, "No space left on device")
        self.written += len(data)
        return self.f.write(data)


class TestTmpPath:
    """Tests for temporary sibling path generation."""

    def test_first_candidate(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "file.txt")
            assert tmp_path(path, "new") == path + ".new"

    def test_falls_back_to_numbered(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "file.txt")
            write(path + ".new", b"")
            assert tmp_path(path, "new") == path + ".1.new"
            write(path + ".1.new", b"")
            assert tmp_path(path, "new") == path + ".2.new"

    def test_exhausted(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "file.txt")
            write(path + ".old", b"")
            for i in range(1, TMP_MAX_TRIAL):
                write(f"{path}.{i}.old", b"")
            with pytest.raises(TempPathError):
                tmp_path(path, "old")

    def test_last_candidate(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "file.txt")
            write(path + ".new", b"")
            for i in range(1, TMP_MAX_TRIAL - 1):
                write(f"{path}.{i}.new", b"")
            assert tmp_path(path, "new") == f"{path}.{TMP_MAX_TRIAL - 1}.new"


class TestConvertAll:
    """Tests for streaming into the staging file."""

    def test_existing_destination_not_overwritten(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            src = os.path.join(tmpdir, "src.txt")
            dst = os.path.join(tmpdir, "src.txt.new")
            write(src, b"a\r\n")
            write(dst, b"somebody else's file")
            with pytest.raises(FileExistsError):
                convert_all(src, dst, LineEndingRewriter(LineEnding.LF))
            assert read(dst) == b"somebody else's file"

    def test_failure_removes_partial_output(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            src = os.path.join(tmpdir, "src.txt")
            dst = os.path.join(tmpdir, "src.txt.new")
            write(src, b"x" * 100)
            with pytest.raises(OSError):
                convert_all(src, dst, FailingTransformer(), chunk_size=10)
            assert not os.path.exists(dst)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_copies_permissions(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            src = os.path.join(tmpdir, "run.sh")
            dst = os.path.join(tmpdir, "run.sh.new")
            write(src, b"#!/bin/sh\r\necho hi\r\n")
            os.chmod(src, 0o750)
            convert_all(src, dst, LineEndingRewriter(LineEnding.LF))
            assert stat.S_IMODE(os.stat(dst).st_mode) == 0o750
            assert read(dst) == b"#!/bin/sh\necho hi\n"


class TestConvert:
    """Tests for in-place conversion."""

    def test_converts_in_place(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "doc.txt")
            write(path, b"a\r\nb\rc\nd")
            staged = convert(path, LineEndingRewriter(LineEnding.CRLF), chunk_size=3)
            assert os.path.basename(staged) == "doc.txt.new"
            assert read(path) == b"a\r\nb\r\nc\r\nd"
            assert sorted(os.listdir(tmpdir)) == ["doc.txt"]

    def test_uses_next_staging_path(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "doc.txt")
            write(path, b"a\n")
            write(path + ".new", b"leftover")
            write(path + ".old", b"leftover")
            staged = convert(path, LineEndingRewriter(LineEnding.CR))
            assert os.path.basename(staged) == "doc.txt.1.new"
            assert read(path) == b"a\r"
            assert read(path + ".new") == b"leftover"
            assert read(path + ".old") == b"leftover"
            assert not os.path.exists(path + ".1.new")
            assert not os.path.exists(path + ".1.old")

    def test_transform_failure_leaves_original(self):
        """A transformer failure part way through leaves the file byte-for-byte intact."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "doc.txt")
            original = b"line\r\n" * 50
            write(path, original)
            with pytest.raises(OSError, match="No space"):
                convert(path, FailingTransformer(fail_on_call=3), chunk_size=16)
            assert read(path) == original
            assert not os.path.exists(path + ".new")
            assert sorted(os.listdir(tmpdir)) == ["doc.txt"]

    def test_destination_write_failure_leaves_original(self, monkeypatch):
        """The staging file filling up mid-stream leaves the file intact."""
        writers = []

        def short_pump(src_file, dst_file, transformer, chunk_size=DEFAULT_CHUNK_SIZE):
            writer = ShortWriter(dst_file, limit=40)
            writers.append(writer)
            return pump(src_file, writer, transformer, chunk_size)

        monkeypatch.setattr(convert_mod, "pump", short_pump)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "doc.txt")
            original = b"line\n" * 50
            write(path, original)
            with pytest.raises(OSError, match="No space"):
                convert(path, LineEndingRewriter(LineEnding.CRLF), chunk_size=16)
            assert writers[0].written > 0
            assert read(path) == original
            assert not os.path.exists(path + ".new")
            assert sorted(os.listdir(tmpdir)) == ["doc.txt"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlink_converts_target(self):
        """The link stays a link; the file it points to is converted."""
        with tempfile.TemporaryDirectory() as tmpdir:
            target = os.path.join(tmpdir, "real.txt")
            link = os.path.join(tmpdir, "link.txt")
            write(target, b"a\nb\n")
            os.symlink("real.txt", link)
            staged = convert(link, LineEndingRewriter(LineEnding.CRLF))
            assert os.path.basename(staged) == "real.txt.new"
            assert os.path.islink(link)
            assert os.readlink(link) == "real.txt"
            assert read(target) == b"a\r\nb\r\n"
            assert sorted(os.listdir(tmpdir)) == ["link.txt", "real.txt"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlink_into_other_directory(self):
        """Staging happens next to the target, not next to the link."""
        with tempfile.TemporaryDirectory() as tmpdir:
            os.mkdir(os.path.join(tmpdir, "data"))
            target = os.path.join(tmpdir, "data", "real.txt")
            link = os.path.join(tmpdir, "link.txt")
            write(target, b"a\r\nb\r\n")
            os.symlink(target, link)
            convert(link, LineEndingRewriter(LineEnding.LF))
            assert os.path.islink(link)
            assert read(target) == b"a\nb\n"
            assert sorted(os.listdir(tmpdir)) == ["data", "link.txt"]
            assert os.listdir(os.path.join(tmpdir, "data")) == ["real.txt"]

    def test_staging_exhausted(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "doc.txt")
            write(path, b"a\n")
            write(path + ".new", b"")
            for i in range(1, TMP_MAX_TRIAL):
                write(f"{path}.{i}.new", b"")
            with pytest.raises(TempPathError):
                convert(path, LineEndingRewriter(LineEnding.CRLF))
            assert read(path) == b"a\n"

    def test_missing_source(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "missing.txt")
            with pytest.raises(FileNotFoundError):
                convert(path, LineEndingRewriter(LineEnding.LF))
            assert os.listdir(tmpdir) == []


class TestSwapFiles:
    """Tests for the rename phase."""

    def _setup(self, tmpdir):
        path = os.path.join(tmpdir, "doc.txt")
        new_path = path + ".new"
        write(path, b"original")
        write(new_path, b"converted")
        return path, new_path

    def test_swap(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path, new_path = self._setup(tmpdir)
            swap_files(path, new_path)
            assert read(path) == b"converted"
            assert sorted(os.listdir(tmpdir)) == ["doc.txt"]

    def test_first_rename_fails(self, monkeypatch):
        with tempfile.TemporaryDirectory() as tmpdir:
            path, new_path = self._setup(tmpdir)

            def fail(src, dst):
                raise PermissionError(13, "Permission denied")

            monkeypatch.setattr(convert_mod.os, "rename", fail)
            with pytest.raises(SwapError, match="could not move"):
                swap_files(path, new_path)
            monkeypatch.undo()
            assert read(path) == b"original"
            assert sorted(os.listdir(tmpdir)) == ["doc.txt"]

    def test_second_rename_fails_restores_original(self, monkeypatch):
        with tempfile.TemporaryDirectory() as tmpdir:
            path, new_path = self._setup(tmpdir)
            real_rename = os.rename

            def fail_on_new(src, dst):
                if src == new_path:
                    raise PermissionError(13, "Permission denied")
                real_rename(src, dst)

            monkeypatch.setattr(convert_mod.os, "rename", fail_on_new)
            with pytest.raises(SwapError, match="into place"):
                swap_files(path, new_path)
            monkeypatch.undo()
            assert read(path) == b"original"
            assert sorted(os.listdir(tmpdir)) == ["doc.txt"]

    def test_restore_fails_reports_backup(self, monkeypatch):
        with tempfile.TemporaryDirectory() as tmpdir:
            path, new_path = self._setup(tmpdir)
            real_rename = os.rename
            calls = []

            def first_only(src, dst):
                calls.append((src, dst))
                if len(calls) > 1:
                    raise PermissionError(13, "Permission denied")
                real_rename(src, dst)

            monkeypatch.setattr(convert_mod.os, "rename", first_only)
            with pytest.raises(SwapError, match="original content is in") as excinfo:
                swap_files(path, new_path)
            monkeypatch.undo()
            assert path + ".old" in str(excinfo.value)
            assert read(path + ".old") == b"original"
            assert read(new_path) == b"converted"

    def test_backup_removal_failure_is_warning(self, monkeypatch, capsys):
        with tempfile.TemporaryDirectory() as tmpdir:
            path, new_path = self._setup(tmpdir)

            def fail_remove(p):
                raise PermissionError(13, "Permission denied")

            monkeypatch.setattr(convert_mod.os, "remove", fail_remove)
            swap_files(path, new_path)
            monkeypatch.undo()
            assert read(path) == b"converted"
            assert "Warning: Could not remove backup" in capsys.readouterr().err
