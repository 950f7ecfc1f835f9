"""Tests for file_handler module.

Covers:
- validate_relative_path: containment, absolute paths, parent references
- decode_bytes / read_file_with_encoding: UTF-8 and legacy encodings
- write_file: parent creation, permission bits
- atomic_write_text: replaces existing content, cleans up on failure
"""

import os
import stat
import sys

import pytest

from scaffold_sync.errors import PathTraversalError
from scaffold_sync.file_handler import (
    atomic_write_text,
    decode_bytes,
    read_file_with_encoding,
    validate_relative_path,
    write_file,
)


class TestValidateRelativePath:
    def test_plain_path(self, tmp_path):
        target = validate_relative_path(tmp_path, "a/b.txt")
        assert target == tmp_path.resolve() / "a" / "b.txt"

    def test_backslashes_are_separators(self, tmp_path):
        target = validate_relative_path(tmp_path, "a\\b.txt")
        assert target == tmp_path.resolve() / "a" / "b.txt"

    @pytest.mark.parametrize("rel", ["/etc/passwd", "../x", "a/../../x", "a/../b"])
    def test_rejected(self, tmp_path, rel):
        with pytest.raises(PathTraversalError):
            validate_relative_path(tmp_path, rel)

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
    def test_symlink_escape_rejected(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(outside)
        with pytest.raises(PathTraversalError, match="escapes project root"):
            validate_relative_path(root, "link/file.txt")


class TestDecoding:
    def test_empty(self):
        assert decode_bytes(b"") == ""

    def test_utf8(self):
        assert decode_bytes("한국어 text".encode("utf-8")) == "한국어 text"

    def test_legacy_encoding_is_detected(self):
        raw = ("Configuración del proyecto: número de versión " * 4).encode("latin-1")
        assert "Configuraci" in decode_bytes(raw)

    def test_read_file_with_encoding(self, tmp_path):
        path = tmp_path / "f.txt"
        path.write_bytes("héllo\n".encode("utf-8"))
        assert read_file_with_encoding(path) == "héllo\n"


class TestWriteFile:
    def test_creates_parents_and_returns_size(self, tmp_path):
        path = tmp_path / "deep" / "nested" / "f.txt"
        assert write_file(path, "abc") == 3
        assert path.read_text(encoding="utf-8") == "abc"

    def test_bytes_content(self, tmp_path):
        path = tmp_path / "f.bin"
        write_file(path, b"\x00\x01")
        assert path.read_bytes() == b"\x00\x01"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_mode_applied(self, tmp_path):
        path = tmp_path / "run.sh"
        write_file(path, "#!/bin/sh\n", mode=0o755)
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o755


class TestAtomicWriteText:
    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("old", encoding="utf-8")
        atomic_write_text(path, "new")
        assert path.read_text(encoding="utf-8") == "new"
        assert list(tmp_path.iterdir()) == [path]

    def test_failure_removes_temp_file(self, tmp_path, monkeypatch):
        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("scaffold_sync.file_handler.os.replace", boom)
        with pytest.raises(OSError, match="disk full"):
            atomic_write_text(tmp_path / "state.json", "data")
        assert list(tmp_path.iterdir()) == []
