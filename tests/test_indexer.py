"""Tests for the codebase indexer."""

import logging
import os
from pathlib import Path

import pytest

from codemap.config import EngineConfig
from codemap.errors import CodebaseNotFoundError
from codemap.indexer import CodebaseIndexer
from codemap.models import CodeIndex


def test_index_sample_project(sample_project_path: Path, abs_path):
    """Test files, functions and classes found in the sample project."""
    index = CodebaseIndexer().index_codebase(sample_project_path)

    assert [f.name for f in index.files] == [
        "index.ts", "crypto.js", "login.js", "Profile.tsx", "users.js",
    ]
    assert sorted(f.name for f in index.functions) == [
        "Profile", "findUser", "hashPassword", "loginUser", "validateLogin",
    ]
    assert sorted(c.name for c in index.classes) == ["AuthController", "UserRepository"]

    meta = index.metadata
    assert (meta.total_files, meta.total_functions, meta.total_classes) == (5, 5, 2)
    assert meta.indexed_at is not None

    login_file = index.get_file(abs_path(sample_project_path, "src", "auth", "login.js"))
    assert login_file is not None
    assert login_file.extension == ".js"
    assert [f.name for f in login_file.functions] == ["loginUser", "validateLogin"]
    assert login_file.functions[0].params == ["username", "password"]
    assert login_file.functions[0].file_path == login_file.path
    assert login_file.last_modified is not None


def test_class_methods_and_ts_params(sample_index, abs_path, sample_project_path: Path):
    """Test method extraction from JS and TS classes."""
    repo = next(c for c in sample_index.classes if c.name == "UserRepository")
    assert [m.name for m in repo.methods] == ["constructor", "save"]

    controller = next(c for c in sample_index.classes if c.name == "AuthController")
    assert controller.file_path == abs_path(sample_project_path, "src", "api", "index.ts")
    assert controller.methods[0].name == "handleLogin"
    assert controller.methods[0].params == ["username", "password"]


def test_missing_root_raises(temp_dir: Path):
    with pytest.raises(CodebaseNotFoundError):
        CodebaseIndexer().index_codebase(temp_dir / "does-not-exist")


def test_file_root_raises(write_files):
    root = write_files({"a.js": "function a() {}\n"})
    with pytest.raises(CodebaseNotFoundError):
        CodebaseIndexer().index_codebase(root / "a.js")


def test_excluded_dirs_and_extensions(write_files):
    """Test that excluded directories and foreign extensions are skipped."""
    root = write_files({
        "app.js": "function app() {}\n",
        "node_modules/lib/index.js": "function lib() {}\n",
        "dist/bundle.js": "function bundle() {}\n",
        "notes.md": "# notes\n",
        "style.css": "body {}\n",
    })
    index = CodebaseIndexer().index_codebase(root)
    assert [f.name for f in index.files] == ["app.js"]


def test_depth_limit(write_files):
    """Test that the root is depth 0 and deeper directories are not visited."""
    root = write_files({
        "top.js": "function top() {}\n",
        "a/one.js": "function one() {}\n",
        "a/b/two.js": "function two() {}\n",
        "a/b/c/three.js": "function three() {}\n",
    })
    shallow = CodebaseIndexer(EngineConfig(index_depth=1)).index_codebase(root)
    assert sorted(f.name for f in shallow.files) == ["one.js", "top.js"]

    default = CodebaseIndexer().index_codebase(root)
    assert sorted(f.name for f in default.files) == ["one.js", "three.js", "top.js", "two.js"]


def test_parse_error_indexes_file_without_elements(write_files, caplog):
    """Test that a malformed file is kept with empty function/class lists."""
    root = write_files({
        "broken.js": "function broken( {\n",
        "ok.js": "function ok() {}\n",
    })
    with caplog.at_level(logging.WARNING, logger="codemap.indexer"):
        index = CodebaseIndexer().index_codebase(root)

    broken = next(f for f in index.files if f.name == "broken.js")
    assert broken.functions == []
    assert broken.classes == []
    assert [f.name for f in index.functions] == ["ok"]
    assert "broken.js" in caplog.text


def test_undecodable_file_is_skipped(write_files, caplog):
    root = write_files({"ok.js": "function ok() {}\n"})
    (root / "binary.js").write_bytes(b"\xff\xfe\x00\x81 not utf-8")

    with caplog.at_level(logging.WARNING, logger="codemap.indexer"):
        index = CodebaseIndexer().index_codebase(root)

    assert [f.name for f in index.files] == ["ok.js"]
    assert "binary.js" in caplog.text


def test_size_is_utf8_byte_length(write_files):
    root = write_files({"cafe.js": "const café = 1;\n"})
    index = CodebaseIndexer().index_codebase(root)
    assert index.files[0].size == len("const café = 1;\n".encode("utf-8"))


def test_index_file_replaces_existing_entry(write_files):
    """Test re-indexing one file without duplicating its elements."""
    root = write_files({"a.js": "function first() {}\n"})
    indexer = CodebaseIndexer()
    indexer.index_codebase(root)

    (root / "a.js").write_text("function second() {}\nfunction third() {}\n", encoding="utf-8")
    entry = indexer.index_file(root / "a.js")

    assert [f.name for f in entry.functions] == ["second", "third"]
    assert len(indexer.code_index.files) == 1
    assert [f.name for f in indexer.code_index.functions] == ["second", "third"]
    assert indexer.code_index.metadata.total_functions == 2


def test_search_index_is_case_insensitive(sample_project_path: Path):
    indexer = CodebaseIndexer()
    indexer.index_codebase(sample_project_path)

    result = indexer.search_index(file_name="LOGIN", function_name="user", class_name="controller")
    assert [f.name for f in result.files] == ["login.js"]
    assert sorted(f.name for f in result.functions) == ["findUser", "loginUser"]
    assert [c.name for c in result.classes] == ["AuthController"]

    assert indexer.search_index().files == []


def test_full_scan_skips_per_file_replacement(write_files, monkeypatch):
    """Test that a scan neither removes entries nor recounts per file."""
    root = write_files({f"f{i}.js": f"function f{i}() {{}}\n" for i in range(5)})
    calls = {"remove": 0, "update": 0}
    original_update = CodeIndex.update_metadata

    def count_remove(self, path):
        calls["remove"] += 1
        return False

    def count_update(self, indexed_at=None):
        calls["update"] += 1
        original_update(self, indexed_at)

    monkeypatch.setattr(CodeIndex, "remove_file", count_remove)
    monkeypatch.setattr(CodeIndex, "update_metadata", count_update)
    index = CodebaseIndexer().index_codebase(root)

    assert calls == {"remove": 0, "update": 1}
    assert index.metadata.total_files == 5
    assert index.metadata.total_functions == 5


def test_unreadable_directory_is_logged_and_siblings_indexed(write_files, monkeypatch, caplog):
    """Test that a directory read failure does not stop the scan."""
    root = write_files({
        "a/one.js": "function one() {}\n",
        "locked/hidden.js": "function hidden() {}\n",
        "z/two.js": "function two() {}\n",
    })
    locked = os.path.normpath(os.path.abspath(str(root / "locked")))
    real_scandir = os.scandir

    def scandir(path):
        if os.path.normpath(str(path)) == locked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr("codemap.indexer.os.scandir", scandir)
    with caplog.at_level(logging.WARNING, logger="codemap.indexer"):
        index = CodebaseIndexer().index_codebase(root)

    assert sorted(f.name for f in index.files) == ["one.js", "two.js"]
    assert "Error reading directory" in caplog.text
    assert "locked" in caplog.text
