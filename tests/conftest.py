"""Pytest configuration and fixtures for codemap tests."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from codemap.config import EngineConfig
from codemap.dependency import DependencyAnalyzer
from codemap.indexer import CodebaseIndexer
from codemap.models import CodeIndex


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the config file at a throwaway location for every test."""
    home = tmp_path_factory.mktemp("codemap_home")
    monkeypatch.setattr("codemap.config.BASE_DIR", home)
    monkeypatch.setattr("codemap.config.CONFIG_FILE", home / "config.toml")
    return home / "config.toml"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def sample_project_copy(temp_dir: Path, sample_project_path: Path) -> Path:
    """A writable copy of the sample project."""
    target = temp_dir / "sample_project"
    shutil.copytree(sample_project_path, target)
    return target


@pytest.fixture
def abs_path() -> Callable[..., str]:
    """Build the normalised absolute path the indexer records for a file."""
    def _build(root: Path, *parts: str) -> str:
        return os.path.normpath(os.path.abspath(os.path.join(str(root), *parts)))
    return _build


@pytest.fixture
def write_files(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative_path: content}`` under a fresh project root."""
    def _write(files: Dict[str, str]) -> Path:
        root = temp_dir / "project"
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root
    return _write


@pytest.fixture
def two_file_project(write_files) -> Path:
    """``a.js`` requires ``b.js`` and calls its ``bar``."""
    return write_files({
        "a.js": "const { bar } = require('./b');\n\nfunction foo() {\n  bar();\n}\n",
        "b.js": "function bar() {}\n\nmodule.exports = { bar };\n",
    })


@pytest.fixture
def sample_index(sample_project_path: Path) -> CodeIndex:
    """Code index of the sample project."""
    return CodebaseIndexer(EngineConfig()).index_codebase(sample_project_path)


@pytest.fixture
def sample_graph(sample_index: CodeIndex):
    """Dependency graph of the sample project."""
    return DependencyAnalyzer(EngineConfig()).build_dependency_graph(sample_index)
