from pathlib import Path
from typing import List, Optional

import pytest
from hypothesis import settings

from chopper_core.store import open_store
from chopper_core.types import ChunkRecord

# Prevent Hypothesis from writing a local example database (e.g. `.hypothesis/`) during tests.
settings.register_profile("chopper-tests", database=None, deadline=None)
settings.load_profile("chopper-tests")

# Small dimension keeps the tests fast; the store treats every D the same way.
DIM = 8


def unit(index: int, dim: int = DIM, value: float = 1.0) -> List[float]:
    """Basis vector with ``value`` at ``index``."""
    vec = [0.0] * dim
    vec[index] = value
    return vec


def make_record(
    embedding: List[float],
    *,
    name: str = "chunk",
    file_path: Optional[str] = None,
    doc: Optional[str] = None,
) -> ChunkRecord:
    path = file_path or f"src/{name}.py"
    return ChunkRecord(
        file_name=Path(path).name,
        file_path=path,
        chunk_text=f"def {name}():\n    pass",
        inline_document=doc,
        entity_name=name,
        embedding=list(embedding),
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "code_chunks.db"


@pytest.fixture
def store(db_path: Path):
    with open_store(db_path, DIM) as s:
        yield s


def write_project(root: Path) -> Path:
    """Write a tiny source tree used by the indexing and CLI tests."""
    pkg = root / "project" / "pkg"
    pkg.mkdir(parents=True)
    (pkg / "geometry.py").write_text(
        '"""Geometry helpers."""\n'
        "import math\n"
        "\n"
        "\n"
        "def area(radius):\n"
        '    """Area of a circle."""\n'
        "    return math.pi * radius ** 2\n"
        "\n"
        "\n"
        "class Shape:\n"
        '    """Base shape."""\n'
        "\n"
        "    sides = 0\n"
        "\n"
        "    def perimeter(self):\n"
        "        return 0\n",
        encoding="utf-8",
    )
    (pkg / "util.js").write_text(
        "export function add(a, b) {\n  return a + b;\n}\n",
        encoding="utf-8",
    )
    ignored = root / "project" / "node_modules" / "dep"
    ignored.mkdir(parents=True)
    (ignored / "index.js").write_text("module.exports = 1;\n", encoding="utf-8")
    return root / "project"
