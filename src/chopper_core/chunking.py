"""Source file chunk extraction.

Produces a lazy, finite, deterministic sequence of ``ChunkDescriptor``:
- Python files are split along function and class definitions with ``ast``;
  each chunk carries its docstring, enclosing scope and definition name
- Other files with a configured extension are split into fixed line windows
- Imports are never chunked and empty chunks are never produced
"""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union
import ast
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: Tuple[str, ...] = (
    ".py", ".pyi", ".js", ".jsx", ".ts", ".tsx", ".go", ".rs", ".java",
    ".c", ".h", ".cc", ".cpp", ".hpp", ".rb", ".php", ".cs", ".swift", ".kt",
)
DEFAULT_EXCLUDE_DIRS: Tuple[str, ...] = (
    ".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache",
)

_PY_SUFFIXES = (".py", ".pyi")
_DEF_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)
_IMPORT_NODES = (ast.Import, ast.ImportFrom)


@dataclass(frozen=True)
class ChunkingOptions:
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude_dirs: Tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    max_file_bytes: int = 1_000_000
    window_lines: int = 60

    def __post_init__(self) -> None:
        if self.max_file_bytes <= 0:
            raise ValueError("max_file_bytes must be positive")
        if self.window_lines <= 0:
            raise ValueError("window_lines must be positive")
        if not self.extensions:
            raise ValueError("extensions must be non-empty")


@dataclass(frozen=True)
class ChunkDescriptor:
    file_path: str
    content: str
    documentation: Optional[str] = None
    parent_path: Optional[str] = None
    entity_name: Optional[str] = None
    start_line: int = 1
    end_line: int = 1


def iter_source_files(root: Union[str, Path], options: ChunkingOptions) -> Iterator[Path]:
    """Yield candidate files under ``root`` in sorted order."""
    root_path = Path(root)
    if root_path.is_file():
        yield root_path
        return

    extensions = {e.lower() for e in options.extensions}
    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = sorted(
            d for d in dirnames if not any(fnmatch(d, pat) for pat in options.exclude_dirs)
        )
        for name in sorted(filenames):
            if Path(name).suffix.lower() in extensions:
                yield Path(dirpath) / name


def read_source_file(path: Path, options: ChunkingOptions) -> Optional[str]:
    try:
        if path.stat().st_size > options.max_file_bytes:
            logger.debug(f"Skipping {path}: larger than {options.max_file_bytes} bytes")
            return None
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logger.debug(f"Skipping {path}: not valid UTF-8")
        return None
    except OSError as e:
        logger.warning(f"Skipping {path}: {e}")
        return None


def _segment(lines: Sequence[str], start: int, end: int) -> str:
    """Lines ``start``..``end`` (1-based, inclusive) without trailing blank lines."""
    return "".join(lines[start - 1:end]).rstrip()


def _is_docstring(node: ast.stmt) -> bool:
    return (
        isinstance(node, ast.Expr)
        and isinstance(node.value, ast.Constant)
        and isinstance(node.value.value, str)
    )


def _node_start(node: ast.AST) -> int:
    decorators = getattr(node, "decorator_list", None) or []
    return min([node.lineno] + [d.lineno for d in decorators])


def _python_chunks(file_path: str, source: str) -> List[ChunkDescriptor]:
    tree = ast.parse(source)
    lines = source.splitlines(keepends=True)
    chunks: List[ChunkDescriptor] = []

    def visit_definitions(body: Sequence[ast.stmt], scope: List[str]) -> None:
        for node in body:
            if not isinstance(node, _DEF_NODES):
                continue
            start = _node_start(node)
            end = node.end_lineno or node.lineno
            if isinstance(node, ast.ClassDef):
                nested = [n for n in node.body if isinstance(n, _DEF_NODES)]
                if nested:
                    end = _node_start(nested[0]) - 1
            text = _segment(lines, start, end)
            if text.strip():
                chunks.append(
                    ChunkDescriptor(
                        file_path=file_path,
                        content=text,
                        documentation=ast.get_docstring(node),
                        parent_path=".".join(scope) or None,
                        entity_name=node.name,
                        start_line=start,
                        end_line=end,
                    )
                )
            visit_definitions(node.body, scope + [node.name])

    # Top-level statements between definitions, imports excluded.
    pending: List[ast.stmt] = []

    def flush() -> None:
        if not pending:
            return
        start, end = _node_start(pending[0]), pending[-1].end_lineno or pending[-1].lineno
        text = _segment(lines, start, end)
        if text.strip():
            chunks.append(
                ChunkDescriptor(file_path=file_path, content=text, start_line=start, end_line=end)
            )
        pending.clear()

    for index, node in enumerate(tree.body):
        if isinstance(node, _DEF_NODES):
            flush()
            visit_definitions([node], [])
        elif isinstance(node, _IMPORT_NODES):
            flush()
        elif index == 0 and _is_docstring(node):
            continue  # module docstring
        else:
            pending.append(node)
    flush()

    chunks.sort(key=lambda c: (c.start_line, c.end_line))
    return chunks


def _window_chunks(file_path: str, source: str, window_lines: int) -> List[ChunkDescriptor]:
    lines = source.splitlines(keepends=True)
    chunks: List[ChunkDescriptor] = []
    for start in range(1, len(lines) + 1, window_lines):
        end = min(start + window_lines - 1, len(lines))
        text = _segment(lines, start, end)
        if text.strip():
            chunks.append(ChunkDescriptor(file_path=file_path, content=text, start_line=start, end_line=end))
    return chunks


def chunk_source(file_path: str, source: str, options: Optional[ChunkingOptions] = None) -> List[ChunkDescriptor]:
    """Split one file's text into chunks."""
    opts = options or ChunkingOptions()
    if Path(file_path).suffix.lower() in _PY_SUFFIXES:
        try:
            return _python_chunks(file_path, source)
        except (SyntaxError, ValueError) as e:
            logger.debug(f"Falling back to line windows for {file_path}: {e}")
    return _window_chunks(file_path, source, opts.window_lines)


def iter_file_chunks(
    root: Union[str, Path],
    options: Optional[ChunkingOptions] = None,
) -> Iterator[Tuple[Path, List[ChunkDescriptor]]]:
    """Yield ``(path, chunks)`` for every readable eligible file under ``root``.

    Files that are skipped (too large, not UTF-8, unreadable) are not yielded;
    readable files without chunks are, with an empty list.
    """
    opts = options or ChunkingOptions()
    for path in iter_source_files(root, opts):
        source = read_source_file(path, opts)
        if source is None:
            continue
        yield path, chunk_source(str(path), source, opts)


def iter_directory_chunks(
    root: Union[str, Path],
    options: Optional[ChunkingOptions] = None,
) -> Iterator[ChunkDescriptor]:
    """Lazily yield chunks for every eligible file under ``root``."""
    for _, chunks in iter_file_chunks(root, options):
        yield from chunks


__all__ = [
    "DEFAULT_EXTENSIONS",
    "DEFAULT_EXCLUDE_DIRS",
    "ChunkingOptions",
    "ChunkDescriptor",
    "iter_source_files",
    "read_source_file",
    "chunk_source",
    "iter_file_chunks",
    "iter_directory_chunks",
]
