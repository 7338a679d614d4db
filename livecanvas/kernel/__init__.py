"""
livecanvas Kernel — project model and live preview pipeline.

Components:
  vfs          — in-memory file tree (CRUD, traversal, serialize/load)
  commands     — validated file commands translated onto the tree
  transformer  — one source file → executable ES module (tree-sitter)
  import_map   — transform results → browser import map
  preview      — import map + styles + entry point → HTML document
  pipeline     — change events → coalesced preview builds
"""

from livecanvas.kernel.commands import apply_command, parse_command
from livecanvas.kernel.import_map import DataUrlMinter, MemoryMinter, ModuleMinter, build_import_map
from livecanvas.kernel.paths import normalize_path
from livecanvas.kernel.pipeline import PreviewPipeline
from livecanvas.kernel.preview import find_entry_point, render_preview
from livecanvas.kernel.transformer import TransformError, transform_files, transform_source
from livecanvas.kernel.types import PreviewOptions
from livecanvas.kernel.vfs import (
    ConflictError,
    FileSystem,
    InvalidOperationError,
    NotFoundError,
    VfsError,
)

__all__ = [
    "normalize_path",
    "FileSystem",
    "VfsError",
    "ConflictError",
    "NotFoundError",
    "InvalidOperationError",
    "parse_command",
    "apply_command",
    "transform_source",
    "transform_files",
    "TransformError",
    "build_import_map",
    "ModuleMinter",
    "DataUrlMinter",
    "MemoryMinter",
    "find_entry_point",
    "render_preview",
    "PreviewOptions",
    "PreviewPipeline",
]
