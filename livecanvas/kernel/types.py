"""
livecanvas Kernel — Shared Types

Data classes used across the file system, transformer, import map builder,
preview assembler and pipeline. These are the contracts that bind the kernel
together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, model_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ROOT_PATH = "/"
DEFAULT_ROOT_ALIAS = "@/"

# Priority order for extension-optional and directory-index resolution
SOURCE_EXTENSIONS: tuple[str, ...] = (".jsx", ".tsx", ".js", ".ts", ".mjs")
STYLESHEET_EXTENSIONS: tuple[str, ...] = (".css",)

DEFAULT_ENTRY_POINTS: tuple[str, ...] = (
    "/App.jsx",
    "/App.tsx",
    "/index.jsx",
    "/index.tsx",
    "/App.js",
    "/index.js",
)

DEFAULT_MODULE_CDN_URL = "https://esm.sh"
DEFAULT_STYLE_CDN_URL = "https://cdn.tailwindcss.com"
DEFAULT_REACT_VERSION = "19"

# Always present in the import map; every other package shares these
REACT_CORE_SPECIFIERS: tuple[str, ...] = (
    "react",
    "react-dom",
    "react-dom/client",
    "react/jsx-runtime",
)


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass
class Node:
    """
    One entry in the file system's node table.

    Children are keyed by name and point at the child's canonical path,
    never at the child object. The table owns the nodes; callers only ever
    see copies.
    """

    path: str
    name: str
    kind: NodeKind
    content: str | None = None
    children: dict[str, str] = field(default_factory=dict)

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    def copy(self) -> Node:
        return Node(
            path=self.path,
            name=self.name,
            kind=self.kind,
            content=self.content,
            children=dict(self.children),
        )


@dataclass(frozen=True)
class FileEntry:
    """A file descriptor yielded by FileSystem.list_files()."""

    path: str
    name: str


@dataclass(frozen=True)
class DirectoryEntry:
    """A direct child of a directory, either kind."""

    path: str
    name: str
    kind: NodeKind


@dataclass(frozen=True)
class ChangeEvent:
    """Emitted by the file system after every successful mutation."""

    kind: Literal["create", "update", "delete", "rename", "load", "reset"]
    path: str
    version: int
    old_path: str | None = None


class SerializedNode(BaseModel):
    """
    One record of the serialized representation handed to persistence.

    Older project payloads used `type` instead of `kind` and carried `name`
    and `path` keys; those are accepted and ignored.
    """

    model_config = {"extra": "ignore"}

    kind: Literal["file", "directory"]
    content: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_type_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and "kind" not in data and "type" in data:
            data = {**data, "kind": data["type"]}
        return data


# ---------------------------------------------------------------------------
# Transformation
# ---------------------------------------------------------------------------


class Dialect(str, Enum):
    """Syntax dialect of a source file, chosen once from its extension."""

    MARKUP = "markup"  # .jsx / .tsx, JSX lowered to createElement calls
    SCRIPT = "script"  # .js / .mjs / .ts


@dataclass
class TransformResult:
    """
    Result of transforming one source file.
    The transformer never throws; it always returns one of these.
    """

    path: str
    dialect: Dialect
    compiled_code: str = ""
    error: str | None = None
    line: int | None = None
    column: int | None = None
    imports: list[str] = field(default_factory=list)  # canonical specifiers, first-seen order
    imported_names: dict[str, list[str]] = field(default_factory=dict)
    stylesheets: dict[str, str] = field(default_factory=dict)  # resolved path → CSS text
    missing_stylesheets: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Import map + preview
# ---------------------------------------------------------------------------


@dataclass
class PreviewOptions:
    """Options controlling resolution and the assembled document."""

    root_alias: str = DEFAULT_ROOT_ALIAS
    module_cdn_url: str = DEFAULT_MODULE_CDN_URL
    style_cdn_url: str = DEFAULT_STYLE_CDN_URL
    react_version: str = DEFAULT_REACT_VERSION
    package_versions: dict[str, str] = field(default_factory=dict)
    entry_points: tuple[str, ...] = DEFAULT_ENTRY_POINTS
    source_extensions: tuple[str, ...] = SOURCE_EXTENSIONS
    title: str = "Preview"


@dataclass
class ImportMap:
    """Module resolution table for one pipeline run."""

    imports: dict[str, str] = field(default_factory=dict)
    styles: str = ""
    errors: list[TransformResult] = field(default_factory=list)
    placeholders: dict[str, str] = field(default_factory=dict)  # specifier → stand-in name
    handles: list[str] = field(default_factory=list)  # every handle minted for this map

    def to_json(self) -> dict[str, Any]:
        return {"imports": dict(self.imports)}


@dataclass
class PreviewBuild:
    """Everything one pipeline run produced."""

    html: str
    import_map: ImportMap
    entry_point: str | None
    version: int

    @property
    def errors(self) -> list[TransformResult]:
        return self.import_map.errors

    @property
    def handles(self) -> list[str]:
        return self.import_map.handles


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass
class CommandResult:
    """
    Result of applying one file command.
    Tree errors are reported here instead of raised.
    """

    applied: bool
    message: str = ""
    error: str | None = None

