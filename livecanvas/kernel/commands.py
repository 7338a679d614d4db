"""
livecanvas Kernel — File Commands

The fixed vocabulary an automation layer uses to edit a project:
create, str_replace, insert, rename, delete, view.

Each command is validated as a pydantic model, then translated 1:1 onto the
FileSystem. apply_command() never throws for tree errors: it reports them in
the CommandResult with the error's stable code ("NOT_FOUND: ...").
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from livecanvas.kernel.types import CommandResult, NodeKind
from livecanvas.kernel.vfs import FileSystem, VfsError

# ---------------------------------------------------------------------------
# Command models
# ---------------------------------------------------------------------------


class CreateCommand(BaseModel):
    """Create a file, or overwrite it if it already exists."""

    model_config = {"extra": "forbid"}

    command: Literal["create"]
    path: str = Field(min_length=1)
    file_text: str = ""


class StrReplaceCommand(BaseModel):
    """Replace every occurrence of old_str in a file."""

    model_config = {"extra": "forbid"}

    command: Literal["str_replace"]
    path: str = Field(min_length=1)
    old_str: str = Field(min_length=1)
    new_str: str = ""


class InsertCommand(BaseModel):
    """Insert text after line `insert_line` (0 inserts at the top)."""

    model_config = {"extra": "forbid"}

    command: Literal["insert"]
    path: str = Field(min_length=1)
    insert_line: int = Field(ge=0)
    new_str: str


class RenameCommand(BaseModel):
    model_config = {"extra": "forbid"}

    command: Literal["rename"]
    path: str = Field(min_length=1)
    new_path: str = Field(min_length=1)


class DeleteCommand(BaseModel):
    model_config = {"extra": "forbid"}

    command: Literal["delete"]
    path: str = Field(min_length=1)


class ViewCommand(BaseModel):
    """Show a file with line numbers, or list a directory."""

    model_config = {"extra": "forbid"}

    command: Literal["view"]
    path: str = Field(min_length=1)
    view_range: tuple[int, int] | None = None


FileCommand = Annotated[
    Union[CreateCommand, StrReplaceCommand, InsertCommand, RenameCommand, DeleteCommand, ViewCommand],
    Field(discriminator="command"),
]

_COMMAND_ADAPTER: TypeAdapter[Any] = TypeAdapter(FileCommand)

COMMAND_NAMES: tuple[str, ...] = ("create", "str_replace", "insert", "rename", "delete", "view")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_command(payload: dict[str, Any]) -> FileCommand:
    """
    Validate a raw command dict.
    Raises pydantic.ValidationError for unknown commands or malformed fields.
    """
    return _COMMAND_ADAPTER.validate_python(payload)


def apply_command(fs: FileSystem, command: FileCommand | dict[str, Any]) -> CommandResult:
    """
    Apply one command to the file system.
    Tree errors come back as CommandResult(applied=False, error="CODE: message").
    """
    if isinstance(command, dict):
        command = parse_command(command)

    handler = _HANDLERS[command.command]
    try:
        return handler(fs, command)
    except VfsError as e:
        return _reject(e.code, str(e))


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _reject(code: str, msg: str) -> CommandResult:
    return CommandResult(applied=False, error=f"{code}: {msg}")


def _ok(message: str) -> CommandResult:
    return CommandResult(applied=True, message=message)


def _handle_create(fs: FileSystem, cmd: CreateCommand) -> CommandResult:
    existed = fs.read_file(cmd.path) is not None
    fs.create_file(cmd.path, cmd.file_text)
    verb = "overwritten" if existed else "created"
    return _ok(f"File {verb}: {cmd.path}")


def _handle_str_replace(fs: FileSystem, cmd: StrReplaceCommand) -> CommandResult:
    content = fs.read_file(cmd.path)
    if content is None:
        return _reject("NOT_FOUND", f"File not found: {cmd.path}")

    occurrences = content.count(cmd.old_str)
    if occurrences == 0:
        return _reject("NOT_FOUND", f"String not found in {cmd.path}: {cmd.old_str!r}")

    fs.update_file(cmd.path, content.replace(cmd.old_str, cmd.new_str))
    plural = "" if occurrences == 1 else "s"
    return _ok(f"Replaced {occurrences} occurrence{plural} in {cmd.path}")


def _handle_insert(fs: FileSystem, cmd: InsertCommand) -> CommandResult:
    content = fs.read_file(cmd.path)
    if content is None:
        return _reject("NOT_FOUND", f"File not found: {cmd.path}")

    lines = content.split("\n")
    if cmd.insert_line > len(lines):
        return _reject(
            "INVALID_OPERATION",
            f"insert_line {cmd.insert_line} is past the end of {cmd.path} ({len(lines)} lines)",
        )

    lines.insert(cmd.insert_line, cmd.new_str)
    fs.update_file(cmd.path, "\n".join(lines))
    return _ok(f"Inserted text after line {cmd.insert_line} in {cmd.path}")


def _handle_rename(fs: FileSystem, cmd: RenameCommand) -> CommandResult:
    fs.rename(cmd.path, cmd.new_path)
    return _ok(f"Renamed {cmd.path} to {cmd.new_path}")


def _handle_delete(fs: FileSystem, cmd: DeleteCommand) -> CommandResult:
    fs.delete(cmd.path)
    return _ok(f"Deleted {cmd.path}")


def _handle_view(fs: FileSystem, cmd: ViewCommand) -> CommandResult:
    node = fs.get_node(cmd.path)
    if node is None:
        return _reject("NOT_FOUND", f"Path not found: {cmd.path}")

    if node.is_directory:
        entries = fs.list_directory(cmd.path)
        if not entries:
            return _ok("(empty directory)")
        listing = [
            f"[{'DIR' if entry.kind is NodeKind.DIRECTORY else 'FILE'}] {entry.name}"
            for entry in entries
        ]
        return _ok("\n".join(listing))

    lines = (node.content or "").split("\n")
    start, end = 1, len(lines)
    if cmd.view_range is not None:
        start, end = cmd.view_range
        if end == -1:
            end = len(lines)
        if start < 1 or start > len(lines) or end < start:
            return _reject("INVALID_OPERATION", f"Invalid view_range {list(cmd.view_range)} for {cmd.path}")
        end = min(end, len(lines))

    numbered = [f"{n}\t{lines[n - 1]}" for n in range(start, end + 1)]
    return _ok("\n".join(numbered))


_HANDLERS: dict[str, Callable[[FileSystem, Any], CommandResult]] = {
    "create": _handle_create,
    "str_replace": _handle_str_replace,
    "insert": _handle_insert,
    "rename": _handle_rename,
    "delete": _handle_delete,
    "view": _handle_view,
}
