"""
livecanvas Kernel — Source Transformer

Turns one JSX/TSX-flavored source file into an ES module the browser can run
directly, using tree-sitter as the syntax engine.

What happens to a file:
- JSX is lowered to createElement calls (markup dialect only)
- TypeScript-only syntax is erased (annotations, interfaces, `as`, ...)
- local specifiers ("./x", "../x", "/x", "@/x") are rewritten to the
  alias-qualified absolute form, so the import map can resolve them no matter
  what URL the importing module was loaded from
- stylesheet imports are removed and their CSS collected on the side

A syntax error never raises out of transform_source(): the result comes back
with `error` set so the rest of the preview can still build.
"""

from __future__ import annotations

import html
import json
import logging
import re
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any, NamedTuple

import tree_sitter_typescript as ts_typescript
from tree_sitter import Language, Parser

from livecanvas.kernel.paths import (
    is_relative_specifier,
    normalize_path,
    parent_path,
    resolve_relative,
    split_extension,
)
from livecanvas.kernel.types import (
    DEFAULT_ROOT_ALIAS,
    STYLESHEET_EXTENSIONS,
    Dialect,
    TransformResult,
)

logger = logging.getLogger(__name__)

_PARSERS: dict[Dialect, Parser] = {
    Dialect.MARKUP: Parser(Language(ts_typescript.language_tsx())),
    Dialect.SCRIPT: Parser(Language(ts_typescript.language_typescript())),
}

_DIALECTS: dict[str, Dialect] = {
    ".jsx": Dialect.MARKUP,
    ".tsx": Dialect.MARKUP,
    ".js": Dialect.SCRIPT,
    ".mjs": Dialect.SCRIPT,
    ".ts": Dialect.SCRIPT,
}

# Kept on the first line so compiled line numbers match the source
JSX_RUNTIME_IMPORT = 'import { createElement as __jsx, Fragment as __Fragment } from "react";'

# Statements and clauses that only exist for the type checker
_ERASED_NODES = frozenset({
    "type_annotation",
    "type_arguments",
    "type_parameters",
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "function_signature",
    "abstract_method_signature",
    "implements_clause",
    "accessibility_modifier",
    "override_modifier",
    "index_signature",
    "method_signature",
})

_TYPE_ONLY_DECLARATIONS = frozenset({
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "function_signature",
})

_JSX_ELEMENTS = frozenset({"jsx_element", "jsx_self_closing_element", "jsx_fragment"})
_JSX_CHILD_NODES = _JSX_ELEMENTS | {"jsx_expression"}

_LINE_BREAK = re.compile(r"\r\n|\n|\r")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TransformError(Exception):
    """A source file could not be transformed (syntax error)."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} ({self.line}:{self.column})"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def dialect_for(path: str) -> Dialect | None:
    """The dialect a file is compiled as, or None if it is not a source file."""
    return _DIALECTS.get(split_extension(normalize_path(path))[1])


def is_source_file(path: str) -> bool:
    return dialect_for(path) is not None


def is_stylesheet(path: str) -> bool:
    return split_extension(path)[1] in STYLESHEET_EXTENSIONS


def transform_source(
    path: str,
    source: str,
    stylesheets: Mapping[str, str] | None = None,
    *,
    alias: str = DEFAULT_ROOT_ALIAS,
) -> TransformResult:
    """
    Transform one source file.

    Args:
        path: The file's path in the project (decides the dialect)
        source: Raw file text
        stylesheets: Project stylesheets as path → CSS, used to resolve CSS imports
        alias: Root alias prefix local specifiers are rewritten to

    Returns:
        TransformResult; `error` is set instead of raising on syntax errors
    """
    path = normalize_path(path)
    dialect = dialect_for(path)
    if dialect is None:
        raise ValueError(f"Not a source file: {path}")

    compiled = _compile_cached(path, source, alias)
    result = TransformResult(path=path, dialect=dialect)
    if compiled.error is not None:
        logger.warning("transformer: %s failed to compile: %s", path, compiled.error)
        result.error = compiled.error
        result.line = compiled.line
        result.column = compiled.column
        return result

    result.compiled_code = compiled.code
    result.imports = list(compiled.imports)
    result.imported_names = {spec: list(names) for spec, names in compiled.imported_names}

    stylesheets = stylesheets or {}
    for specifier, css_path in compiled.stylesheet_imports:
        css = stylesheets.get(css_path) if css_path else None
        if css is None:
            logger.warning("transformer: %s imports missing stylesheet %s", path, specifier)
            result.missing_stylesheets.append(specifier)
        else:
            result.stylesheets[css_path] = css
    return result


def transform_files(files: Mapping[str, str], *, alias: str = DEFAULT_ROOT_ALIAS) -> list[TransformResult]:
    """
    Transform every source file of a path → content mapping.
    The mapping's stylesheets are what CSS imports resolve against.
    Each result depends only on its own file, so order does not matter.
    """
    stylesheets = {normalize_path(p): c for p, c in files.items() if is_stylesheet(p)}
    return [
        transform_source(path, content, stylesheets, alias=alias)
        for path, content in files.items()
        if is_source_file(path)
    ]


# ---------------------------------------------------------------------------
# Compilation (cached per path + source)
# ---------------------------------------------------------------------------


class _Compiled(NamedTuple):
    code: str = ""
    error: str | None = None
    line: int | None = None
    column: int | None = None
    imports: tuple[str, ...] = ()
    imported_names: tuple[tuple[str, tuple[str, ...]], ...] = ()
    stylesheet_imports: tuple[tuple[str, str | None], ...] = ()  # (specifier, resolved path)


@lru_cache(maxsize=512)
def _compile_cached(path: str, source: str, alias: str) -> _Compiled:
    """
    Cached compile step. Keyed by path, exact source text and alias, so an
    unchanged file is not reparsed on every pipeline run.
    """
    try:
        emitter = _Emitter(_encode_source(source), path, _DIALECTS[split_extension(path)[1]], alias)
        code = emitter.run()
    except TransformError as e:
        return _Compiled(error=str(e), line=e.line, column=e.column)
    except RecursionError:
        return _Compiled(error=str(TransformError("Source is nested too deeply to transform")))

    return _Compiled(
        code=code,
        imports=tuple(emitter.imports),
        imported_names=tuple((spec, tuple(names)) for spec, names in emitter.imported_names.items()),
        stylesheet_imports=tuple(emitter.stylesheet_imports),
    )


class _Emitter:
    """
    Rebuilds a module's text from its syntax tree.

    Nodes without a handler are copied verbatim, including the whitespace and
    comments between their children. Handlers return the replacement text
    for their node.
    """

    def __init__(self, src: bytes, path: str, dialect: Dialect, alias: str) -> None:
        self.src = src
        self.path = path
        self.base_dir = parent_path(path)
        self.dialect = dialect
        self.alias = alias
        self.used_jsx = False
        self.imports: list[str] = []
        self.imported_names: dict[str, list[str]] = {}
        self.stylesheet_imports: list[tuple[str, str | None]] = []

        self._handlers: dict[str, Callable[[Any], str]] = {
            "import_statement": self._import_statement,
            "export_statement": self._export_statement,
            "named_imports": self._named_imports,
            "export_clause": self._export_clause,
            "call_expression": self._call_expression,
            "formal_parameters": self._formal_parameters,
            "required_parameter": self._parameter,
            "optional_parameter": self._parameter,
            "method_definition": self._method_definition,
            "public_field_definition": self._class_field,
            "abstract_class_declaration": self._abstract_class,
            "as_expression": self._unwrap_expression,
            "satisfies_expression": self._unwrap_expression,
            "non_null_expression": self._unwrap_expression,
            "type_assertion": self._unwrap_type_assertion,
        }
        for node_type in _ERASED_NODES:
            self._handlers[node_type] = _erase
        if dialect is Dialect.MARKUP:
            for node_type in _JSX_ELEMENTS:
                self._handlers[node_type] = self._jsx_element

    def run(self) -> str:
        tree = _PARSERS[self.dialect].parse(self.src)
        root = tree.root_node
        if root.has_error:
            raise _syntax_error(root, self.src)

        # the root node can start after leading whitespace
        code = self.slice(0, root.start_byte) + self.emit(root) + self.slice(root.end_byte, len(self.src))
        if self.used_jsx:
            code = f"{JSX_RUNTIME_IMPORT} {code}"
        return code

    # -- generic emission --

    def text(self, node: Any) -> str:
        return self.src[node.start_byte:node.end_byte].decode("utf-8")

    def slice(self, start: int, end: int) -> str:
        return self.src[start:end].decode("utf-8")

    def emit(self, node: Any) -> str:
        handler = self._handlers.get(node.type)
        if handler is not None:
            return handler(node)
        return self.emit_children(node)

    def emit_children(self, node: Any, override: Callable[[Any], str | None] | None = None) -> str:
        children = node.children
        if not children:
            return self.text(node)

        parts: list[str] = []
        cursor = node.start_byte
        for child in children:
            parts.append(self.slice(cursor, child.start_byte))
            replaced = override(child) if override is not None else None
            parts.append(self.emit(child) if replaced is None else replaced)
            cursor = child.end_byte
        parts.append(self.slice(cursor, node.end_byte))
        return "".join(parts)

    # -- modules --

    def _import_statement(self, node: Any) -> str:
        if _has_token(node, "type", "typeof"):
            return ""
        source = node.child_by_field_name("source")
        if source is None:
            return self.emit_children(node)

        raw = _string_value(self.text(source))
        clause = _first_child(node, "import_clause")
        if is_stylesheet(raw):
            return self._stylesheet_import(raw, clause)

        specifier = self._record_import(raw, self._imported_names(clause))
        return self.emit_children(node, override=_replace_node(source, json.dumps(specifier)))

    def _export_statement(self, node: Any) -> str:
        if _has_token(node, "type"):
            return ""
        declaration = node.child_by_field_name("declaration")
        if declaration is not None and declaration.type in _TYPE_ONLY_DECLARATIONS:
            return ""

        source = node.child_by_field_name("source")
        if source is None:
            return self.emit_children(node)

        names: list[str] = []
        clause = _first_child(node, "export_clause")
        if clause is not None:
            for spec in clause.named_children:
                if spec.type == "export_specifier" and not _has_token(spec, "type"):
                    name = spec.child_by_field_name("name")
                    if name is not None:
                        names.append(_string_value(self.text(name)))
        specifier = self._record_import(_string_value(self.text(source)), names)
        return self.emit_children(node, override=_replace_node(source, json.dumps(specifier)))

    def _named_imports(self, node: Any) -> str:
        return self._without_type_specifiers(node, "import_specifier")

    def _export_clause(self, node: Any) -> str:
        return self._without_type_specifiers(node, "export_specifier")

    def _without_type_specifiers(self, node: Any, specifier_type: str) -> str:
        """`{ A, type B }` → `{ A }`, for import and export lists alike."""
        specifiers = [c for c in node.named_children if c.type == specifier_type]
        if not any(_has_token(s, "type", "typeof") for s in specifiers):
            return self.emit_children(node)
        kept = [self.text(s) for s in specifiers if not _has_token(s, "type", "typeof")]
        return "{ " + ", ".join(kept) + " }"

    def _call_expression(self, node: Any) -> str:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or function.type != "import" or arguments is None:
            return self.emit_children(node)

        first = arguments.named_children[0] if arguments.named_children else None
        if first is None or first.type != "string":
            return self.emit_children(node)

        specifier = self._record_import(_string_value(self.text(first)), [])
        rewritten = self.emit_children(arguments, override=_replace_node(first, json.dumps(specifier)))
        return self.emit_children(node, override=_replace_node(arguments, rewritten))

    def _imported_names(self, clause: Any) -> list[str]:
        if clause is None:
            return []
        named = _first_child(clause, "named_imports")
        if named is None:
            return []
        names = []
        for spec in named.named_children:
            if spec.type != "import_specifier" or _has_token(spec, "type", "typeof"):
                continue
            name = spec.child_by_field_name("name")
            if name is not None:
                value = _string_value(self.text(name))
                if value != "default":
                    names.append(value)
        return names

    def _record_import(self, raw: str, names: list[str]) -> str:
        specifier = self._canonical_specifier(raw)
        if specifier not in self.imports:
            self.imports.append(specifier)
        if names:
            known = self.imported_names.setdefault(specifier, [])
            known.extend(n for n in names if n not in known)
        return specifier

    def _canonical_specifier(self, raw: str) -> str:
        """Alias-qualified absolute form for local specifiers; bare ones unchanged."""
        if is_relative_specifier(raw):
            return self.alias + resolve_relative(self.base_dir, raw)[1:]
        if raw.startswith("/"):
            return self.alias + normalize_path(raw)[1:]
        if raw.startswith(self.alias):
            return self.alias + normalize_path(raw[len(self.alias):])[1:]
        return raw

    def _stylesheet_import(self, raw: str, clause: Any) -> str:
        specifier = self._canonical_specifier(raw)
        css_path = None
        if specifier.startswith(self.alias):
            css_path = normalize_path(specifier[len(self.alias):])
        self.stylesheet_imports.append((raw, css_path))

        # CSS module bindings still need to exist for the code that uses them
        if clause is None:
            return ""
        bindings: list[str] = []
        for child in clause.named_children:
            if child.type == "identifier":
                bindings.append(f"const {self.text(child)} = {{}};")
            elif child.type == "namespace_import":
                local = _first_child(child, "identifier")
                if local is not None:
                    bindings.append(f"const {self.text(local)} = {{}};")
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    local = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    if local is not None:
                        bindings.append(f"const {self.text(local)} = undefined;")
        return " ".join(bindings)

    # -- TypeScript --

    def _drop_tokens(self, node: Any, tokens: tuple[str, ...]) -> str:
        text = self.emit_children(node, override=lambda c: "" if not c.is_named and c.type in tokens else None)
        return text.lstrip(" ")

    def _parameter(self, node: Any) -> str:
        """`private readonly x?: T` → `x` once modifiers and annotation are gone."""
        return self._drop_tokens(node, ("?", "readonly"))

    def _class_field(self, node: Any) -> str:
        if _has_token(node, "declare", "abstract"):
            return ""
        return self._drop_tokens(node, ("?", "!", "readonly"))

    def _abstract_class(self, node: Any) -> str:
        return self._drop_tokens(node, ("abstract",))

    def _formal_parameters(self, node: Any) -> str:
        """A leading `this: T` parameter only types the receiver; drop it and its comma."""
        params = node.named_children
        if not params or not _is_this_parameter(params[0]):
            return self.emit_children(node)
        comma = params[0].next_sibling
        dropped = [params[0]] if comma is None or comma.type != "," else [params[0], comma]
        text = self.emit_children(node, override=lambda c: "" if c in dropped else None)
        return "(" + text[1:].lstrip(" \t")

    def _method_definition(self, node: Any) -> str:
        """Constructor parameter properties become assignments at the top of the body."""
        name = node.child_by_field_name("name")
        params = node.child_by_field_name("parameters")
        body = node.child_by_field_name("body")
        if name is None or params is None or body is None or self.text(name) != "constructor":
            return self.emit_children(node)

        fields = [f for f in (_parameter_property(p, self.text) for p in params.named_children) if f]
        if not fields:
            return self.emit_children(node)
        assignments = "".join(f" this.{f} = {f};" for f in fields)

        # derived classes assign right after the super(...) call
        super_call = next((s for s in body.named_children if _is_super_call(s)), None)
        if super_call is not None:
            separator = "" if self.text(super_call).endswith(";") else ";"
            anchor, replacement = super_call, self.emit(super_call) + separator + assignments
        else:
            anchor, replacement = body.children[0], "{" + assignments
        rewritten = self.emit_children(body, override=_replace_node(anchor, replacement))
        return self.emit_children(node, override=_replace_node(body, rewritten))

    def _unwrap_expression(self, node: Any) -> str:
        return self.emit(node.named_children[0])

    def _unwrap_type_assertion(self, node: Any) -> str:
        # <T>value
        return self.emit(node.named_children[-1])

    # -- JSX --

    def _jsx_element(self, node: Any) -> str:
        self.used_jsx = True

        if node.type == "jsx_self_closing_element":
            args = [self._jsx_type(node), self._jsx_props(node)]
            return f"__jsx({', '.join(args)})"

        if node.type == "jsx_fragment":
            # "<" ">" ...children... "<" "/" ">"
            args = ["__Fragment", "null"]
            args.extend(self._jsx_children(node, node.children[1].end_byte, node.children[-3].start_byte))
            return f"__jsx({', '.join(args)})"

        opening = _first_child(node, "jsx_opening_element")
        closing = _first_child(node, "jsx_closing_element")
        args = [self._jsx_type(opening), self._jsx_props(opening)]
        args.extend(self._jsx_children(node, opening.end_byte, closing.start_byte))
        return f"__jsx({', '.join(args)})"

    def _jsx_type(self, tag: Any) -> str:
        name = tag.child_by_field_name("name")
        if name is None:
            return "__Fragment"
        text = self.text(name)
        if name.type == "jsx_namespace_name":
            return json.dumps(text)
        if name.type == "identifier" and (text[:1].islower() or "-" in text):
            return json.dumps(text)
        return text

    def _jsx_props(self, tag: Any) -> str:
        props: list[str] = []
        for attr in tag.named_children:
            if attr.type == "jsx_attribute":
                props.append(self._jsx_attribute(attr))
            elif attr.type == "jsx_expression":
                inner = _expression_inside(attr)
                if inner is not None:
                    props.append(self.emit(inner))
        if not props:
            return "null"
        return "{" + ", ".join(props) + "}"

    def _jsx_attribute(self, attr: Any) -> str:
        parts = [c for c in attr.named_children if c.type != "comment"]
        key = json.dumps(self.text(parts[0]))
        if len(parts) == 1:
            return f"{key}: true"

        value = parts[1]
        if value.type == "string":
            return f"{key}: {json.dumps(html.unescape(self.text(value)[1:-1]))}"
        if value.type == "jsx_expression":
            inner = _expression_inside(value)
            return f"{key}: {self.emit(inner) if inner is not None else 'undefined'}"
        return f"{key}: {self.emit(value)}"

    def _jsx_children(self, node: Any, start: int, end: int) -> list[str]:
        """
        Children between the opening and closing tag. Text is taken from the
        raw source between element/expression children, not from jsx_text
        nodes, so whitespace trimming sees exactly what was written.
        """
        args: list[str] = []
        cursor = start
        for child in node.children:
            if child.type not in _JSX_CHILD_NODES or child.start_byte < start or child.end_byte > end:
                continue
            text = _clean_jsx_text(self.slice(cursor, child.start_byte))
            if text:
                args.append(json.dumps(text))
            if child.type == "jsx_expression":
                inner = _expression_inside(child)
                if inner is not None:
                    args.append(self.emit(inner))
            else:
                args.append(self.emit(child))
            cursor = child.end_byte

        text = _clean_jsx_text(self.slice(cursor, end))
        if text:
            args.append(json.dumps(text))
        return args


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _erase(node: Any) -> str:
    return ""


def _encode_source(source: str) -> bytes:
    """UTF-8 bytes for the parser. Unpaired surrogates become a TransformError."""
    try:
        return source.encode("utf-8")
    except UnicodeEncodeError as e:
        line = source.count("\n", 0, e.start) + 1
        column = e.start - (source.rfind("\n", 0, e.start) + 1) + 1
        raise TransformError(f"Invalid character {source[e.start]!r}", line, column) from e


def _is_this_parameter(param: Any) -> bool:
    pattern = param.child_by_field_name("pattern")
    return pattern is not None and pattern.type == "this"


def _parameter_property(param: Any, text: Callable[[Any], str]) -> str | None:
    """Name of a constructor parameter declared with a modifier (`private x`), else None."""
    if param.type not in ("required_parameter", "optional_parameter"):
        return None
    modified = any(
        c.type in ("accessibility_modifier", "override_modifier") or (not c.is_named and c.type == "readonly")
        for c in param.children
    )
    pattern = param.child_by_field_name("pattern")
    if not modified or pattern is None or pattern.type != "identifier":
        return None
    return text(pattern)


def _is_super_call(statement: Any) -> bool:
    if statement.type != "expression_statement" or not statement.named_children:
        return False
    call = statement.named_children[0]
    function = call.child_by_field_name("function") if call.type == "call_expression" else None
    return function is not None and function.type == "super"


def _replace_node(target: Any, replacement: str) -> Callable[[Any], str | None]:
    def override(child: Any) -> str | None:
        return replacement if child == target else None

    return override


def _has_token(node: Any, *tokens: str) -> bool:
    return any(not c.is_named and c.type in tokens for c in node.children)


def _first_child(node: Any, node_type: str) -> Any:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _expression_inside(node: Any) -> Any:
    """The expression in a `{...}` JSX container, or None for `{}` / `{/* comment */}`."""
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _string_value(literal: str) -> str:
    if len(literal) >= 2 and literal[0] in "'\"`" and literal[-1] == literal[0]:
        return literal[1:-1]
    return literal


def _clean_jsx_text(raw: str) -> str:
    """
    React's JSX whitespace rules: lines are trimmed where they meet a line
    break, blank lines vanish, remaining lines are joined with one space.
    """
    lines = _LINE_BREAK.split(html.unescape(raw))
    last_non_empty = -1
    for i, line in enumerate(lines):
        if line.strip(" \t"):
            last_non_empty = i

    out: list[str] = []
    for i, line in enumerate(lines):
        trimmed = line.replace("\t", " ")
        if i != 0:
            trimmed = trimmed.lstrip(" ")
        if i != len(lines) - 1:
            trimmed = trimmed.rstrip(" ")
        if trimmed:
            if i != last_non_empty:
                trimmed += " "
            out.append(trimmed)
    return "".join(out)


def _syntax_error(root: Any, src: bytes) -> TransformError:
    node = _find_error(root) or root
    line = node.start_point[0] + 1
    column = node.start_point[1] + 1
    if node.is_missing:
        return TransformError(f"SyntaxError: expected {node.type!r}", line, column)

    snippet = src[node.start_byte:node.end_byte].decode("utf-8", errors="replace").strip()
    snippet = snippet.splitlines()[0][:40] if snippet else ""
    if not snippet:
        return TransformError("SyntaxError: unexpected end of input", line, column)
    return TransformError(f"SyntaxError: unexpected {snippet!r}", line, column)


def _find_error(node: Any) -> Any:
    """First ERROR or MISSING node in document order."""
    if node.is_error or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _find_error(child)
        if found is not None:
            return found
    return node
