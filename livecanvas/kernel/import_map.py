"""
livecanvas Kernel — Import Map Builder

Given every TransformResult of one pipeline run, builds the browser import
map that makes the project loadable:

  1. alias substitution   "@/components/Button" → "/components/Button"
  2. exact match          "/components/Button.tsx"
  3. extension-optional   "/components/Button" + .jsx/.tsx/.js/.ts/.mjs
  4. directory index      "/components" → "/components/index.jsx"
  5. unresolvable local   → placeholder module rendering a visible stand-in
  6. bare package         → module CDN URL

The map is rebuilt from scratch every run; one file's edit can change what
any other file's imports resolve to. Module code is handed out through a
ModuleMinter, which issues the handles the document refers to.
"""

from __future__ import annotations

import base64
import json
import logging
import re
import uuid
from collections.abc import Collection, Iterable

from livecanvas.kernel.paths import (
    basename,
    is_relative_specifier,
    join_path,
    normalize_path,
    parent_path,
    resolve_relative,
    strip_source_extension,
)
from livecanvas.kernel.types import (
    REACT_CORE_SPECIFIERS,
    SOURCE_EXTENSIONS,
    ImportMap,
    PreviewOptions,
    TransformResult,
)

logger = logging.getLogger(__name__)

_REACT_PACKAGES = frozenset({"react", "react-dom"})
_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


# ---------------------------------------------------------------------------
# Module handles
# ---------------------------------------------------------------------------


class ModuleMinter:
    """
    Issues loadable handles for module code.
    Implement with data URLs for self-contained documents, or in-memory for
    hosts that serve modules themselves.
    """

    def mint(self, code: str, path: str) -> str:
        """Return a fresh handle the rendering host can load `code` from."""
        raise NotImplementedError

    def release(self, handle: str) -> None:
        """The handle is no longer reachable from the displayed document."""
        raise NotImplementedError


class DataUrlMinter(ModuleMinter):
    """Self-contained data: URLs. Nothing to free on release."""

    def mint(self, code: str, path: str) -> str:
        body = f"{code}\n//# sourceURL={path}\n"
        return "data:text/javascript;base64," + base64.b64encode(body.encode("utf-8")).decode("ascii")

    def release(self, handle: str) -> None:
        pass


class MemoryMinter(ModuleMinter):
    """Opaque single-use handles backed by a dict. For hosts and tests."""

    def __init__(self) -> None:
        self._modules: dict[str, str] = {}

    def mint(self, code: str, path: str) -> str:
        handle = f"blob:livecanvas/{uuid.uuid4()}"
        self._modules[handle] = code
        return handle

    def release(self, handle: str) -> None:
        self._modules.pop(handle, None)

    def resolve(self, handle: str) -> str | None:
        """Module code behind a live handle, or None once released."""
        return self._modules.get(handle)

    @property
    def live_handles(self) -> list[str]:
        return list(self._modules)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_import_map(
    results: Iterable[TransformResult],
    minter: ModuleMinter | None = None,
    options: PreviewOptions | None = None,
) -> ImportMap:
    """
    Build the resolution table for one pipeline run.
    Needs every result of the run: extension-optional and index matches look
    at the whole file set.
    """
    results = list(results)
    minter = minter or DataUrlMinter()
    opts = options or PreviewOptions()
    alias = opts.root_alias
    import_map = ImportMap()

    for specifier in REACT_CORE_SPECIFIERS:
        import_map.imports[specifier] = package_url(specifier, opts)

    # Resolve every local specifier first so stand-ins know which names to export
    available = {r.path for r in results}
    targets: dict[str, str | None] = {}
    requested: dict[str, list[str]] = {}
    for result in results:
        for specifier in result.imports:
            if not is_local_specifier(specifier, alias):
                continue
            if specifier not in targets:
                path = specifier_to_path(specifier, alias, importer=result.path)
                targets[specifier] = resolve_module_path(path, available, opts.source_extensions)
            key = targets[specifier] or specifier
            wanted = requested.setdefault(key, [])
            wanted.extend(n for n in result.imported_names.get(specifier, []) if n not in wanted)

    # One fresh handle per file, under its exact and alias-qualified spellings
    modules: dict[str, str] = {}
    for result in results:
        if result.ok:
            code = result.compiled_code
        else:
            import_map.errors.append(result)
            code = _compile_error_module(result, requested.get(result.path, []))
        handle = minter.mint(code, result.path)
        import_map.handles.append(handle)
        modules[result.path] = handle
        import_map.imports[result.path] = handle
        import_map.imports[alias + result.path[1:]] = handle

    for result in results:
        for specifier in result.imports:
            if specifier in import_map.imports:
                continue
            if not is_local_specifier(specifier, alias):
                import_map.imports[specifier] = package_url(specifier, opts)
                continue

            target = targets.get(specifier)
            if target is not None:
                import_map.imports[specifier] = modules[target]
                continue

            name = component_name(specifier)
            logger.warning("import_map: %s imports missing module %s", result.path, specifier)
            handle = minter.mint(_placeholder_module(specifier, name, requested.get(specifier, [])), specifier)
            import_map.handles.append(handle)
            import_map.imports[specifier] = handle
            import_map.placeholders[specifier] = name

    import_map.styles = collect_styles(results)
    logger.debug(
        "import_map: %d entries, %d placeholders, %d errors",
        len(import_map.imports),
        len(import_map.placeholders),
        len(import_map.errors),
    )
    return import_map


def is_local_specifier(specifier: str, alias: str) -> bool:
    return specifier.startswith((alias, "/")) or is_relative_specifier(specifier)


def specifier_to_path(specifier: str, alias: str, importer: str = "/") -> str:
    """Canonical project path a local specifier points at (before extension search)."""
    if specifier.startswith(alias):
        return normalize_path(specifier[len(alias):])
    if is_relative_specifier(specifier):
        return resolve_relative(parent_path(importer), specifier)
    return normalize_path(specifier)


def resolve_module_path(
    path: str,
    available: Collection[str],
    extensions: tuple[str, ...] = SOURCE_EXTENSIONS,
) -> str | None:
    """Exact match, then extension-optional match, then directory index."""
    if path in available:
        return path
    for ext in extensions:
        if path + ext in available:
            return path + ext
    for ext in extensions:
        index = join_path(path, "index" + ext)
        if index in available:
            return index
    return None


def parse_package_specifier(specifier: str) -> tuple[str, str | None, str]:
    """
    Split a bare specifier into (package name, version, subpath).

    "lodash/fp"            → ("lodash", None, "/fp")
    "@scope/pkg@2.1/x"     → ("@scope/pkg", "2.1", "/x")
    """
    if specifier.startswith("@"):
        scope, _, rest = specifier.partition("/")
        package, _, subpath = rest.partition("/")
        name_part = f"{scope}/{package}"
    else:
        name_part, _, subpath = specifier.partition("/")

    version = None
    at = name_part.find("@", 1)
    if at > 0:
        name_part, version = name_part[:at], name_part[at + 1:] or None
    return name_part, version, f"/{subpath}" if subpath else ""


def package_url(specifier: str, options: PreviewOptions) -> str:
    """CDN URL for a bare specifier. Non-React packages share the page's React."""
    name, version, subpath = parse_package_specifier(specifier)
    if version is None:
        if name in _REACT_PACKAGES:
            version = options.react_version
        else:
            version = options.package_versions.get(name)

    url = f"{options.module_cdn_url.rstrip('/')}/{name}"
    if version:
        url += f"@{version}"
    url += subpath
    if name not in _REACT_PACKAGES:
        url += "?external=react,react-dom"
    return url


def collect_styles(results: Iterable[TransformResult]) -> str:
    """All imported stylesheets, each once, in first-import order."""
    seen: dict[str, str] = {}
    for result in results:
        for path, css in result.stylesheets.items():
            seen.setdefault(path, css)
    return "\n\n".join(f"/* {path} */\n{css}" for path, css in seen.items())


def component_name(specifier: str) -> str:
    """Display name for a stand-in: "@/components/user-card.jsx" → "UserCard"."""
    stem = strip_source_extension(basename(normalize_path(specifier.lstrip("@"))))
    words = [w for w in re.split(r"[^A-Za-z0-9_$]+", stem) if w]
    name = "".join(w[:1].upper() + w[1:] for w in words)
    if not name or name[0].isdigit():
        name = "Missing" + name
    return name


# ---------------------------------------------------------------------------
# Stand-in modules
# ---------------------------------------------------------------------------

_STAND_IN_STYLE = (
    '{ padding: "12px 16px", margin: "8px 0", border: "1px dashed #d97706", '
    'borderRadius: "8px", background: "#fffbeb", color: "#92400e", '
    'fontFamily: "ui-monospace, SFMono-Regular, monospace", fontSize: "13px" }'
)


def _stand_in_module(marker: str, label: str, names: list[str], display_name: str) -> str:
    exports = [n for n in dict.fromkeys(names) if _IDENTIFIER.match(n) and n != "default"]
    lines = [
        'import { createElement } from "react";',
        f"const __StandIn = function {display_name}() {{",
        f"  return createElement(\"div\", {{ {json.dumps(marker)}: true, style: {_STAND_IN_STYLE} }}, {json.dumps(label)});",
        "};",
        "export default __StandIn;",
    ]
    if exports:
        lines.append("export { " + ", ".join(f"__StandIn as {n}" for n in exports) + " };")
    return "\n".join(lines) + "\n"


def _placeholder_module(specifier: str, name: str, names: list[str]) -> str:
    return _stand_in_module("data-missing-module", f"Missing module: {specifier}", [name, *names], name)


def _compile_error_module(result: TransformResult, names: list[str]) -> str:
    label = f"Failed to compile {result.path}: {result.error}"
    return _stand_in_module("data-compile-error", label, names, "CompileError")
