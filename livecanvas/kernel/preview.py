"""
livecanvas Kernel — Preview Assembler

Generates the single HTML document the rendering host loads into its
sandbox. Everything the page needs is inside the document:

- the utility-class stylesheet runtime (Tailwind CDN)
- the import map, so bare and alias specifiers resolve in the browser
- inline CSS collected from stylesheet imports
- a module script that mounts the entry point inside an error boundary,
  or a "No entry point" placeholder when the project has none
- a diagnostics panel below it when files failed to compile

Pure function. No IO. Always returns a document.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from html import escape as _html_escape

from livecanvas.kernel.types import ImportMap, PreviewOptions, TransformResult


def find_entry_point(paths: Iterable[str], options: PreviewOptions | None = None) -> str | None:
    """First conventional entry file present at the root, or None."""
    opts = options or PreviewOptions()
    present = set(paths)
    for candidate in opts.entry_points:
        if candidate in present:
            return candidate
    return None


def render_preview(
    import_map: ImportMap,
    entry_point: str | None,
    options: PreviewOptions | None = None,
) -> str:
    """
    Render the complete preview document.

    Args:
        import_map: Resolution table for this run (also carries styles and errors)
        entry_point: Canonical path of the module to mount, or None
        options: CDN URLs, alias and title

    Returns:
        Complete HTML string
    """
    opts = options or PreviewOptions()

    import_map_json = _escape_script(json.dumps(import_map.to_json(), indent=2, ensure_ascii=False))
    styles = _escape_style(import_map.styles)
    diagnostics = render_diagnostics(import_map.errors)

    if entry_point is None:
        body = NO_ENTRY_POINT_HTML.format(
            candidates=", ".join(f"<code>{_html_escape(p)}</code>" for p in opts.entry_points),
        )
    else:
        entry_specifier = opts.root_alias + entry_point.lstrip("/")
        body = f"""<div id="root"></div>
<script type="module">
{_escape_script(BOOT_SCRIPT)}
mount({_escape_script(json.dumps(entry_specifier))});
</script>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{_html_escape(opts.title)}</title>
<script src="{_html_escape(opts.style_cdn_url)}"></script>
<script type="importmap">
{import_map_json}
</script>
<style>
{PREVIEW_CSS}
{styles}
</style>
</head>
<body>
{body}
{diagnostics}</body>
</html>"""


def render_diagnostics(errors: list[TransformResult]) -> str:
    """Static panel listing every file that failed to compile ("" when none did)."""
    if not errors:
        return ""
    items = "\n".join(
        f'<li><code class="lc-diagnostics-path">{_html_escape(r.path)}</code>'
        f'<pre class="lc-diagnostics-message">{_html_escape(r.error or "")}</pre></li>'
        for r in errors
    )
    noun = "file" if len(errors) == 1 else "files"
    return f"""<section class="lc-diagnostics" role="alert">
<h2>{len(errors)} {noun} failed to compile</h2>
<ul>
{items}
</ul>
</section>
"""


def _escape_script(text: str) -> str:
    """Keep embedded text from closing its <script> element."""
    return text.replace("</", "<\\/")


_STYLE_END_TAG = re.compile(r"</(style)", re.IGNORECASE)


def _escape_style(text: str) -> str:
    # end tags match case-insensitively
    return _STYLE_END_TAG.sub(r"<\\/\1", text)


# ─────────────────────────────────────────────────────────────────────────────
# Document fragments
# ─────────────────────────────────────────────────────────────────────────────

NO_ENTRY_POINT_HTML = """<div class="lc-empty" data-no-entry-point>
<h2>No entry point</h2>
<p>Create one of {candidates} to see a preview.</p>
</div>"""

PREVIEW_CSS = """
.lc-diagnostics {
  margin: 16px;
  padding: 16px 20px;
  border: 1px solid #fecaca;
  border-radius: 10px;
  background: #fef2f2;
  color: #991b1b;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
}
.lc-diagnostics h2 { font-size: 15px; font-weight: 600; margin: 0 0 8px; }
.lc-diagnostics ul { list-style: none; margin: 0; padding: 0; }
.lc-diagnostics li { margin-top: 8px; }
.lc-diagnostics-path { font-weight: 600; }
.lc-diagnostics-message {
  margin: 4px 0 0;
  white-space: pre-wrap;
  font-family: ui-monospace, SFMono-Regular, monospace;
  font-size: 12px;
}
.lc-empty, .lc-fallback {
  display: flex;
  flex-direction: column;
  align-items: center;
  justify-content: center;
  min-height: 100vh;
  padding: 24px;
  color: #525252;
  text-align: center;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
}
.lc-empty h2, .lc-fallback h2 { font-size: 18px; font-weight: 600; margin-bottom: 8px; color: #171717; }
.lc-fallback pre {
  max-width: 720px;
  white-space: pre-wrap;
  color: #b91c1c;
  font-family: ui-monospace, SFMono-Regular, monospace;
  font-size: 12px;
}
"""

# Plain module code; the entry specifier is passed to mount() by render_preview
BOOT_SCRIPT = """
import React from "react";
import { createRoot } from "react-dom/client";

function Fallback({ title, error }) {
  const message = error && error.message ? error.message : String(error);
  return React.createElement(
    "div",
    { className: "lc-fallback", role: "alert" },
    React.createElement("h2", null, title),
    React.createElement("pre", null, message)
  );
}

class ErrorBoundary extends React.Component {
  constructor(props) {
    super(props);
    this.state = { error: null };
  }

  static getDerivedStateFromError(error) {
    return { error };
  }

  componentDidCatch(error, info) {
    console.error("Preview render failed:", error, info && info.componentStack);
  }

  render() {
    if (this.state.error) {
      return React.createElement(Fallback, { title: "Something went wrong", error: this.state.error });
    }
    return this.props.children;
  }
}

async function mount(specifier) {
  const root = createRoot(document.getElementById("root"));
  try {
    const mod = await import(specifier);
    const App = mod.default;
    if (typeof App !== "function" && (typeof App !== "object" || App === null)) {
      throw new Error(specifier + " has no default export to render");
    }
    root.render(React.createElement(ErrorBoundary, null, React.createElement(App)));
  } catch (error) {
    console.error("Preview failed to load:", error);
    root.render(React.createElement(Fallback, { title: "Failed to load the preview", error }));
  }
}
"""
