"""
livecanvas configuration — all environment variables in one place.

Read from environment at runtime. The kernel never reads the environment
itself; it takes the PreviewOptions built here.
"""

from __future__ import annotations

import json
import os

from livecanvas.kernel.types import (
    DEFAULT_MODULE_CDN_URL,
    DEFAULT_REACT_VERSION,
    DEFAULT_ROOT_ALIAS,
    DEFAULT_STYLE_CDN_URL,
    PreviewOptions,
)


class Settings:
    """Application settings from environment variables."""

    # Module resolution
    ROOT_ALIAS: str = os.environ.get("LIVECANVAS_ROOT_ALIAS", DEFAULT_ROOT_ALIAS)
    MODULE_CDN_URL: str = os.environ.get("LIVECANVAS_MODULE_CDN_URL", DEFAULT_MODULE_CDN_URL)
    REACT_VERSION: str = os.environ.get("LIVECANVAS_REACT_VERSION", DEFAULT_REACT_VERSION)

    # Document
    STYLE_CDN_URL: str = os.environ.get("LIVECANVAS_STYLE_CDN_URL", DEFAULT_STYLE_CDN_URL)
    PREVIEW_TITLE: str = os.environ.get("LIVECANVAS_PREVIEW_TITLE", "Preview")

    @property
    def PACKAGE_VERSIONS(self) -> dict[str, str]:
        """Version pins for CDN packages, e.g. '{"lucide-react": "0.460.0"}'."""
        raw = os.environ.get("LIVECANVAS_PACKAGE_VERSIONS", "")
        if not raw:
            return {}
        pins = json.loads(raw)
        if not isinstance(pins, dict):
            raise RuntimeError("LIVECANVAS_PACKAGE_VERSIONS must be a JSON object")
        return {str(k): str(v) for k, v in pins.items()}

    def preview_options(self) -> PreviewOptions:
        return PreviewOptions(
            root_alias=self.ROOT_ALIAS,
            module_cdn_url=self.MODULE_CDN_URL,
            style_cdn_url=self.STYLE_CDN_URL,
            react_version=self.REACT_VERSION,
            package_versions=self.PACKAGE_VERSIONS,
            title=self.PREVIEW_TITLE,
        )


# Singleton instance
settings = Settings()

if not settings.ROOT_ALIAS.endswith("/"):
    raise RuntimeError("LIVECANVAS_ROOT_ALIAS must end with '/'")
