"""
livecanvas Kernel — Preview Pipeline

Subscribes to a FileSystem and turns every change into a fresh preview:
transform every source file → build the import map → assemble the document
→ hand it to the rendering host.

Runs are coalesced, not queued. Inside a running asyncio loop a change
schedules one run with call_soon; changes arriving before it executes ride
along, and the run reads whatever the tree looks like at that moment.
Without a running loop the run happens inline.

Handles minted for a build are released once the next build has been handed
to the host.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from livecanvas.kernel.import_map import DataUrlMinter, ModuleMinter, build_import_map
from livecanvas.kernel.preview import find_entry_point, render_preview
from livecanvas.kernel.transformer import transform_files
from livecanvas.kernel.types import ChangeEvent, PreviewBuild, PreviewOptions
from livecanvas.kernel.vfs import FileSystem

logger = logging.getLogger(__name__)

RenderCallback = Callable[[PreviewBuild], None]


class PreviewPipeline:
    """
    Keeps a preview document in step with one FileSystem.
    The store is passed in explicitly; there is no shared active project.
    """

    def __init__(
        self,
        fs: FileSystem,
        minter: ModuleMinter | None = None,
        options: PreviewOptions | None = None,
        on_render: RenderCallback | None = None,
    ) -> None:
        self._fs = fs
        self._minter = minter or DataUrlMinter()
        self._options = options or PreviewOptions()
        self._on_render = on_render
        self._current: PreviewBuild | None = None
        self._dirty = False
        self._closed = False
        self._batch_depth = 0
        self._scheduled: asyncio.Handle | None = None
        self._unsubscribe = fs.subscribe(self._on_change)
        self.run_count = 0

    @property
    def current(self) -> PreviewBuild | None:
        """The build the host is currently showing."""
        return self._current

    @property
    def pending(self) -> bool:
        """True if a change has not been reflected in a build yet."""
        return self._dirty

    # -- running --

    def run(self) -> PreviewBuild:
        """One complete pipeline run over the current tree."""
        files = self._fs.get_all_files()
        version = self._fs.version
        self._dirty = False

        results = transform_files(files, alias=self._options.root_alias)
        import_map = build_import_map(results, self._minter, self._options)
        entry_point = find_entry_point(files.keys(), self._options)
        html = render_preview(import_map, entry_point, self._options)
        build = PreviewBuild(html=html, import_map=import_map, entry_point=entry_point, version=version)

        previous, self._current = self._current, build
        self.run_count += 1
        logger.info(
            "pipeline: built version %d (%d files, %d errors, entry=%s)",
            version,
            len(results),
            len(import_map.errors),
            entry_point,
        )

        try:
            if self._on_render is not None:
                self._on_render(build)
        finally:
            if previous is not None:
                self._release(previous)
        return build

    @contextmanager
    def batch(self) -> Iterator[PreviewPipeline]:
        """Defer runs until the block exits, then run once if anything changed."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._schedule()

    async def wait_idle(self) -> None:
        """Wait until a scheduled run (if any) has executed."""
        while self._scheduled is not None:
            await asyncio.sleep(0)

    def close(self) -> None:
        """Stop listening and release the current build's handles."""
        self._closed = True
        self._unsubscribe()
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None
        if self._current is not None:
            self._release(self._current)
            self._current = None

    # -- change handling --

    def _on_change(self, event: ChangeEvent) -> None:
        self._dirty = True
        if self._batch_depth == 0:
            self._schedule()

    def _schedule(self) -> None:
        if self._closed or self._scheduled is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.run()
            return
        self._scheduled = loop.call_soon(self._run_scheduled)

    def _run_scheduled(self) -> None:
        self._scheduled = None
        if self._dirty and not self._closed:
            self.run()

    def _release(self, build: PreviewBuild) -> None:
        for handle in build.handles:
            self._minter.release(handle)
