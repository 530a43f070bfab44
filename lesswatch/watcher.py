"""
Watcher Layer - Filesystem monitoring and compile dispatch.

Monitors the input file or directory using watchdog and recompiles
changed LESS sources. Partial files (``_name.less``) are meant to be
imported by other files and are never compiled on their own; changing
one does not rebuild the files that import it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .batch import find_sources, max_jobs
from .compiler import CompileResult, compile_file
from .core.channel import NotificationChannel
from .core.options import Options
from .core.paths import is_partial, is_source, watch_target


logger = logging.getLogger(__name__)

HANDLED_EVENTS = {"created", "modified", "moved"}


class LessFileSystemEventHandler(FileSystemEventHandler):
    """Forwards changes to LESS sources to a WatchSession."""

    def __init__(self, session: "WatchSession", only: Optional[str] = None):
        super().__init__()
        self.session = session
        self.only = os.path.abspath(only) if only else None

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in HANDLED_EVENTS:
            return
        # Atomic saves show up as a move onto the real name
        path = getattr(event, "dest_path", "") or event.src_path
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        if not is_source(path):
            return
        if self.only and os.path.abspath(path) != self.only:
            return
        self.session.notify(path)


class WatchSession:
    """State for one watch-mode run: the observer plus in-flight compiles.

    Compiles of the same file are serialized so the last change always
    produces the final output.
    """

    def __init__(self, options: Options, channel: NotificationChannel,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.options = options
        self.channel = channel
        self.loop = loop or asyncio.get_running_loop()
        self.observer = Observer()
        self._tasks: Set[asyncio.Task] = set()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._slots = asyncio.Semaphore(max_jobs())
        self._stopped = asyncio.Event()

    def start(self) -> bool:
        """Subscribe to filesystem changes. Returns False if that failed."""
        directory, recursive, pattern = watch_target(self.options)
        only = None if recursive else pattern
        handler = LessFileSystemEventHandler(self, only=only)
        try:
            self.observer.schedule(handler, directory, recursive=recursive)
            self.observer.start()
        except OSError as exc:
            self.channel.error(f"Cannot watch {pattern}: {exc.strerror or exc}")
            return False
        self.channel.warning(f"Watching {pattern}")
        return True

    def stop(self) -> None:
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join()
        self._stopped.set()

    def notify(self, path: str) -> None:
        """Called from the observer thread."""
        self.loop.call_soon_threadsafe(self.dispatch, path)

    def dispatch(self, path: str) -> Optional[asyncio.Task]:
        if is_partial(path):
            logger.debug("Ignoring partial %s", path)
            return None
        task = self.loop.create_task(self._compile(os.path.abspath(path)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _compile(self, path: str, announce: bool = True) -> CompileResult:
        lock = self._locks.setdefault(path, asyncio.Lock())
        async with lock, self._slots:
            try:
                return await compile_file(path, self.options, self.channel, announce=announce)
            except Exception as exc:
                # One bad file must not end the session
                logger.exception("Unexpected failure compiling %s", path)
                self.channel.error(f"Failed to compile {path}: {exc}")
                return CompileResult(path, "", ok=False)

    async def initial_build(self) -> int:
        """Compile every source once before waiting for changes."""
        if self.options.source_root:
            try:
                paths = find_sources(self.options.source_root)
            except OSError as exc:
                self.channel.error(f"Cannot read directory {exc.filename}: {exc.strerror or exc}")
                return 0
        else:
            paths = [os.path.abspath(self.options.source or ".")]
        results = await asyncio.gather(*(self._compile(p, announce=False) for p in paths))
        return sum(1 for r in results if r.ok)

    async def wait(self) -> None:
        """Let in-flight compiles finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run_forever(self) -> None:
        await self._stopped.wait()


async def start_watching(options: Options, channel: NotificationChannel) -> None:
    """Build once, then recompile on every change until interrupted."""
    session = WatchSession(options, channel, asyncio.get_running_loop())
    if not session.start():
        logger.debug("Nothing is being watched; waiting for interrupt")
    await session.initial_build()
    try:
        await session.run_forever()
    finally:
        session.stop()
        await session.wait()
