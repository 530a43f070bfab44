from __future__ import annotations

import asyncio
import logging
import os
from typing import Iterable, List, Optional

from .compiler import CompileResult, compile_file
from .core.channel import NotificationChannel
from .core.options import Options
from .core.paths import is_partial, is_source, output_dir


logger = logging.getLogger(__name__)


def max_jobs() -> int:
    """Upper bound on lessc processes running at once."""
    return os.cpu_count() or 4


def _raise(exc: OSError) -> None:
    raise exc


def find_sources(directory: str, include_partials: bool = False) -> List[str]:
    """Every ``*.less`` under ``directory``, following symlinks.

    Raises OSError when a directory in the tree cannot be listed.
    """
    found: List[str] = []
    for root, dirs, files in os.walk(directory, onerror=_raise, followlinks=True):
        dirs.sort()
        for name in sorted(files):
            if not is_source(name):
                continue
            if is_partial(name) and not include_partials:
                continue
            found.append(os.path.join(root, name))
    return found


async def run_batch(options: Options, channel: NotificationChannel) -> int:
    directory = options.source_root or os.path.abspath(options.source or ".")
    try:
        files = find_sources(directory)
    except OSError as exc:
        channel.error(f"Cannot read directory {exc.filename or directory}: {exc.strerror or exc}")
        return 1

    if not files:
        channel.warning(f"No input files found in {directory}")
        return 0

    logger.debug("Compiling %d file(s) from %s", len(files), directory)
    results = await compile_all(files, options, channel)
    written = sum(1 for r in results if r.ok)
    channel.warning(f"Wrote {written} file(s) to {output_dir(options)}")
    return 0


async def compile_all(paths: Iterable[str], options: Options, channel: NotificationChannel,
                      jobs: Optional[int] = None) -> List[CompileResult]:
    slots = asyncio.Semaphore(jobs or max_jobs())

    async def one(path: str) -> CompileResult:
        async with slots:
            return await compile_file(path, options, channel)

    return await asyncio.gather(*(one(p) for p in paths))
