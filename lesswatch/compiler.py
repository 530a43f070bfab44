"""
Compile Layer - one LESS source in, one CSS file (and map) out.

Reads the source, hands it to ``lessc`` and writes the results. Read
failures are reported as channel errors; compiler failures are only
logged so a broken stylesheet never stops a batch or a watch session.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Optional

from .core import lessc
from .core.channel import NotificationChannel
from .core.options import Options
from .core.paths import destination_for, map_path


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileJob:
    path: str
    options: Options

    @property
    def destination(self) -> str:
        return self.options.destination or ""


@dataclass(frozen=True)
class CompileResult:
    path: str
    destination: str
    ok: bool
    wrote_map: bool = False


def make_job(path: str, options: Options) -> CompileJob:
    """Bind ``options`` to a single file: source and destination are per file."""
    path = os.path.abspath(path)
    per_file = dataclasses.replace(options, source=path, destination=destination_for(path, options))
    return CompileJob(path, per_file)


def compile_request(job: CompileJob, cwd: Optional[str] = None) -> lessc.CompileRequest:
    opts = job.options
    include = [cwd or os.getcwd(), os.path.dirname(job.path)] + list(opts.include_paths)
    return lessc.CompileRequest(
        include_paths=tuple(include),
        source_map=not opts.skip_source_map,
        js_expressions=opts.js_expressions,
        filename=job.path,
        lessc=opts.lessc,
    )


def _reason(exc: Exception) -> str:
    return getattr(exc, "strerror", None) or str(exc)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _write_text(path: str, text: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def write_output(job: CompileJob, output: lessc.CompileOutput) -> bool:
    """Write css (and the map when present). Returns whether a map was written."""
    css = output.css
    if output.map is not None:
        map_name = os.path.basename(map_path(job.destination))
        css = css.rstrip("\n") + f"\n/*# sourceMappingURL={map_name} */\n"
    _write_text(job.destination, css)
    if output.map is None:
        return False
    _write_text(map_path(job.destination), output.map)
    return True


async def compile_file(path: str, options: Options, channel: NotificationChannel,
                       announce: Optional[bool] = None) -> CompileResult:
    """Compile one file. A change notice is printed first in watch mode."""
    job = make_job(path, options)

    if announce is None:
        announce = options.watch
    if announce:
        channel.warning(f"Changed: {job.path}")

    try:
        text = _read_text(job.path)
    except (OSError, UnicodeDecodeError) as exc:
        channel.error(f"Could not read input file {job.path}: {_reason(exc)}")
        return CompileResult(job.path, job.destination, ok=False)

    try:
        output = await lessc.compile_less(text, compile_request(job))
    except lessc.CompileError as exc:
        logger.error("Compiling %s failed", job.path)
        channel.log_line(exc.output or str(exc).encode("utf-8"))
        return CompileResult(job.path, job.destination, ok=False)

    try:
        wrote_map = write_output(job, output)
    except OSError as exc:
        channel.error(f"Could not write {job.destination}: {_reason(exc)}")
        return CompileResult(job.path, job.destination, ok=False)

    logger.info("Wrote %s", job.destination)
    return CompileResult(job.path, job.destination, ok=True, wrote_map=wrote_map)
