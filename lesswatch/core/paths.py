from __future__ import annotations

import dataclasses
import os
from typing import Optional, Tuple

from .options import Options


SOURCE_EXT = ".less"
OUTPUT_EXT = ".css"
MAP_SUFFIX = ".map"
PARTIAL_MARKER = "_"
SOURCE_GLOB = "**/*" + SOURCE_EXT


def css_name(path: str) -> str:
    stem, _ = os.path.splitext(os.path.basename(path))
    return stem + OUTPUT_EXT


def map_path(destination: str) -> str:
    return destination + MAP_SUFFIX


def is_source(path: str) -> bool:
    return path.endswith(SOURCE_EXT)


def is_partial(path: str) -> bool:
    return os.path.basename(path).startswith(PARTIAL_MARKER)


def resolve_positionals(options: Options, src: str, dest: Optional[str] = None) -> Options:
    """Fill in source/destination from the positional CLI arguments.

    An explicit ``dest`` wins. Without one, a configured output target
    places ``<name>.css`` in that directory; the target ``"."`` keeps the
    output beside the source.
    """
    changes = {"source": src}
    if os.path.isdir(src):
        changes["source_root"] = os.path.abspath(src)

    if dest:
        changes["destination"] = os.path.abspath(dest)
    elif options.output_target is not None and not os.path.isdir(src):
        target = options.output_target
        if target in ("", "."):
            target = os.path.dirname(os.path.abspath(src))
        changes["destination"] = os.path.join(os.path.abspath(target), css_name(src))
    elif options.output_target not in (None, "", "."):
        changes["destination"] = os.path.abspath(options.output_target)

    return dataclasses.replace(options, **changes)


def _looks_like_file(path: str) -> bool:
    if os.path.isdir(path):
        return False
    return bool(os.path.splitext(path)[1])


def destination_for(path: str, options: Options) -> str:
    """Output file for one source, keeping the destination directory fixed."""
    path = os.path.abspath(path)
    dest = options.destination
    if not dest:
        return os.path.join(os.path.dirname(path), css_name(path))

    if options.source_root:
        rel_dir = os.path.relpath(os.path.dirname(path), options.source_root)
        if rel_dir.startswith(os.pardir):
            rel_dir = ""
        return os.path.normpath(os.path.join(dest, rel_dir, css_name(path)))

    if _looks_like_file(dest):
        return dest
    return os.path.join(dest, css_name(path))


def output_dir(options: Options) -> str:
    """Directory reported in the batch summary."""
    dest = options.destination
    if not dest:
        return options.source_root or os.path.dirname(os.path.abspath(options.source or "."))
    if not options.source_root and _looks_like_file(dest):
        return os.path.dirname(dest)
    return dest


def watch_target(options: Options) -> Tuple[str, bool, str]:
    """Return ``(directory, recursive, pattern)`` to subscribe to."""
    if options.source_root:
        return options.source_root, True, os.path.join(options.source_root, SOURCE_GLOB)
    path = os.path.abspath(options.source or ".")
    return os.path.dirname(path), False, path
