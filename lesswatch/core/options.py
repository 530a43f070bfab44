from __future__ import annotations

import argparse
import dataclasses
import os
from dataclasses import dataclass
from typing import Iterable


DEFAULT_LESSC = "lessc"


@dataclass(frozen=True)
class Options:
    source: str | None = None
    destination: str | None = None
    include_paths: tuple[str, ...] = ()
    watch: bool = False
    skip_source_map: bool = False
    js_expressions: bool = False
    output_target: str | None = None
    bell: bool = False
    lessc: str = DEFAULT_LESSC
    source_root: str | None = None


def split_include_paths(values: Iterable[str] | None) -> list[str]:
    out: list[str] = []
    for value in values or []:
        out.extend(p for p in value.split(os.pathsep) if p)
    return out


def normalize_include_paths(paths: Iterable[str], cwd: str | None = None) -> tuple[str, ...]:
    base = cwd or os.getcwd()
    seen: dict[str, None] = {}
    for p in paths:
        seen.setdefault(os.path.normpath(os.path.join(base, p)), None)
    return tuple(seen)


def build_options(args: argparse.Namespace, options: Options | None = None) -> Options:
    """Merge parsed CLI flags into ``options``.

    ``options`` normally already carries ``source``/``destination`` from
    the positional arguments; flag values are layered on top.
    """
    options = options or Options()
    include = split_include_paths(getattr(args, "include_path", None))
    return dataclasses.replace(
        options,
        include_paths=normalize_include_paths(list(options.include_paths) + include),
        watch=bool(getattr(args, "watch", False)),
        skip_source_map=bool(getattr(args, "skip_source_map", False)),
        js_expressions=bool(getattr(args, "js", False)),
        output_target=getattr(args, "output", options.output_target),
        bell=bool(getattr(args, "bell", False)),
        lessc=getattr(args, "lessc", None) or options.lessc,
    )
