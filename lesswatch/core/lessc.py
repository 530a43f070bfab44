from __future__ import annotations

import asyncio
import base64
import os
import re
from dataclasses import dataclass


INLINE_MAP_RE = re.compile(
    r"/\*# sourceMappingURL=data:application/json(?:;charset=[\w-]+)?;base64,([A-Za-z0-9+/=]+)\s*\*/\s*$"
)


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: bytes
    stderr: bytes


@dataclass(frozen=True)
class CompileRequest:
    include_paths: tuple[str, ...] = ()
    source_map: bool = True
    js_expressions: bool = False
    filename: str | None = None
    lessc: str = "lessc"


@dataclass(frozen=True)
class CompileOutput:
    css: str
    map: str | None = None


class CompileError(Exception):
    """The compiler rejected the input; ``output`` holds its diagnostics."""

    def __init__(self, output: bytes = b"", code: int | None = None) -> None:
        super().__init__(output, code)
        self.output = output
        self.code = code

    def __str__(self) -> str:
        text = self.output.decode("utf-8", errors="replace").strip()
        return text or f"lessc exited with status {self.code}"


def build_command(request: CompileRequest) -> list[str]:
    cmd = [request.lessc, "--no-color"]
    if request.include_paths:
        cmd.append("--include-path=" + os.pathsep.join(request.include_paths))
    if request.source_map:
        cmd.append("--source-map-map-inline")
    if request.js_expressions:
        cmd.append("--js")
    # A real file name keeps the map's `sources` pointing at the .less file
    cmd.append(request.filename or "-")
    return cmd


async def run(cmd: list[str], data: bytes | None = None, cwd: str | None = None) -> CmdResult:
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL if data is None else asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate(data)
    return CmdResult(proc.returncode, stdout, stderr)


def split_inline_map(css: str) -> CompileOutput:
    match = INLINE_MAP_RE.search(css)
    if not match:
        return CompileOutput(css)
    source_map = base64.b64decode(match.group(1)).decode("utf-8")
    return CompileOutput(css[: match.start()].rstrip() + "\n", source_map)


async def compile_less(text: str, request: CompileRequest) -> CompileOutput:
    """Run lessc once.

    With ``request.filename`` set lessc reads the file itself so its source
    map names it; ``text`` is piped on stdin only for anonymous input.
    """
    cmd = build_command(request)
    cwd = os.path.dirname(request.filename) if request.filename else None
    try:
        res = await run(cmd, None if request.filename else text.encode("utf-8"), cwd=cwd)
    except OSError as exc:
        raise CompileError(f"{request.lessc}: {exc.strerror or exc}\n".encode("utf-8"))
    if res.code != 0:
        raise CompileError(res.stderr or res.stdout, res.code)

    css = res.stdout.decode("utf-8", errors="replace")
    if request.source_map:
        return split_inline_map(css)
    return CompileOutput(css)
