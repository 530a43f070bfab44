from __future__ import annotations

import pytest

from lesswatch.core import lessc


class FakeLessc:
    """Stands in for the lessc executable.

    Echoes the source behind a header, produces a tiny map when one is
    requested and fails on any source containing ``@error``.
    """

    def __init__(self):
        self.calls: list[tuple[str, lessc.CompileRequest]] = []

    async def __call__(self, text: str, request: lessc.CompileRequest) -> lessc.CompileOutput:
        self.calls.append((text, request))
        if "@error" in text:
            raise lessc.CompileError(b"ParseError: Unrecognised input in - on line 1\n", 1)
        css = "/* compiled */\n" + text
        if request.source_map:
            return lessc.CompileOutput(css, '{"version":3,"sources":["%s"]}' % request.filename)
        return lessc.CompileOutput(css)


@pytest.fixture
def fake_lessc(monkeypatch) -> FakeLessc:
    fake = FakeLessc()
    monkeypatch.setattr(lessc, "compile_less", fake)
    return fake


@pytest.fixture
def styles(tmp_path):
    """A source tree with two entry points, a partial and a nested file."""
    src = tmp_path / "src"
    (src / "nested").mkdir(parents=True)
    (src / "a.less").write_text("a { color: red; }\n", encoding="utf-8")
    (src / "b.less").write_text("b { color: blue; }\n", encoding="utf-8")
    (src / "_partial.less").write_text("@base: #333;\n", encoding="utf-8")
    (src / "nested" / "c.less").write_text("c { margin: 0; }\n", encoding="utf-8")
    (src / "notes.txt").write_text("not a stylesheet\n", encoding="utf-8")
    return src
