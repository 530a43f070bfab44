import asyncio
import logging
import threading

from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from lesswatch import compiler
from lesswatch.core.channel import EventKind, RecordingChannel
from lesswatch.core.options import Options
from lesswatch.watcher import LessFileSystemEventHandler, WatchSession, start_watching


class FakeSession:
    def __init__(self):
        self.paths = []

    def notify(self, path):
        self.paths.append(path)


def _watch_options(styles):
    return Options(source=str(styles), source_root=str(styles), watch=True)


def test_handler_forwards_less_changes(styles):
    session = FakeSession()
    handler = LessFileSystemEventHandler(session)

    handler.dispatch(FileModifiedEvent(str(styles / "a.less")))
    handler.dispatch(FileCreatedEvent(str(styles / "new.less")))
    handler.dispatch(FileMovedEvent(str(styles / ".a.less.swp"), str(styles / "b.less")))

    assert session.paths == [str(styles / "a.less"), str(styles / "new.less"), str(styles / "b.less")]


def test_handler_ignores_other_events(styles):
    session = FakeSession()
    handler = LessFileSystemEventHandler(session)

    handler.dispatch(FileModifiedEvent(str(styles / "notes.txt")))
    handler.dispatch(DirModifiedEvent(str(styles / "nested")))
    handler.dispatch(FileDeletedEvent(str(styles / "a.less")))

    assert session.paths == []


def test_handler_single_file_mode_filters_siblings(styles):
    session = FakeSession()
    handler = LessFileSystemEventHandler(session, only=str(styles / "a.less"))

    handler.dispatch(FileModifiedEvent(str(styles / "b.less")))
    handler.dispatch(FileModifiedEvent(str(styles / "a.less")))

    assert session.paths == [str(styles / "a.less")]


def test_partial_change_does_not_compile(styles, fake_lessc):
    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        task = session.dispatch(str(styles / "_partial.less"))
        await session.wait()
        return task, channel

    task, channel = asyncio.run(scenario())

    assert task is None
    assert fake_lessc.calls == []
    assert channel.events == []
    assert not (styles / "_partial.css").exists()


def test_change_recompiles_file(styles, fake_lessc):
    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        result = await session.dispatch(str(styles / "a.less"))
        return result, channel

    result, channel = asyncio.run(scenario())

    assert result.ok
    assert (styles / "a.css").exists()
    assert not (styles / "b.css").exists()
    assert channel.messages(EventKind.WARNING) == [f"Changed: {styles / 'a.less'}"]


def test_rapid_changes_to_one_file_run_in_order(styles, fake_lessc):
    async def scenario():
        session = WatchSession(_watch_options(styles), RecordingChannel())
        path = str(styles / "a.less")
        first = session.dispatch(path)
        (styles / "a.less").write_text("a { color: green; }\n", encoding="utf-8")
        second = session.dispatch(path)
        await session.wait()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.result().ok and second.result().ok
    assert "green" in (styles / "a.css").read_text(encoding="utf-8")


def test_read_error_in_watch_mode_keeps_session(styles, fake_lessc):
    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        missing = await session.dispatch(str(styles / "gone.less"))
        present = await session.dispatch(str(styles / "a.less"))
        return missing, present, channel

    missing, present, channel = asyncio.run(scenario())

    assert not missing.ok
    assert present.ok
    assert len(channel.messages(EventKind.ERROR)) == 1


def test_initial_build_compiles_all_entry_points(styles, fake_lessc):
    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        count = await session.initial_build()
        return count, channel

    count, channel = asyncio.run(scenario())

    assert count == 3
    assert (styles / "nested" / "c.css").exists()
    assert channel.messages(EventKind.WARNING) == []


def test_subscription_failure_reports_error(tmp_path, fake_lessc):
    missing = tmp_path / "missing"
    options = Options(source=str(missing), source_root=str(missing), watch=True)

    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(options, channel)
        started = session.start()
        session.stop()
        return started, channel

    started, channel = asyncio.run(scenario())

    assert not started
    assert channel.messages(EventKind.ERROR)


async def _wait_for(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.05)
    return True


def test_edits_on_disk_recompile_entry_points_only(styles, fake_lessc):
    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        assert session.start()
        try:
            (styles / "_partial.less").write_text("@base: #444;\n", encoding="utf-8")
            (styles / "a.less").write_text("a { color: green; }\n", encoding="utf-8")
            css = styles / "a.css"
            built = await _wait_for(lambda: css.exists() and "green" in css.read_text(encoding="utf-8"))
            await session.wait()
        finally:
            session.stop()
            await session.wait()
        return built

    assert asyncio.run(scenario())
    assert not (styles / "_partial.css").exists()
    assert all("@base" not in text for text, _ in fake_lessc.calls)


def test_notify_from_observer_thread_dispatches_on_loop(styles, fake_lessc):
    async def scenario():
        session = WatchSession(_watch_options(styles), RecordingChannel())
        worker = threading.Thread(target=session.notify, args=(str(styles / "b.less"),))
        worker.start()
        worker.join()
        built = await _wait_for(lambda: (styles / "b.css").exists())
        await session.wait()
        return built

    assert asyncio.run(scenario())


def test_non_utf8_source_does_not_end_initial_build(styles, fake_lessc):
    (styles / "b.less").write_bytes(b"/* \xa9 2024 */ b {}\n")

    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        count = await session.initial_build()
        result = await session.dispatch(str(styles / "b.less"))
        return count, result, channel

    count, result, channel = asyncio.run(scenario())

    assert count == 2
    assert not result.ok
    assert len(channel.messages(EventKind.ERROR)) == 2
    assert (styles / "a.css").exists()


def test_unexpected_failure_is_reported_and_session_continues(styles, fake_lessc, monkeypatch):
    real = compiler.compile_file

    async def flaky(path, options, channel, announce=None):
        if path.endswith("a.less"):
            raise RuntimeError("disk on fire")
        return await real(path, options, channel, announce=announce)

    monkeypatch.setattr("lesswatch.watcher.compile_file", flaky)

    async def scenario():
        channel = RecordingChannel()
        session = WatchSession(_watch_options(styles), channel)
        bad = await session.dispatch(str(styles / "a.less"))
        good = await session.dispatch(str(styles / "b.less"))
        return bad, good, channel

    bad, good, channel = asyncio.run(scenario())

    assert not bad.ok
    assert good.ok
    assert channel.messages(EventKind.ERROR) == [f"Failed to compile {styles / 'a.less'}: disk on fire"]


def test_failed_subscription_leaves_session_idle(tmp_path, fake_lessc, caplog):
    missing = tmp_path / "missing"
    options = Options(source=str(missing), source_root=str(missing), watch=True)
    caplog.set_level(logging.DEBUG, logger="lesswatch.watcher")

    async def scenario():
        channel = RecordingChannel()
        task = asyncio.ensure_future(start_watching(options, channel))
        await asyncio.sleep(0.2)
        alive = not task.done()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return alive, channel

    alive, channel = asyncio.run(scenario())

    assert alive
    assert channel.messages(EventKind.ERROR)
    assert "Nothing is being watched" in caplog.text
