"""
Tests for watch mode and the rebuild gate.
"""
import asyncio
import os
import sys
import tempfile

from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from packager.config import PackagerOptions, WatchOptions
from packager.watcher import GateState, RebuildGate, WatchSession


class BlockingPass:
    """A bundling pass that waits until released, counting how often it ran."""

    def __init__(self):
        self.runs = 0
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def __call__(self):
        self.runs += 1
        self.started.set()
        await self.release.wait()


class TestRebuildGate:
    """Tests for the single-slot rebuild gate."""

    def test_burst_during_pass_gives_one_more_pass(self):
        async def main():
            blocking = BlockingPass()
            gate = RebuildGate(blocking)

            gate.trigger()
            await blocking.started.wait()
            assert gate.state is GateState.RUNNING

            for _ in range(5):
                gate.trigger()
            assert gate.state is GateState.PENDING

            blocking.release.set()
            await gate.wait_idle()
            return blocking.runs, gate

        runs, gate = asyncio.run(main())
        assert runs == 2
        assert gate.passes == 2
        assert gate.state is GateState.IDLE

    def test_trigger_when_idle_starts_a_pass(self):
        async def main():
            runs = []

            async def run_pass():
                runs.append(1)

            gate = RebuildGate(run_pass)
            assert gate._task is None
            gate.trigger()
            first = gate._task
            await gate.wait_idle()
            assert first.done()
            gate.trigger()
            assert gate._task is not first
            await gate.wait_idle()
            assert gate._task.done()
            return runs

        assert asyncio.run(main()) == [1, 1]

    def test_passes_never_overlap(self):
        async def main():
            active = []
            overlaps = []

            async def run_pass():
                if active:
                    overlaps.append(True)
                active.append(1)
                await asyncio.sleep(0.01)
                active.pop()

            gate = RebuildGate(run_pass)
            for _ in range(3):
                gate.trigger()
                await asyncio.sleep(0.005)
                gate.trigger()
            await gate.wait_idle()
            return overlaps

        assert asyncio.run(main()) == []

    def test_failing_pass_does_not_stop_the_gate(self, capsys):
        async def main():
            calls = []

            async def run_pass():
                calls.append(1)
                if len(calls) == 1:
                    raise OSError("disk full")

            gate = RebuildGate(run_pass)
            gate.trigger()
            await gate.wait_idle()
            gate.trigger()
            await gate.wait_idle()
            return calls, gate

        calls, gate = asyncio.run(main())
        assert calls == [1, 1]
        assert gate.state is GateState.IDLE
        assert 'disk full' in capsys.readouterr().err


class TestWatchOptions:
    """Tests for watcher option merging."""

    def test_defaults(self):
        options = WatchOptions.from_options(PackagerOptions(watch=True))
        assert options.persistent is True
        assert options.ignore_initial is True
        assert options.recursive is True
        assert options.use_polling is False

    def test_user_options_override_defaults(self):
        options = WatchOptions.from_options(PackagerOptions(
            watch=True, persistent=False, ignore_initial=False, ignored=['*.tmp'], unknown='x'))
        assert options.persistent is False
        assert options.ignore_initial is False
        assert options.ignored == ['*.tmp']


class TestWatchSession:
    """Tests for WatchSession."""

    def test_skips_urls_and_literals(self):
        session = WatchSession(['https://cdn.example.com/a.js', '<p>', 'src/a.js'], None, WatchOptions())
        assert session.locations == ['src/a.js']

    def test_targets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            sub = os.path.join(tmpdir, 'sub')
            os.makedirs(sub)
            a = os.path.join(tmpdir, 'a.js')
            b = os.path.join(tmpdir, 'b.js')
            inner = os.path.join(sub, 'c.js')
            missing_dir = os.path.join(tmpdir, 'nope', 'd.js')

            session = WatchSession([a, b, sub, inner, missing_dir], None, WatchOptions())

            assert session.targets() == {tmpdir: {a, b}, sub: None}

    def test_event_filtering(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            a = os.path.join(tmpdir, 'a.js')
            other = os.path.join(tmpdir, 'other.js')
            dest = os.path.join(tmpdir, 'out.js')
            tmp = os.path.join(tmpdir, 'x.tmp')

            async def main():
                triggered = []
                session = WatchSession([a], None, WatchOptions(ignored=['*.tmp']), destination=dest)
                session._loop = asyncio.get_running_loop()
                session.gate.trigger = lambda: triggered.append(1)

                files = {a}
                session.handle_event(FileModifiedEvent(other), files)
                session.handle_event(DirModifiedEvent(tmpdir), None)
                session.handle_event(FileModifiedEvent(dest), None)
                session.handle_event(FileCreatedEvent(tmp), None)
                session.handle_event(FileClosedEvent(a), files)
                await asyncio.sleep(0)
                assert triggered == []

                session.handle_event(FileModifiedEvent(a), files)
                session.handle_event(FileCreatedEvent(a), files)
                session.handle_event(FileDeletedEvent(a), files)
                session.handle_event(FileMovedEvent(other, a), files)
                await asyncio.sleep(0)
                return triggered

            assert asyncio.run(main()) == [1, 1, 1, 1]

    def test_five_rapid_events_during_pass(self):
        """Five changes while a pass is running lead to exactly one more pass."""
        with tempfile.TemporaryDirectory() as tmpdir:
            a = os.path.join(tmpdir, 'a.js')
            with open(a, 'w') as f:
                f.write('a();')

            async def main():
                blocking = BlockingPass()
                session = WatchSession([a], blocking, WatchOptions(persistent=False)).start()
                try:
                    session.handle_event(FileModifiedEvent(a), {a})
                    await blocking.started.wait()

                    for _ in range(5):
                        session.handle_event(FileModifiedEvent(a), {a})
                    await asyncio.sleep(0.05)

                    blocking.release.set()
                    await session.gate.wait_idle()
                    return blocking.runs
                finally:
                    session.stop()

            assert asyncio.run(main()) == 2

    def test_initial_pass_when_not_ignoring_initial(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            async def main():
                runs = []

                async def run_pass():
                    runs.append(1)

                session = WatchSession([tmpdir], run_pass,
                                       WatchOptions(persistent=False, ignore_initial=False)).start()
                try:
                    await session.gate.wait_idle()
                    return runs
                finally:
                    session.stop()

            assert asyncio.run(main()) == [1]

    def test_wait_returns_after_stop(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            async def main():
                session = WatchSession([tmpdir], None, WatchOptions(persistent=False)).start()
                asyncio.get_running_loop().call_later(0.05, session.stop)
                await asyncio.wait_for(session.wait(), timeout=5)
                return session.observer

            assert asyncio.run(main()) is None
