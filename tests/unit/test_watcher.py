"""Tests for source change detection and debounced rescans."""

import asyncio
import time
from pathlib import Path

import pytest
from watchdog.events import DirCreatedEvent, FileModifiedEvent, FileMovedEvent

from switchyard.core.watcher import Reconciler, SourceChangeHandler, SourceWatcher


class TestHandler:
    @pytest.fixture
    def seen(self):
        return []

    @pytest.fixture
    def handler(self, tmp_path, seen):
        return SourceChangeHandler([tmp_path / "mcp.json"], seen.append)

    def test_modified_watched_file(self, handler, seen, tmp_path):
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "mcp.json")))
        assert seen == [tmp_path / "mcp.json"]

    def test_other_file_ignored(self, handler, seen, tmp_path):
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "other.json")))
        assert seen == []

    def test_directory_event_ignored(self, handler, seen, tmp_path):
        handler.on_any_event(DirCreatedEvent(str(tmp_path / "mcp.json")))
        assert seen == []

    def test_atomic_rename_onto_watched_file(self, handler, seen, tmp_path):
        handler.on_any_event(FileMovedEvent(str(tmp_path / ".mcp.json-abc.tmp"), str(tmp_path / "mcp.json")))
        assert seen == [tmp_path / "mcp.json"]


class TestSourceWatcher:
    def test_watches_existing_parent_dirs_only(self, tmp_path):
        (tmp_path / "a").mkdir()
        watcher = SourceWatcher([tmp_path / "a" / "x.json", tmp_path / "missing" / "y.json"], lambda p: None)
        with watcher:
            assert watcher.is_running
            assert watcher.watched_dirs == [tmp_path / "a"]
        assert not watcher.is_running

    def test_missing_directory_watched_once_created(self, tmp_path):
        seen = []
        target = tmp_path / "gemini" / "settings.json"
        with SourceWatcher([target], seen.append) as watcher:
            assert watcher.watched_dirs == []
            assert watcher.pending_dirs == [tmp_path / "gemini"]

            (tmp_path / "gemini").mkdir()
            for _ in range(40):
                if watcher.watched_dirs:
                    break
                time.sleep(0.05)
            assert watcher.watched_dirs == [tmp_path / "gemini"]
            assert watcher.pending_dirs == []

            target.write_text("{}")
            for _ in range(40):
                if target in seen:
                    break
                time.sleep(0.05)
        assert target in seen


class TestReconciler:
    @pytest.mark.asyncio
    async def test_burst_collapses_into_one_run(self):
        runs = []

        async def on_change():
            runs.append(1)

        reconciler = Reconciler(on_change, debounce=0.05)
        reconciler.bind()
        for name in ("a", "b", "a"):
            reconciler.notify(Path(name))

        await asyncio.sleep(0.2)
        await reconciler.close()

        assert runs == [1]
        assert reconciler.runs == 1

    @pytest.mark.asyncio
    async def test_separate_bursts_run_separately(self):
        async def on_change():
            pass

        reconciler = Reconciler(on_change, debounce=0.02)
        reconciler.bind()
        reconciler.notify(Path("a"))
        await asyncio.sleep(0.1)
        reconciler.notify(Path("a"))
        await asyncio.sleep(0.1)
        await reconciler.close()
        assert reconciler.runs == 2

    @pytest.mark.asyncio
    async def test_failing_rescan_is_logged_not_raised(self):
        async def on_change():
            raise RuntimeError("boom")

        reconciler = Reconciler(on_change, debounce=0.01)
        reconciler.bind()
        reconciler.notify(Path("a"))
        await asyncio.sleep(0.1)
        await reconciler.close()
        assert reconciler.runs == 1

    def test_unbound_drops_notifications(self):
        reconciler = Reconciler(lambda: None, debounce=0.01)
        reconciler.notify(Path("a"))
        assert reconciler.changed == set()
