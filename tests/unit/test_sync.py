"""Tests for linking skills into other tools."""

import os

import pytest

from conftest import make_bundle
from switchyard.core.status_cache import StatusCache, sync_dimension
from switchyard.core.sync import SyncEngine
from switchyard.lib.typed_errors import ErrorCode
from switchyard.models.bundle import SyncState, TargetTool


@pytest.fixture
def targets(bundle_root, home):
    return [
        TargetTool("claude_code", "Claude Code", bundle_root, is_source=True),
        TargetTool("cursor", "Cursor", home / ".cursor" / "skills"),
        TargetTool("antigravity", "Antigravity", home / ".gemini" / "skills"),
    ]


@pytest.fixture
def cache():
    return StatusCache()


@pytest.fixture
def sync(bundle_root, targets, cache):
    make_bundle(bundle_root, "pdf")
    return SyncEngine(bundle_root, targets, cache)


class TestSync:
    def test_sync_creates_link(self, sync, bundle_root, home):
        result = sync.sync("pdf", "cursor")

        link = home / ".cursor" / "skills" / "pdf"
        assert result.success
        assert link.is_symlink()
        assert os.readlink(link) == str(bundle_root / "pdf")
        assert sync.status("pdf", "cursor") is SyncState.SYNCED

    def test_sync_twice_leaves_one_link(self, sync, bundle_root, home):
        assert sync.sync("pdf", "cursor").success
        assert sync.sync("pdf", "cursor").success

        skills = home / ".cursor" / "skills"
        assert os.listdir(skills) == ["pdf"]
        assert (skills / "pdf").resolve() == (bundle_root / "pdf").resolve()
        assert sync.status("pdf", "cursor") is SyncState.SYNCED

    def test_sync_replaces_stale_entry(self, sync, bundle_root, home):
        stale = home / ".cursor" / "skills" / "pdf"
        stale.mkdir(parents=True)
        (stale / "old.txt").write_text("old")

        assert sync.sync("pdf", "cursor").success
        assert stale.is_symlink()
        assert not (bundle_root / "pdf" / "old.txt").exists()

    def test_sync_to_source_touches_nothing(self, sync, bundle_root):
        before = sorted(os.listdir(bundle_root))
        result = sync.sync("pdf", "claude_code")
        assert result.success
        assert sorted(os.listdir(bundle_root)) == before
        assert not (bundle_root / "pdf").is_symlink()

    def test_unknown_target(self, sync):
        assert sync.sync("pdf", "vscode").code is ErrorCode.NOT_FOUND

    def test_unknown_bundle(self, sync):
        assert sync.sync("nope", "cursor").code is ErrorCode.NOT_FOUND

    @pytest.mark.parametrize("bundle_id", ["", ".", "..", ".hidden", "a/b"])
    def test_rejects_non_bundle_names(self, sync, home, bundle_root, bundle_id):
        (bundle_root / ".hidden").mkdir()
        cursor = home / ".cursor"
        (cursor / "skills" / "kept").mkdir(parents=True)
        (cursor / "mcp.json").write_text("{}")

        result = sync.sync(bundle_id, "cursor")

        assert result.code is ErrorCode.INVALID_DEFINITION
        assert (cursor / "mcp.json").read_text() == "{}"
        assert os.listdir(cursor / "skills") == ["kept"]
        assert sorted(os.listdir(bundle_root)) == [".hidden", "pdf"]

    def test_failure_leaves_cache_untouched(self, sync, home, cache):
        cache.put("pdf", sync_dimension("cursor"), SyncState.NOT_SYNCED)
        # a file where the skills directory should be
        (home / ".cursor").mkdir()
        (home / ".cursor" / "skills").write_text("in the way")

        result = sync.sync("pdf", "cursor")

        assert result.code is ErrorCode.FILESYSTEM_ERROR
        assert cache.get("pdf", sync_dimension("cursor")).value is SyncState.NOT_SYNCED


class TestUnsync:
    def test_unsync_removes_link(self, sync, home, bundle_root):
        sync.sync("pdf", "cursor")
        result = sync.unsync("pdf", "cursor")
        assert result.success
        assert not os.path.lexists(home / ".cursor" / "skills" / "pdf")
        assert (bundle_root / "pdf").is_dir()
        assert sync.status("pdf", "cursor") is SyncState.NOT_SYNCED

    def test_unsync_not_synced_is_ok(self, sync):
        assert sync.unsync("pdf", "cursor").success

    @pytest.mark.parametrize("bundle_id", [".", "..", ".hidden"])
    def test_unsync_rejects_non_bundle_names(self, sync, home, bundle_id):
        cursor = home / ".cursor"
        (cursor / "skills").mkdir(parents=True)
        (cursor / "mcp.json").write_text("{}")

        assert sync.unsync(bundle_id, "cursor").code is ErrorCode.INVALID_DEFINITION
        assert (cursor / "skills").is_dir()
        assert (cursor / "mcp.json").exists()

    def test_unsync_unknown_bundle(self, sync, home):
        assert sync.unsync("nope", "cursor").code is ErrorCode.NOT_FOUND

    def test_unsync_source_refused(self, sync):
        assert sync.unsync("pdf", "claude_code").code is ErrorCode.READ_ONLY_SOURCE

    def test_unsync_leaves_real_directory(self, sync, home):
        real = home / ".cursor" / "skills" / "pdf"
        real.mkdir(parents=True)
        assert sync.unsync("pdf", "cursor").code is ErrorCode.FILESYSTEM_ERROR
        assert real.is_dir()


class TestStatus:
    def test_source_is_always_synced(self, sync, cache):
        assert sync.status("pdf", "claude_code") is SyncState.SYNCED
        assert sync.status("not-even-a-bundle", "claude_code") is SyncState.SYNCED
        assert len(cache) == 0

    def test_unknown_target_status(self, sync):
        assert sync.status("pdf", "vscode") is None

    def test_status_is_cached(self, sync, home):
        assert sync.status("pdf", "cursor") is SyncState.NOT_SYNCED
        # created behind the cache's back
        skills = home / ".cursor" / "skills"
        skills.mkdir(parents=True)
        os.symlink(sync.bundle_root / "pdf", skills / "pdf")
        assert sync.status("pdf", "cursor") is SyncState.NOT_SYNCED

    def test_refresh_all(self, sync, home, cache, bundle_root):
        make_bundle(bundle_root, "other")
        assert sync.status("pdf", "cursor") is SyncState.NOT_SYNCED
        skills = home / ".cursor" / "skills"
        skills.mkdir(parents=True)
        os.symlink(bundle_root / "pdf", skills / "pdf")

        results = sync.refresh_all(["pdf", "other"])

        assert results[("pdf", "cursor")] is SyncState.SYNCED
        assert results[("other", "cursor")] is SyncState.NOT_SYNCED
        assert results[("pdf", "claude_code")] is SyncState.SYNCED
        assert sync.status("pdf", "cursor") is SyncState.SYNCED

    def test_statuses(self, sync):
        sync.sync("pdf", "antigravity")
        assert sync.statuses("pdf") == {
            "claude_code": SyncState.SYNCED,
            "cursor": SyncState.NOT_SYNCED,
            "antigravity": SyncState.SYNCED,
        }
