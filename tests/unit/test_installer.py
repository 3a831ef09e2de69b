"""Tests for skill installation, update and deletion."""

import os
from datetime import datetime, timezone

import pytest

from conftest import FakeRunner, make_bundle
from switchyard.core.installer import BundleInstaller, derive_bundle_name
from switchyard.core.status_cache import StatusCache, sync_dimension
from switchyard.lib.processes import ProcessResult
from switchyard.lib.typed_errors import ErrorCode
from switchyard.models.bundle import Bundle, BundleOrigin, SyncState


def _bundle(root, name, origin=BundleOrigin.LOCAL):
    return Bundle(
        id=name,
        display_name=name,
        origin_kind=origin,
        created_at=datetime.now(timezone.utc),
        path=root / name,
    )


class FakeUnzipRunner(FakeRunner):
    """Unzip writes the given files into the -d directory."""

    def __init__(self, files: dict[str, str]):
        super().__init__()
        self.files = files

    async def run(self, *args, cwd=None, env=None):
        result = await super().run(*args, cwd=cwd, env=env)
        if args[0] == "unzip":
            dest = args[args.index("-d") + 1]
            for rel, content in self.files.items():
                path = os.path.join(dest, rel)
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w") as f:
                    f.write(content)
        return result


class TestDeriveName:
    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/acme/pdf-skill.git", "pdf-skill"),
        ("https://github.com/acme/pdf-skill/", "pdf-skill"),
        ("git@github.com:acme/my_skill.git", "my_skill"),
        ("https://example.com/a/weird name!", "weird-name-"),
    ])
    def test_derive(self, url, expected):
        assert derive_bundle_name(url) == expected


class TestLocalInstall:
    @pytest.mark.asyncio
    async def test_install_folder(self, tmp_path, bundle_root):
        source = make_bundle(tmp_path / "src", "my-skill", "---\nname: Mine\n---\n")
        cache = StatusCache()
        cache.put("my-skill", sync_dimension("cursor"), SyncState.SYNCED)

        result = await BundleInstaller(bundle_root, FakeRunner(), cache).install_from_local(source)

        assert result.success and result.subject == "my-skill"
        assert (bundle_root / "my-skill" / "SKILL.md").exists()
        assert source.exists()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_install_folder_with_name(self, tmp_path, bundle_root):
        source = make_bundle(tmp_path / "src", "x")
        result = await BundleInstaller(bundle_root, FakeRunner()).install_from_local(source, "renamed")
        assert result.success
        assert (bundle_root / "renamed").is_dir()

    @pytest.mark.asyncio
    async def test_existing_not_overwritten(self, tmp_path, bundle_root):
        make_bundle(bundle_root, "taken")
        (bundle_root / "taken" / "keep.txt").write_text("original")
        source = make_bundle(tmp_path / "src", "taken")

        result = await BundleInstaller(bundle_root, FakeRunner()).install_from_local(source)

        assert result.code is ErrorCode.ALREADY_EXISTS
        assert (bundle_root / "taken" / "keep.txt").read_text() == "original"

    @pytest.mark.asyncio
    async def test_missing_path(self, tmp_path, bundle_root):
        result = await BundleInstaller(bundle_root, FakeRunner()).install_from_local(tmp_path / "no")
        assert result.code is ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unsupported_file(self, tmp_path, bundle_root):
        path = tmp_path / "skill.tar.gz"
        path.write_text("")
        result = await BundleInstaller(bundle_root, FakeRunner()).install_from_local(path)
        assert result.code is ErrorCode.UNSUPPORTED_SOURCE

    @pytest.mark.asyncio
    async def test_invalid_name(self, tmp_path, bundle_root):
        source = make_bundle(tmp_path / "src", "ok")
        installer = BundleInstaller(bundle_root, FakeRunner())
        assert (await installer.install_from_local(source, ".hidden")).code is ErrorCode.INVALID_DEFINITION
        assert (await installer.install_from_local(source, "a/b")).code is ErrorCode.INVALID_DEFINITION


class TestZipInstall:
    @pytest.mark.asyncio
    async def test_single_top_level_folder(self, tmp_path, bundle_root):
        archive = tmp_path / "download.zip"
        archive.write_bytes(b"PK")
        runner = FakeUnzipRunner({"pdf-tools/SKILL.md": "---\nname: PDF\n---\n"})

        result = await BundleInstaller(bundle_root, runner).install_from_local(archive)

        assert result.success and result.subject == "pdf-tools"
        assert (bundle_root / "pdf-tools" / "SKILL.md").exists()

    @pytest.mark.asyncio
    async def test_flat_archive_uses_archive_name(self, tmp_path, bundle_root):
        archive = tmp_path / "flat-skill.zip"
        archive.write_bytes(b"PK")
        runner = FakeUnzipRunner({"SKILL.md": "x", "run.py": "y"})

        result = await BundleInstaller(bundle_root, runner).install_from_local(archive)

        assert result.subject == "flat-skill"
        assert sorted(os.listdir(bundle_root / "flat-skill")) == ["SKILL.md", "run.py"]

    @pytest.mark.asyncio
    async def test_unzip_failure(self, tmp_path, bundle_root):
        archive = tmp_path / "bad.zip"
        archive.write_bytes(b"garbage")
        runner = FakeRunner({"unzip": ProcessResult([], 9, "", "not a zipfile")})

        result = await BundleInstaller(bundle_root, runner).install_from_local(archive)

        assert result.code is ErrorCode.EXTERNAL_PROCESS_FAILED
        assert "not a zipfile" in result.detail
        assert os.listdir(bundle_root) == []


class TestGit:
    @pytest.mark.asyncio
    async def test_clone(self, bundle_root):
        runner = FakeRunner()
        result = await BundleInstaller(bundle_root, runner).install_from_git(
            "https://github.com/acme/pdf-skill.git"
        )
        assert result.success and result.subject == "pdf-skill"
        assert runner.calls == [(
            "git", "clone", "--depth", "1",
            "https://github.com/acme/pdf-skill.git", str(bundle_root / "pdf-skill"),
        )]

    @pytest.mark.asyncio
    async def test_clone_failure_cleans_up(self, bundle_root):
        class PartialClone(FakeRunner):
            async def run(self, *args, cwd=None, env=None):
                os.makedirs(args[-1])
                return ProcessResult(list(args), 128, "", "repository not found")

        result = await BundleInstaller(bundle_root, PartialClone()).install_from_git(
            "https://github.com/acme/missing"
        )

        assert result.code is ErrorCode.EXTERNAL_PROCESS_FAILED
        assert "repository not found" in result.detail
        assert not (bundle_root / "missing").exists()

    @pytest.mark.asyncio
    async def test_update(self, bundle_root):
        make_bundle(bundle_root, "repo")
        runner = FakeRunner({"git -C": ProcessResult([], 0, "Already up to date.\n", "")})
        result = await BundleInstaller(bundle_root, runner).update_bundle(
            _bundle(bundle_root, "repo", BundleOrigin.GIT)
        )
        assert result.success and result.detail == "Already up to date."
        assert runner.calls[0][-1] == "pull"

    @pytest.mark.asyncio
    async def test_update_local_unsupported(self, bundle_root):
        make_bundle(bundle_root, "local")
        result = await BundleInstaller(bundle_root, FakeRunner()).update_bundle(
            _bundle(bundle_root, "local")
        )
        assert result.code is ErrorCode.UNSUPPORTED_SOURCE


class TestDelete:
    def test_delete_directory(self, bundle_root):
        make_bundle(bundle_root, "gone")
        cache = StatusCache()
        cache.put("gone", sync_dimension("cursor"), SyncState.SYNCED)

        result = BundleInstaller(bundle_root, FakeRunner(), cache).delete_bundle(_bundle(bundle_root, "gone"))

        assert result.success
        assert not (bundle_root / "gone").exists()
        assert len(cache) == 0

    def test_delete_link_keeps_target(self, bundle_root, tmp_path):
        real = make_bundle(tmp_path / "elsewhere", "tool")
        (real / "file.txt").write_text("x")
        os.symlink(real, bundle_root / "tool")

        result = BundleInstaller(bundle_root, FakeRunner()).delete_bundle(_bundle(bundle_root, "tool"))

        assert result.success
        assert not os.path.lexists(bundle_root / "tool")
        assert (real / "file.txt").exists()

    def test_delete_missing(self, bundle_root):
        result = BundleInstaller(bundle_root, FakeRunner()).delete_bundle(_bundle(bundle_root, "nope"))
        assert result.code is ErrorCode.NOT_FOUND
