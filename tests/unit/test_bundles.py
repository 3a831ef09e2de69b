"""Tests for skill bundle discovery, manifests and file access."""

import os

import pytest

from conftest import FakeRunner, make_bundle
from switchyard.core.bundles import (
    BundleScanner,
    file_tree,
    parse_manifest_header,
    read_bundle_file,
    read_manifest,
)
from switchyard.lib.processes import ProcessResult
from switchyard.models.bundle import BundleOrigin


class TestManifest:
    def test_multiline_description_joined(self, sample_skill_md):
        header = parse_manifest_header(sample_skill_md)
        assert header == {
            "name": "PDF Tools",
            "description": "Extract text from PDFs, and fill in forms.",
        }

    def test_single_line(self):
        header = parse_manifest_header("---\nname: x\ndescription: Does x\n---\nbody")
        assert header == {"name": "x", "description": "Does x"}

    def test_no_header(self):
        assert parse_manifest_header("# Just markdown") == {"name": None, "description": None}

    def test_invalid_yaml_falls_back_to_lines(self):
        content = "---\nname: broken: yes\ndescription: >\n  folded\n  text\nother: [\n---\n"
        header = parse_manifest_header(content)
        assert header["name"] == "broken: yes"
        assert header["description"] == "folded text"

    def test_non_mapping_header(self):
        header = parse_manifest_header("---\n- a\n- b\n---\nbody")
        assert header == {"name": None, "description": None}

    def test_missing_manifest(self, tmp_path):
        assert read_manifest(tmp_path) == {"name": None, "description": None}


class TestScanner:
    @pytest.mark.asyncio
    async def test_scan(self, bundle_root, sample_skill_md):
        make_bundle(bundle_root, "pdf", sample_skill_md)
        make_bundle(bundle_root, "alpha")
        make_bundle(bundle_root, ".hidden")
        (bundle_root / "README.md").write_text("not a bundle")

        bundles = await BundleScanner(bundle_root, FakeRunner()).scan()

        assert [b.id for b in bundles] == ["alpha", "pdf"]
        alpha, pdf = bundles
        assert alpha.display_name == "alpha"
        assert alpha.description is None
        assert alpha.origin_kind is BundleOrigin.LOCAL
        assert pdf.display_name == "PDF Tools"
        assert pdf.description == "Extract text from PDFs, and fill in forms."

    @pytest.mark.asyncio
    async def test_sorted_by_display_name(self, bundle_root):
        make_bundle(bundle_root, "a-folder", "---\nname: Zebra\n---\n")
        make_bundle(bundle_root, "z-folder", "---\nname: apple\n---\n")
        bundles = await BundleScanner(bundle_root, FakeRunner()).scan()
        assert [b.display_name for b in bundles] == ["apple", "Zebra"]

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path):
        assert await BundleScanner(tmp_path / "nope", FakeRunner()).scan() == []

    @pytest.mark.asyncio
    async def test_git_bundle(self, bundle_root):
        bundle = make_bundle(bundle_root, "repo")
        (bundle / ".git").mkdir()
        runner = FakeRunner({
            "git -C": ProcessResult([], 0, "https://github.com/acme/repo.git\n", ""),
        })

        (found,) = await BundleScanner(bundle_root, runner).scan()

        assert found.origin_kind is BundleOrigin.GIT
        assert found.origin_location == "https://github.com/acme/repo.git"

    @pytest.mark.asyncio
    async def test_linked_bundle(self, bundle_root, tmp_path):
        real = make_bundle(tmp_path / "elsewhere", "tool", "---\nname: Tool\n---\n")
        os.symlink(real, bundle_root / "tool")
        os.symlink(tmp_path / "gone", bundle_root / "dangling")

        (found,) = await BundleScanner(bundle_root, FakeRunner()).scan()

        assert found.id == "tool"
        assert found.is_link
        assert found.origin_kind is BundleOrigin.LOCAL
        assert found.origin_location == str(real)
        assert found.display_name == "Tool"

    @pytest.mark.asyncio
    async def test_linked_git_bundle_without_remote(self, bundle_root, tmp_path):
        real = make_bundle(tmp_path / "elsewhere", "repo")
        (real / ".git").mkdir()
        os.symlink(real, bundle_root / "repo")
        runner = FakeRunner(default=2)

        (found,) = await BundleScanner(bundle_root, runner).scan()

        assert found.origin_kind is BundleOrigin.GIT
        assert found.origin_location == str(real)

    @pytest.mark.asyncio
    async def test_load(self, bundle_root):
        make_bundle(bundle_root, "one")
        scanner = BundleScanner(bundle_root, FakeRunner())
        assert (await scanner.load("one")).id == "one"
        assert await scanner.load("missing") is None
        assert await scanner.load("../one") is None


class TestFiles:
    @pytest.fixture
    def bundle_dir(self, bundle_root, sample_skill_md):
        bundle = make_bundle(bundle_root, "pdf", sample_skill_md)
        (bundle / "scripts").mkdir()
        (bundle / "scripts" / "run.py").write_text("print('hi')\n")
        (bundle / "__pycache__").mkdir()
        (bundle / ".DS_Store").write_text("")
        return bundle

    @pytest.mark.asyncio
    async def test_file_tree(self, bundle_root, bundle_dir):
        bundle = await BundleScanner(bundle_root, FakeRunner()).load("pdf")
        tree = file_tree(bundle)
        assert [n.name for n in tree] == ["SKILL.md", "scripts"]
        skill_md, scripts = tree
        assert not skill_md.is_directory and skill_md.size > 0
        assert scripts.is_directory
        assert [c.name for c in scripts.children] == ["run.py"]
        assert scripts.to_dict()["children"][0]["size"] == len("print('hi')\n")

    @pytest.mark.asyncio
    async def test_read_file(self, bundle_root, bundle_dir):
        bundle = await BundleScanner(bundle_root, FakeRunner()).load("pdf")
        assert await read_bundle_file(bundle, "scripts/run.py") == "print('hi')\n"

    @pytest.mark.asyncio
    async def test_read_rejects_escape(self, bundle_root, bundle_dir):
        (bundle_root / "secret.txt").write_text("no")
        bundle = await BundleScanner(bundle_root, FakeRunner()).load("pdf")
        with pytest.raises(ValueError):
            await read_bundle_file(bundle, "../secret.txt")

    @pytest.mark.asyncio
    async def test_read_missing(self, bundle_root, bundle_dir):
        bundle = await BundleScanner(bundle_root, FakeRunner()).load("pdf")
        with pytest.raises(FileNotFoundError):
            await read_bundle_file(bundle, "nope.md")
