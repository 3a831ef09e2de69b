"""
Skill bundle discovery.

A bundle is an immediate subdirectory of the bundle root (or a symbolic link
to a directory). Its optional SKILL.md header supplies a display name and
description; otherwise the folder name is used as-is.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import aiofiles
import frontmatter
import yaml

from switchyard.lib.processes import ProcessRunner, git_remote_url
from switchyard.models.bundle import Bundle, BundleFile, BundleOrigin

logger = logging.getLogger(__name__)

MANIFEST_NAME = "SKILL.md"
SKIPPED_NAMES = {"__pycache__"}


def _join_lines(text: str) -> str:
    return " ".join(line.strip() for line in text.splitlines() if line.strip())


def bundle_name_error(name: str) -> Optional[str]:
    """Why `name` cannot be a bundle folder name, or None if it can."""
    if not name:
        return "Bundle name is empty"
    if name in (".", ".."):
        return f"'{name}' is not a bundle name"
    if name.startswith("."):
        return f"Bundle name '{name}' must not start with '.'"
    if "/" in name or os.sep in name:
        return f"Bundle name '{name}' must not contain a path separator"
    return None


def parse_manifest_header(content: str) -> dict[str, Optional[str]]:
    """
    Extract `name` and `description` from a SKILL.md front-matter header.

    Expected format:
    ---
    name: my-skill
    description: |
      What it does,
      over several lines
    ---

    Multi-line descriptions are joined with single spaces. Headers that are
    not valid YAML fall back to a line-by-line reading of the two keys.
    """
    if not content.startswith("---"):
        return {"name": None, "description": None}

    try:
        metadata = frontmatter.loads(content).metadata
    except (yaml.YAMLError, ValueError, TypeError):
        # invalid YAML, or a header that is not a mapping
        return _parse_header_lines(content)

    name = metadata.get("name")
    description = metadata.get("description")
    if name is not None:
        name = str(name).strip() or None
    if description is not None:
        description = _join_lines(str(description)) or None
    return {"name": name, "description": description}


def _parse_header_lines(content: str) -> dict[str, Optional[str]]:
    parts = content.split("---", 2)
    if len(parts) < 3:
        return {"name": None, "description": None}

    name: Optional[str] = None
    description: Optional[str] = None
    block: Optional[list[str]] = None

    for line in parts[1].splitlines():
        stripped = line.strip()
        if block is not None:
            if not stripped:
                continue
            if line.startswith((" ", "\t")):
                block.append(stripped)
                continue
            # first unindented line closes the block
            if block:
                description = " ".join(block)
            block = None

        if stripped.startswith("name:"):
            name = stripped[len("name:"):].strip() or None
        elif stripped.startswith("description:"):
            value = stripped[len("description:"):].strip()
            if value in ("|", ">"):
                block = []
            else:
                description = value or None

    if block:
        description = " ".join(block)
    return {"name": name, "description": description}


def read_manifest(bundle_dir: Path) -> dict[str, Optional[str]]:
    manifest = bundle_dir / MANIFEST_NAME
    try:
        content = manifest.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {"name": None, "description": None}
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Cannot read {manifest}: {e}")
        return {"name": None, "description": None}
    return parse_manifest_header(content)


def _created_at(entry: Path) -> datetime:
    st = entry.lstat()
    timestamp = getattr(st, "st_birthtime", None) or st.st_ctime
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class BundleScanner:
    """Enumerates the bundles under one root directory."""

    def __init__(self, root: Path, runner: Optional[ProcessRunner] = None):
        self.root = root
        self.runner = runner or ProcessRunner()

    async def scan(self) -> list[Bundle]:
        if not self.root.is_dir():
            logger.debug(f"Bundle root does not exist: {self.root}")
            return []

        bundles: list[Bundle] = []
        for entry in self.root.iterdir():
            if entry.name.startswith("."):
                continue
            if not entry.is_dir():  # follows links; dangling links are skipped
                continue
            try:
                bundles.append(await self._describe(entry))
            except OSError as e:
                logger.warning(f"Skipping bundle {entry.name}: {e}")

        bundles.sort(key=lambda b: b.display_name.lower())
        logger.debug(f"Discovered {len(bundles)} bundles in {self.root}")
        return bundles

    async def load(self, bundle_id: str) -> Optional[Bundle]:
        entry = self.root / bundle_id
        if bundle_name_error(bundle_id) or not entry.is_dir():
            return None
        return await self._describe(entry)

    async def _describe(self, entry: Path) -> Bundle:
        is_link = entry.is_symlink()
        link_target = os.readlink(entry) if is_link else None
        real_path = entry.resolve() if is_link else entry

        if (real_path / ".git").exists():
            origin = BundleOrigin.GIT
            location = await git_remote_url(self.runner, real_path) or link_target
        else:
            origin = BundleOrigin.LOCAL
            location = link_target

        manifest = read_manifest(real_path)
        return Bundle(
            id=entry.name,
            display_name=manifest["name"] or entry.name,
            description=manifest["description"],
            origin_kind=origin,
            origin_location=location,
            created_at=_created_at(entry),
            path=entry,
            is_link=is_link,
        )


def file_tree(bundle: Bundle) -> list[BundleFile]:
    """Sorted file tree of a bundle, without hidden entries or __pycache__."""
    return _build_tree(bundle.path)


def _build_tree(directory: Path) -> list[BundleFile]:
    try:
        names = sorted(os.listdir(directory))
    except OSError:
        return []

    nodes: list[BundleFile] = []
    for name in names:
        if name.startswith(".") or name in SKIPPED_NAMES:
            continue
        path = directory / name
        if path.is_dir():
            nodes.append(BundleFile(name, path, True, children=_build_tree(path)))
        elif path.exists():
            nodes.append(BundleFile(name, path, False, size=path.stat().st_size))
    return nodes


async def read_bundle_file(bundle: Bundle, relative_path: str) -> str:
    """Read a text file inside a bundle.

    Raises:
        ValueError: the path escapes the bundle directory
        FileNotFoundError: no such file
    """
    base = bundle.path.resolve()
    target = (base / relative_path).resolve()
    if target != base and base not in target.parents:
        raise ValueError(f"Path escapes bundle: {relative_path}")
    if not target.is_file():
        raise FileNotFoundError(relative_path)

    async with aiofiles.open(target, "r", encoding="utf-8", errors="replace") as f:
        return await f.read()


def bundle_to_dict(bundle: Bundle) -> dict[str, Any]:
    return bundle.model_dump(mode="json")
