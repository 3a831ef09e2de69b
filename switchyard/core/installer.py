"""
Skill bundle installation from a local folder, a zip archive or a git URL.

Installs copy (or clone) into the bundle root under the bundle's folder name;
an existing folder of that name is never overwritten.
"""

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from switchyard.core.bundles import bundle_name_error
from switchyard.core.status_cache import StatusCache
from switchyard.lib.processes import ProcessRunner, git_clone, git_pull, unzip
from switchyard.lib.typed_errors import ErrorCode, OperationResult
from switchyard.models.bundle import Bundle, BundleOrigin

logger = logging.getLogger(__name__)


def derive_bundle_name(url: str) -> str:
    """Bundle folder name from a git URL: last path component, without .git."""
    parsed = urlparse(url)
    path = (parsed.path or url).rstrip("/")
    name = path.split("/")[-1].split(":")[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return re.sub(r"[^a-zA-Z0-9_-]", "-", name)


class BundleInstaller:
    """Creates and removes bundles under the bundle root."""

    def __init__(
        self,
        root: Path,
        runner: Optional[ProcessRunner] = None,
        cache: Optional[StatusCache] = None,
    ):
        self.root = root
        self.runner = runner or ProcessRunner()
        self.cache = cache

    def _prepare(self, name: str) -> tuple[Optional[Path], Optional[OperationResult]]:
        error = bundle_name_error(name)
        if error:
            return None, OperationResult.fail(ErrorCode.INVALID_DEFINITION, error, subject=name)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return None, OperationResult.fail(
                ErrorCode.FILESYSTEM_ERROR, f"Cannot create {self.root}: {e}", subject=name
            )
        dest = self.root / name
        if os.path.lexists(dest):
            return None, OperationResult.fail(
                ErrorCode.ALREADY_EXISTS, f"Skill '{name}' already exists", subject=name
            )
        return dest, None

    def _installed(self, name: str) -> OperationResult:
        if self.cache is not None:
            self.cache.invalidate(subject=name)
        logger.info(f"Installed skill '{name}'")
        return OperationResult.ok(f"Installed '{name}'", subject=name)

    async def install_from_local(self, path: Path, name: Optional[str] = None) -> OperationResult:
        """Install from a directory or a .zip archive."""
        path = Path(path).expanduser()
        if not path.exists():
            return OperationResult.fail(ErrorCode.NOT_FOUND, f"Path does not exist: {path}")
        if path.is_dir():
            return self._copy_in(path, name or path.name)
        if path.suffix.lower() == ".zip":
            return await self._install_zip(path, name)
        return OperationResult.fail(
            ErrorCode.UNSUPPORTED_SOURCE,
            f"Unsupported file type: {path.name} (expected a folder or a .zip file)",
        )

    def _copy_in(self, source: Path, name: str) -> OperationResult:
        dest, failure = self._prepare(name)
        if failure is not None:
            return failure
        try:
            shutil.copytree(source, dest, symlinks=True)
        except (OSError, shutil.Error) as e:
            shutil.rmtree(dest, ignore_errors=True)
            return OperationResult.fail(
                ErrorCode.FILESYSTEM_ERROR, f"Copy failed: {e}", subject=name
            )
        return self._installed(name)

    async def _install_zip(self, archive: Path, name: Optional[str]) -> OperationResult:
        tmp_dir = Path(tempfile.mkdtemp(prefix="switchyard-unzip-"))
        try:
            result = await unzip(self.runner, archive, tmp_dir)
            if not result.ok:
                return OperationResult.fail(
                    ErrorCode.EXTERNAL_PROCESS_FAILED, f"Unzip failed: {result.error_text}"
                )

            directories = [p for p in tmp_dir.iterdir() if p.is_dir()]
            if len(directories) == 1:
                source = directories[0]
                default_name = source.name
            else:
                source = tmp_dir
                default_name = archive.stem
            return self._copy_in(source, name or default_name)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    async def install_from_git(self, url: str, name: Optional[str] = None) -> OperationResult:
        """Shallow-clone a repository into the bundle root."""
        name = name or derive_bundle_name(url)
        dest, failure = self._prepare(name)
        if failure is not None:
            return failure

        logger.info(f"Cloning {url} as skill '{name}'")
        result = await git_clone(self.runner, url, dest)
        if not result.ok:
            shutil.rmtree(dest, ignore_errors=True)
            return OperationResult.fail(
                ErrorCode.EXTERNAL_PROCESS_FAILED,
                f"git clone failed: {result.error_text}",
                subject=name,
            )
        return self._installed(name)

    async def update_bundle(self, bundle: Bundle) -> OperationResult:
        """git pull in the bundle's real directory."""
        if bundle.origin_kind is not BundleOrigin.GIT:
            return OperationResult.fail(
                ErrorCode.UNSUPPORTED_SOURCE,
                f"'{bundle.id}' is not a git checkout",
                subject=bundle.id,
            )
        result = await git_pull(self.runner, bundle.path.resolve())
        if not result.ok:
            return OperationResult.fail(
                ErrorCode.EXTERNAL_PROCESS_FAILED,
                f"git pull failed: {result.error_text}",
                subject=bundle.id,
            )
        logger.info(f"Updated skill '{bundle.id}'")
        return OperationResult.ok(result.stdout.strip() or "Updated", subject=bundle.id)

    def delete_bundle(self, bundle: Bundle) -> OperationResult:
        """Remove a bundle. A linked bundle loses its link, never its target."""
        entry = self.root / bundle.id
        if not os.path.lexists(entry):
            return OperationResult.fail(
                ErrorCode.NOT_FOUND, f"Skill '{bundle.id}' not found", subject=bundle.id
            )
        try:
            if entry.is_symlink() or not entry.is_dir():
                entry.unlink()
            else:
                shutil.rmtree(entry)
        except OSError as e:
            return OperationResult.fail(
                ErrorCode.FILESYSTEM_ERROR, f"Delete failed: {e}", subject=bundle.id
            )
        if self.cache is not None:
            self.cache.invalidate(subject=bundle.id)
        logger.info(f"Deleted skill '{bundle.id}'")
        return OperationResult.ok(f"Deleted '{bundle.id}'", subject=bundle.id)
