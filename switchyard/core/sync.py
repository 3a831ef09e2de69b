"""
Projection of skill bundles into other tools' skills directories.

Syncing a bundle into a target creates `<target skills_dir>/<bundle id>` as
a symbolic link to the bundle's entry in the bundle root. The source tool
(the one whose skills directory *is* the bundle root) is always synced.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, Optional

from switchyard.core.bundles import bundle_name_error
from switchyard.core.status_cache import SYNC_PREFIX, StatusCache, sync_dimension
from switchyard.lib.typed_errors import ErrorCode, OperationResult
from switchyard.models.bundle import SyncState, TargetTool

logger = logging.getLogger(__name__)


def _remove_entry(path: Path) -> None:
    """Remove whatever sits at `path`; a link is removed, never its target."""
    if path.is_symlink() or not path.is_dir():
        path.unlink()
    else:
        shutil.rmtree(path)


class SyncEngine:
    """Links bundles into target tools and answers sync-status queries."""

    def __init__(self, bundle_root: Path, targets: list[TargetTool], cache: StatusCache):
        self.bundle_root = bundle_root
        self.targets = list(targets)
        self.cache = cache

    def target(self, target_id: str) -> Optional[TargetTool]:
        for target in self.targets:
            if target.id == target_id:
                return target
        return None

    def _check_bundle(self, bundle_id: str) -> Optional[OperationResult]:
        """Failure for an id that is not a discovered bundle under the root."""
        error = bundle_name_error(bundle_id)
        if error:
            return OperationResult.fail(ErrorCode.INVALID_DEFINITION, error, subject=bundle_id)
        if not (self.bundle_root / bundle_id).is_dir():
            return OperationResult.fail(
                ErrorCode.NOT_FOUND, f"Skill '{bundle_id}' not found", subject=bundle_id
            )
        return None

    @property
    def source_target(self) -> TargetTool:
        return next(t for t in self.targets if t.is_source)

    def sync(self, bundle_id: str, target_id: str) -> OperationResult:
        subject = bundle_id
        invalid = self._check_bundle(bundle_id)
        if invalid:
            return invalid
        target = self.target(target_id)
        if target is None:
            return OperationResult.fail(
                ErrorCode.NOT_FOUND, f"Unknown target '{target_id}'", subject=subject
            )
        if target.is_source:
            return OperationResult.ok(
                f"{target.label} is the source of '{bundle_id}'", subject=subject, target=target_id
            )

        source = self.bundle_root / bundle_id
        link = target.bundle_path(bundle_id)
        try:
            target.skills_dir.mkdir(parents=True, exist_ok=True)
            if os.path.lexists(link):
                _remove_entry(link)
            os.symlink(source, link, target_is_directory=True)
        except OSError as e:
            logger.error(f"Sync of '{bundle_id}' to {target.label} failed: {e}")
            return OperationResult.fail(
                ErrorCode.FILESYSTEM_ERROR,
                f"Could not link '{bundle_id}' into {target.skills_dir}: {e}",
                subject=subject,
            )

        self.cache.put(bundle_id, sync_dimension(target_id), SyncState.SYNCED)
        logger.info(f"Synced '{bundle_id}' to {target.label}")
        return OperationResult.ok(
            f"Synced '{bundle_id}' to {target.label}", subject=subject, target=target_id
        )

    def unsync(self, bundle_id: str, target_id: str) -> OperationResult:
        """Remove a bundle's link from a target. Real directories are left alone."""
        invalid = self._check_bundle(bundle_id)
        if invalid:
            return invalid
        target = self.target(target_id)
        if target is None:
            return OperationResult.fail(
                ErrorCode.NOT_FOUND, f"Unknown target '{target_id}'", subject=bundle_id
            )
        if target.is_source:
            return OperationResult.fail(
                ErrorCode.READ_ONLY_SOURCE,
                f"{target.label} is the source of '{bundle_id}'; delete the skill instead",
                subject=bundle_id,
            )

        link = target.bundle_path(bundle_id)
        if os.path.lexists(link):
            if not link.is_symlink():
                return OperationResult.fail(
                    ErrorCode.FILESYSTEM_ERROR,
                    f"{link} is not a link created by sync; not removing it",
                    subject=bundle_id,
                )
            try:
                link.unlink()
            except OSError as e:
                return OperationResult.fail(
                    ErrorCode.FILESYSTEM_ERROR, f"Could not remove {link}: {e}", subject=bundle_id
                )

        self.cache.put(bundle_id, sync_dimension(target_id), SyncState.NOT_SYNCED)
        logger.info(f"Unsynced '{bundle_id}' from {target.label}")
        return OperationResult.ok(
            f"Removed '{bundle_id}' from {target.label}", subject=bundle_id, target=target_id
        )

    def probe(self, bundle_id: str, target: TargetTool) -> SyncState:
        """Direct filesystem check, bypassing the cache."""
        if target.is_source:
            return SyncState.SYNCED
        return SyncState.SYNCED if target.bundle_path(bundle_id).exists() else SyncState.NOT_SYNCED

    def status(self, bundle_id: str, target_id: str) -> Optional[SyncState]:
        """Cached point query; None for an unknown target."""
        target = self.target(target_id)
        if target is None:
            return None
        if target.is_source:
            return SyncState.SYNCED
        return self.cache.get_or_compute(
            bundle_id, sync_dimension(target_id), lambda: self.probe(bundle_id, target)
        )

    def statuses(self, bundle_id: str) -> dict[str, SyncState]:
        return {t.id: self.status(bundle_id, t.id) for t in self.targets}

    def refresh_all(self, bundle_ids: Iterable[str]) -> dict[tuple[str, str], SyncState]:
        """Recompute every (bundle, target) pair and replace all sync entries."""
        results: dict[tuple[str, str], SyncState] = {}
        for bundle_id in bundle_ids:
            for target in self.targets:
                results[(bundle_id, target.id)] = self.probe(bundle_id, target)

        self.cache.replace_dimension(
            SYNC_PREFIX,
            [(b, sync_dimension(t), state) for (b, t), state in results.items()],
        )
        return results
