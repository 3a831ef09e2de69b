"""
Service container.

An Engine is built once per process from Settings and owns every service:
the source registry, scanner and writer, bundle scanner, installer and sync
engine, the status cache, and the two work queues. Nothing here is a module
level singleton; tests build as many isolated engines as they like.

Every mutating call goes through the mutation queue and rescans inside the
same job, so the in-memory lists always reflect the write that just happened.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from switchyard.config import Settings
from switchyard.core.bundles import BundleScanner, file_tree, read_bundle_file
from switchyard.core.extensions import ExtensionScanner, ExtensionWriter
from switchyard.core.installer import BundleInstaller
from switchyard.core.liveness import LivenessMonitor
from switchyard.core.model_switch import ModelState, ModelSwitcher
from switchyard.core.sources import SourceRegistry
from switchyard.core.status_cache import StatusCache
from switchyard.core.sync import SyncEngine
from switchyard.core.templates import find_template
from switchyard.core.watcher import Reconciler, SourceWatcher
from switchyard.core.work_queue import WorkQueue
from switchyard.lib.processes import ProcessRunner
from switchyard.lib.typed_errors import ErrorCode, OperationResult
from switchyard.models.bundle import Bundle, BundleFile, SyncState, TargetTool
from switchyard.models.extension import ExtensionDefinition, LivenessState
from switchyard.models.preset import ModelPreset

logger = logging.getLogger(__name__)


def build_targets(settings: Settings) -> list[TargetTool]:
    """Target tools from settings; the source target's directory is the bundle root."""
    root = settings.bundle_root_path
    return [
        TargetTool(
            id=t.id,
            label=t.label,
            skills_dir=root if t.is_source else settings.expand(t.skills_dir),
            is_source=t.is_source,
        )
        for t in settings.targets
    ]


class Engine:
    """Owns the services and serialises every mutation."""

    def __init__(self, settings: Settings):
        self.settings = settings

        self.cache = StatusCache()
        self.runner = ProcessRunner()
        self.mutations = WorkQueue("mutation")
        self.status_queue = WorkQueue("status")

        self.registry = SourceRegistry.from_settings(settings)
        self.scanner = ExtensionScanner(self.registry)
        self.writer = ExtensionWriter(
            self.registry, self.scanner, cache=self.cache, on_written=self._rescan_definitions
        )

        self.bundle_root = settings.bundle_root_path
        self.targets = build_targets(settings)
        self.bundle_scanner = BundleScanner(self.bundle_root, self.runner)
        self.installer = BundleInstaller(self.bundle_root, self.runner, self.cache)
        self.sync_engine = SyncEngine(self.bundle_root, self.targets, self.cache)

        self.liveness = LivenessMonitor(self.cache, self.runner)
        self.models = ModelSwitcher(settings.model_settings_file)

        self.definitions: list[ExtensionDefinition] = []
        self.bundles: list[Bundle] = []

        self.reconciler = Reconciler(self.rescan, debounce=settings.watch_debounce)
        self.watcher: Optional[SourceWatcher] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, watch: bool = False) -> None:
        self.mutations.start()
        self.status_queue.start()
        await self.rescan()
        if watch:
            self.start_watching()
        logger.info(
            f"Engine ready: {len(self.definitions)} MCP servers, {len(self.bundles)} skills"
        )

    def start_watching(self) -> None:
        if self.watcher is not None:
            return
        self.reconciler.bind()
        self.watcher = SourceWatcher(self.registry.paths(), self.reconciler.notify)
        self.watcher.start()

    async def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        await self.reconciler.close()
        self.runner.terminate_all()
        await self.mutations.stop()
        await self.status_queue.stop()

    def cancel_external(self) -> int:
        """Kill running git/unzip/pgrep processes; their jobs fail and the queue moves on."""
        return self.runner.terminate_all()

    # =========================================================================
    # Scanning
    # =========================================================================

    def _rescan_definitions(self) -> None:
        self.definitions = self.scanner.scan()

    async def _rescan_bundles(self) -> None:
        self.bundles = await self.bundle_scanner.scan()

    async def _rescan_all(self) -> dict[str, int]:
        await asyncio.to_thread(self._rescan_definitions)
        await self._rescan_bundles()
        return {"definitions": len(self.definitions), "bundles": len(self.bundles)}

    async def rescan(self) -> Any:
        """Full rescan of sources and bundles, queued behind pending mutations."""
        return await self.mutations.run(self._rescan_all, label="rescan")

    # =========================================================================
    # MCP servers
    # =========================================================================

    def get_definition(self, definition_id: str) -> Optional[ExtensionDefinition]:
        for definition in self.definitions:
            if definition.id == definition_id:
                return definition
        return None

    async def add_definition(self, definition: ExtensionDefinition) -> OperationResult:
        return await self.mutations.run(self.writer.add, definition, label="mcp_add")

    async def add_from_template(
        self,
        template_id: str,
        env: Optional[dict[str, str]] = None,
        name: Optional[str] = None,
        extra_args: Optional[list[str]] = None,
    ) -> OperationResult:
        template = find_template(template_id)
        if template is None:
            return OperationResult.fail(
                ErrorCode.NOT_FOUND, f"No template named '{template_id}'", subject=template_id
            )
        missing = template.missing_env(env)
        if missing:
            return OperationResult.fail(
                ErrorCode.INVALID_DEFINITION,
                f"Template '{template_id}' needs: {', '.join(missing)}",
                subject=name or template_id,
            )
        return await self.add_definition(template.create_definition(env, name, extra_args))

    async def remove_definition(self, definition_id: str) -> OperationResult:
        return await self.mutations.run(self.writer.remove, definition_id, label="mcp_remove")

    async def toggle_definition(self, definition_id: str) -> OperationResult:
        return await self.mutations.run(self.writer.toggle, definition_id, label="mcp_toggle")

    async def set_definition_enabled(self, definition_id: str, enabled: bool) -> OperationResult:
        return await self.mutations.run(
            self.writer.set_enabled, definition_id, enabled, label="mcp_set_enabled"
        )

    async def update_definition(self, definition: ExtensionDefinition) -> OperationResult:
        return await self.mutations.run(self.writer.update, definition, label="mcp_update")

    async def definition_status(self, definition_id: str) -> Optional[LivenessState]:
        definition = self.get_definition(definition_id)
        if definition is None:
            return None
        return await self.status_queue.run(self.liveness.status, definition)

    async def refresh_liveness(self) -> dict[str, LivenessState]:
        return await self.status_queue.run(self.liveness.refresh_all, list(self.definitions))

    # =========================================================================
    # Skills
    # =========================================================================

    def get_bundle(self, bundle_id: str) -> Optional[Bundle]:
        for bundle in self.bundles:
            if bundle.id == bundle_id:
                return bundle
        return None

    def get_target(self, target_id: str) -> Optional[TargetTool]:
        return self.sync_engine.target(target_id)

    async def sync_bundle(self, bundle_id: str, target_id: str) -> OperationResult:
        return await self.mutations.run(
            self._on_discovered_bundle, self.sync_engine.sync, bundle_id, target_id,
            label="sync",
        )

    async def unsync_bundle(self, bundle_id: str, target_id: str) -> OperationResult:
        return await self.mutations.run(
            self._on_discovered_bundle, self.sync_engine.unsync, bundle_id, target_id,
            label="unsync",
        )

    def _on_discovered_bundle(self, op, bundle_id: str, target_id: str) -> OperationResult:
        if self.get_bundle(bundle_id) is None:
            return OperationResult.fail(
                ErrorCode.NOT_FOUND, f"Skill '{bundle_id}' not found", subject=bundle_id
            )
        return op(bundle_id, target_id)

    async def bundle_status(self, bundle_id: str) -> dict[str, SyncState]:
        return await self.status_queue.run(self.sync_engine.statuses, bundle_id)

    async def refresh_sync_status(self) -> Any:
        ids = [b.id for b in self.bundles]
        return await self.status_queue.run(self.sync_engine.refresh_all, ids)

    async def _after_bundle_change(self, result: OperationResult) -> OperationResult:
        if result.success:
            await self._rescan_bundles()
        return result

    async def install_local(self, path: Path, name: Optional[str] = None) -> OperationResult:
        async def job() -> OperationResult:
            return await self._after_bundle_change(
                await self.installer.install_from_local(path, name)
            )
        return await self.mutations.run(job, label="install_local")

    async def install_git(self, url: str, name: Optional[str] = None) -> OperationResult:
        async def job() -> OperationResult:
            return await self._after_bundle_change(
                await self.installer.install_from_git(url, name)
            )
        return await self.mutations.run(job, label="install_git")

    async def update_bundle(self, bundle_id: str) -> OperationResult:
        async def job() -> OperationResult:
            bundle = await self.bundle_scanner.load(bundle_id)
            if bundle is None:
                return OperationResult.fail(
                    ErrorCode.NOT_FOUND, f"Skill '{bundle_id}' not found", subject=bundle_id
                )
            return await self._after_bundle_change(await self.installer.update_bundle(bundle))
        return await self.mutations.run(job, label="update_bundle")

    async def delete_bundle(self, bundle_id: str) -> OperationResult:
        async def job() -> OperationResult:
            bundle = await self.bundle_scanner.load(bundle_id)
            if bundle is None:
                return OperationResult.fail(
                    ErrorCode.NOT_FOUND, f"Skill '{bundle_id}' not found", subject=bundle_id
                )
            return await self._after_bundle_change(self.installer.delete_bundle(bundle))
        return await self.mutations.run(job, label="delete_bundle")

    def bundle_files(self, bundle_id: str) -> Optional[list[BundleFile]]:
        bundle = self.get_bundle(bundle_id)
        return file_tree(bundle) if bundle is not None else None

    async def read_bundle_file(self, bundle_id: str, relative_path: str) -> str:
        """Raises LookupError for an unknown bundle, plus read_bundle_file's errors."""
        bundle = self.get_bundle(bundle_id)
        if bundle is None:
            raise LookupError(bundle_id)
        return await read_bundle_file(bundle, relative_path)

    # =========================================================================
    # Model
    # =========================================================================

    def current_model(self) -> ModelState:
        return self.models.current()

    async def switch_model(self, preset: ModelPreset, api_key: Optional[str] = None) -> OperationResult:
        return await self.mutations.run(self.models.switch, preset, api_key, label="model_switch")

    async def quick_switch_model(self, model_id: str, api_key: Optional[str] = None) -> OperationResult:
        return await self.mutations.run(
            self.models.quick_switch, model_id, api_key, label="model_quick_switch"
        )
