"""
Best-effort "is this MCP server running" checks.

Command-based servers are looked up with `pgrep -f`; network servers can't be
checked from here and report unknown.
"""

import logging
from typing import Iterable

from switchyard.core.status_cache import LIVENESS, StatusCache
from switchyard.lib.processes import ProcessRunner
from switchyard.models.extension import ExtensionDefinition, ExtensionKind, LivenessState

logger = logging.getLogger(__name__)


def process_pattern(definition: ExtensionDefinition) -> str:
    """Pattern passed to pgrep -f.

    npx-launched official servers all share the same executable, so the
    package argument is the distinguishing part.
    """
    if definition.arguments and "@modelcontextprotocol" in definition.arguments[0]:
        return definition.arguments[0]
    return definition.executable or ""


class LivenessMonitor:
    """Cached liveness lookups keyed by server id."""

    def __init__(self, cache: StatusCache, runner: ProcessRunner):
        self.cache = cache
        self.runner = runner

    async def probe(self, definition: ExtensionDefinition) -> LivenessState:
        if definition.kind is not ExtensionKind.COMMAND:
            return LivenessState.UNKNOWN
        pattern = process_pattern(definition)
        if not pattern:
            return LivenessState.UNKNOWN

        result = await self.runner.run("pgrep", "-f", pattern)
        if result.returncode == 0:
            return LivenessState.RUNNING
        if result.returncode == 1:
            return LivenessState.STOPPED
        logger.debug(f"pgrep for '{definition.id}' exited {result.returncode}: {result.error_text}")
        return LivenessState.UNKNOWN

    async def status(self, definition: ExtensionDefinition) -> LivenessState:
        entry = self.cache.get(definition.id, LIVENESS)
        if entry is not None:
            return entry.value
        state = await self.probe(definition)
        self.cache.put(definition.id, LIVENESS, state)
        return state

    async def refresh_all(
        self, definitions: Iterable[ExtensionDefinition]
    ) -> dict[str, LivenessState]:
        results = {d.id: await self.probe(d) for d in definitions}
        self.cache.replace_dimension(
            LIVENESS, [(name, LIVENESS, state) for name, state in results.items()]
        )
        return results
