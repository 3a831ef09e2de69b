"""
MCP server discovery and editing.

The scanner merges every configured source into one list, first source wins
on duplicate names. The writer is the only code that modifies a source, and
it only ever touches the primary one: load, patch, save, then rescan.
"""

import logging
from typing import Callable, Optional

from switchyard.core.sources import SourceDocument, SourceEntry, SourceRegistry
from switchyard.core.status_cache import LIVENESS, StatusCache
from switchyard.lib.json_document import (
    DocumentError,
    DocumentNotFoundError,
    DocumentWriteError,
    JsonDocument,
    MalformedDocumentError,
    load_document,
    save_document,
)
from switchyard.lib.typed_errors import ErrorCode, OperationResult
from switchyard.models.extension import Activation, ExtensionDefinition, parse_definition

logger = logging.getLogger(__name__)


def read_source(entry: SourceEntry) -> Optional[SourceDocument]:
    """Load a source for reading. Missing or unparseable sources give None."""
    try:
        document = load_document(entry.path)
    except DocumentNotFoundError:
        logger.debug(f"Source {entry.tag} not present: {entry.path}")
        return None
    except MalformedDocumentError as e:
        logger.warning(f"Skipping unreadable source {entry.tag}: {e}")
        return None
    return SourceDocument(entry, document)


class ExtensionScanner:
    """Reads every source and produces the merged definition list."""

    def __init__(self, registry: SourceRegistry):
        self.registry = registry

    def scan(self) -> list[ExtensionDefinition]:
        seen: set[str] = set()
        results: list[ExtensionDefinition] = []

        for entry in self.registry:
            source = read_source(entry)
            if source is None:
                continue

            for name, blob in source.definitions().items():
                if name in seen:
                    continue
                seen.add(name)
                definition = parse_definition(
                    name, blob, enabled=source.is_enabled(name), origin=entry.tag
                )
                if definition is None:
                    logger.debug(f"Dropping unrecognised server '{name}' in {entry.tag}")
                    continue
                results.append(definition)

        results.sort(key=lambda d: (self.registry.precedence(d.origin), d.id.lower()))
        return results

    def find(self, definition_id: str) -> Optional[ExtensionDefinition]:
        for definition in self.scan():
            if definition.id == definition_id:
                return definition
        return None


class ExtensionWriter:
    """Add / remove / toggle / update servers in the primary source.

    Every operation reports an OperationResult instead of raising. After a
    successful write `on_written` is called (the engine rescans there) and
    the liveness cache entry for the server is dropped.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        scanner: ExtensionScanner,
        cache: Optional[StatusCache] = None,
        on_written: Optional[Callable[[], None]] = None,
    ):
        self.registry = registry
        self.scanner = scanner
        self.cache = cache
        self.on_written = on_written

    @property
    def primary(self) -> SourceEntry:
        return self.registry.primary

    def _load_primary(self) -> SourceDocument:
        """Primary source for writing; a missing file starts out empty.

        Raises:
            MalformedDocumentError: the file exists but is not a JSON object
        """
        try:
            document = load_document(self.primary.path)
        except DocumentNotFoundError:
            document = JsonDocument.empty()
        return SourceDocument(self.primary, document)

    def _save(self, source: SourceDocument, definition_id: str) -> None:
        save_document(source.document, self.primary.path)
        if self.cache is not None:
            self.cache.invalidate(subject=definition_id, dimension=LIVENESS)
        if self.on_written is not None:
            self.on_written()

    def _defined_in_secondary(self, definition_id: str) -> Optional[SourceEntry]:
        for entry in self.registry.secondaries:
            source = read_source(entry)
            if source is not None and source.has_definition(definition_id):
                return entry
        return None

    def _locate(self, source: SourceDocument, definition_id: str) -> Optional[OperationResult]:
        """Failure result unless the id is defined in the primary source."""
        if source.has_definition(definition_id):
            return None
        secondary = self._defined_in_secondary(definition_id)
        if secondary is not None:
            return OperationResult.fail(
                ErrorCode.READ_ONLY_SOURCE,
                f"'{definition_id}' is defined in {secondary.label} ({secondary.path}), "
                f"which is read-only",
                subject=definition_id,
            )
        return OperationResult.fail(
            ErrorCode.NOT_FOUND, f"No server named '{definition_id}'", subject=definition_id
        )

    def _failure(self, error: DocumentError, definition_id: str) -> OperationResult:
        if isinstance(error, MalformedDocumentError):
            code = ErrorCode.MALFORMED_SOURCE
            detail = f"Refusing to modify {error.path}: {error.message}"
        elif isinstance(error, DocumentWriteError):
            code = ErrorCode.FILESYSTEM_ERROR
            detail = f"Could not write {error.path}: {error.message}"
        else:
            code = ErrorCode.FILESYSTEM_ERROR
            detail = str(error)
        logger.error(detail)
        return OperationResult.fail(code, detail, subject=definition_id)

    def add(self, definition: ExtensionDefinition) -> OperationResult:
        errors = definition.validation_errors()
        if errors:
            return OperationResult.fail(
                ErrorCode.INVALID_DEFINITION, "; ".join(errors), subject=definition.id
            )

        try:
            source = self._load_primary()
            existing = self.scanner.find(definition.id)
            if existing is not None or source.has_definition(definition.id):
                where = existing.origin if existing is not None else self.primary.tag
                return OperationResult.fail(
                    ErrorCode.ALREADY_EXISTS,
                    f"A server named '{definition.id}' already exists ({where})",
                    subject=definition.id,
                )

            source.set_definition(definition.id, definition.to_blob())
            source.set_activation(definition.id, Activation.ENABLED)
            self._save(source, definition.id)
        except DocumentError as e:
            return self._failure(e, definition.id)

        logger.info(f"Added MCP server '{definition.id}'")
        return OperationResult.ok(f"Added '{definition.id}'", subject=definition.id)

    def remove(self, definition_id: str) -> OperationResult:
        try:
            source = self._load_primary()
            mentioned = (
                source.has_definition(definition_id)
                or definition_id in source.enabled_list()
                or definition_id in source.disabled_list()
            )
            if not mentioned:
                return OperationResult.ok(
                    f"'{definition_id}' was not present", subject=definition_id, changed=False
                )
            source.remove_definition(definition_id)
            self._save(source, definition_id)
        except DocumentError as e:
            return self._failure(e, definition_id)

        logger.info(f"Removed MCP server '{definition_id}'")
        return OperationResult.ok(f"Removed '{definition_id}'", subject=definition_id, changed=True)

    def toggle(self, definition_id: str) -> OperationResult:
        try:
            source = self._load_primary()
            failure = self._locate(source, definition_id)
            if failure is not None:
                return failure
            enable = not source.is_enabled(definition_id)
            source.set_activation(
                definition_id, Activation.ENABLED if enable else Activation.DISABLED
            )
            self._save(source, definition_id)
        except DocumentError as e:
            return self._failure(e, definition_id)

        state = "enabled" if enable else "disabled"
        logger.info(f"MCP server '{definition_id}' {state}")
        return OperationResult.ok(
            f"'{definition_id}' {state}", subject=definition_id, enabled=enable
        )

    def set_enabled(self, definition_id: str, enabled: bool) -> OperationResult:
        """Enable or disable; a no-op when the server is already in that state."""
        try:
            source = self._load_primary()
            failure = self._locate(source, definition_id)
            if failure is not None:
                return failure
            if source.is_enabled(definition_id) == enabled:
                return OperationResult.ok(
                    "Unchanged", subject=definition_id, enabled=enabled, changed=False
                )
            source.set_activation(
                definition_id, Activation.ENABLED if enabled else Activation.DISABLED
            )
            self._save(source, definition_id)
        except DocumentError as e:
            return self._failure(e, definition_id)

        return OperationResult.ok(
            f"'{definition_id}' {'enabled' if enabled else 'disabled'}",
            subject=definition_id, enabled=enabled, changed=True,
        )

    def update(self, definition: ExtensionDefinition) -> OperationResult:
        errors = definition.validation_errors()
        if errors:
            return OperationResult.fail(
                ErrorCode.INVALID_DEFINITION, "; ".join(errors), subject=definition.id
            )

        try:
            source = self._load_primary()
            failure = self._locate(source, definition.id)
            if failure is not None:
                return failure
            source.set_definition(definition.id, definition.to_blob())
            self._save(source, definition.id)
        except DocumentError as e:
            return self._failure(e, definition.id)

        logger.info(f"Updated MCP server '{definition.id}'")
        return OperationResult.ok(f"Updated '{definition.id}'", subject=definition.id)
