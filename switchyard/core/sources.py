"""
MCP source files and the enable/disable list algebra.

Each source is a JSON file owned by some tool (Claude Code, Cursor, Gemini)
with a map of server definitions and two optional name lists. Only the
primary source is ever written to; the others are read-only inputs.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from switchyard.config import Settings
from switchyard.lib.json_document import JsonDocument
from switchyard.models.extension import Activation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceEntry:
    """Where a source lives and which keys hold its definitions and lists."""

    tag: str
    path: Path
    label: str
    definitions_key: str = "mcpServers"
    enabled_key: str = "enabledMcpjsonServers"
    disabled_key: str = "disabledMcpjsonServers"
    is_primary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "path": str(self.path),
            "label": self.label,
            "is_primary": self.is_primary,
        }


class SourceRegistry:
    """Ordered set of sources; earlier entries win on duplicate ids."""

    def __init__(self, entries: list[SourceEntry]):
        tags = [e.tag for e in entries]
        if len(set(tags)) != len(tags):
            raise ValueError(f"Duplicate source tags: {tags}")
        primaries = [e for e in entries if e.is_primary]
        if len(primaries) != 1:
            raise ValueError("Exactly one source must be primary")
        self._entries = list(entries)
        self._index = {e.tag: i for i, e in enumerate(entries)}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SourceRegistry":
        return cls([
            SourceEntry(
                tag=s.tag,
                path=settings.expand(s.path),
                label=s.label,
                definitions_key=s.definitions_key,
                enabled_key=s.enabled_key,
                disabled_key=s.disabled_key,
                is_primary=s.tag == settings.primary_source,
            )
            for s in settings.sources
        ])

    @property
    def primary(self) -> SourceEntry:
        return next(e for e in self._entries if e.is_primary)

    @property
    def secondaries(self) -> list[SourceEntry]:
        return [e for e in self._entries if not e.is_primary]

    def get(self, tag: str) -> Optional[SourceEntry]:
        index = self._index.get(tag)
        return self._entries[index] if index is not None else None

    def precedence(self, tag: Optional[str]) -> int:
        """Position in precedence order; unknown tags sort last."""
        if tag is None:
            return len(self._entries)
        return self._index.get(tag, len(self._entries))

    def paths(self) -> list[Path]:
        return [e.path for e in self._entries]

    def __iter__(self) -> Iterator[SourceEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


class SourceDocument:
    """A source file's document, viewed through its entry's key names.

    Activation is tri-state internally. The two legacy lists only appear
    here, when reading them and when writing a state back.
    """

    def __init__(self, entry: SourceEntry, document: JsonDocument):
        self.entry = entry
        self.document = document

    def _definitions_map(self) -> dict[str, Any]:
        raw = self.document.get_field((self.entry.definitions_key,))
        return raw if isinstance(raw, dict) else {}

    def definitions(self) -> dict[str, dict[str, Any]]:
        """Name -> blob for every dict-valued entry of the definitions map."""
        return {k: v for k, v in self._definitions_map().items() if isinstance(v, dict)}

    def has_definition(self, name: str) -> bool:
        return name in self._definitions_map()

    def enabled_list(self) -> list[str]:
        return _string_list(self.document.get_field((self.entry.enabled_key,)))

    def disabled_list(self) -> list[str]:
        return _string_list(self.document.get_field((self.entry.disabled_key,)))

    def activation(self, name: str) -> Activation:
        if name in self.disabled_list():
            return Activation.DISABLED
        if name in self.enabled_list():
            return Activation.ENABLED
        return Activation.INHERITED

    def is_enabled(self, name: str) -> bool:
        state = self.activation(name)
        if state is Activation.INHERITED:
            return not self.enabled_list()
        return state is Activation.ENABLED

    def set_definition(self, name: str, blob: dict[str, Any]) -> None:
        self.document.set_field((self.entry.definitions_key, name), blob)

    def remove_definition(self, name: str) -> bool:
        """Drop a definition and every list mention of it."""
        removed = self.document.remove_field((self.entry.definitions_key, name))
        self._write_lists(
            [n for n in self.enabled_list() if n != name],
            [n for n in self.disabled_list() if n != name],
        )
        return removed

    def set_activation(self, name: str, state: Activation) -> None:
        """Write an explicit state for `name` into the two lists.

        Afterwards `name` is in exactly one list. Flipping the enabled-list
        between empty and non-empty flips the default for every inherited
        definition, so those are pinned to the list matching their current
        state first: nothing but `name` changes effective state.
        """
        if state is Activation.INHERITED:
            raise ValueError("Only ENABLED or DISABLED can be written")

        before = self.enabled_list()
        enabled = [n for n in before if n != name]
        disabled = [n for n in self.disabled_list() if n != name]
        inherited = [
            other for other in self.definitions()
            if other != name and other not in before and other not in disabled
        ]

        if state is Activation.ENABLED:
            if not before:
                # opt-out -> opt-in: inherited ones were on
                enabled.extend(inherited)
            enabled.append(name)
        else:
            disabled.append(name)
            if before and not enabled:
                # opt-in -> opt-out: inherited ones were off
                disabled.extend(inherited)

        self._write_lists(enabled, disabled)

    def _write_lists(self, enabled: list[str], disabled: list[str]) -> None:
        # Keep lists as they were when nothing changed, absent stays absent
        if enabled != self.enabled_list():
            self.document.set_field((self.entry.enabled_key,), enabled)
        if disabled != self.disabled_list():
            self.document.set_field((self.entry.disabled_key,), disabled)
