"""
Safe partial editing of JSON configuration documents.

The files we touch (~/.claude.json, ~/.claude/settings.json, ...) are owned by
other tools and often edited by hand. A JsonDocument only ever changes the
fields a caller addresses explicitly; every other key is carried through
unchanged.

Writes are atomic: the document is serialized to a temp file next to the
target and renamed over it, so a reader never sees a half-written file.
"""

import copy
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger(__name__)

FieldPath = Union[str, tuple[str, ...], list[str]]

_MISSING = object()


class DocumentError(Exception):
    """Base error for document load/save failures."""

    def __init__(self, path: Path, message: str):
        super().__init__(f"{message}: {path}")
        self.path = path
        self.message = message


class DocumentNotFoundError(DocumentError):
    def __init__(self, path: Path):
        super().__init__(path, "Document does not exist")


class MalformedDocumentError(DocumentError):
    pass


class DocumentWriteError(DocumentError):
    pass


def _split_path(path: FieldPath) -> tuple[str, ...]:
    """Normalize a dotted string or key sequence into a key tuple.

    Use the tuple form when a key itself contains dots (server names often do).
    """
    if isinstance(path, str):
        keys = tuple(path.split("."))
    else:
        keys = tuple(path)
    if not keys or any(not isinstance(k, str) or k == "" for k in keys):
        raise ValueError(f"Invalid field path: {path!r}")
    return keys


class JsonDocument:
    """A JSON object whose unknown fields are preserved verbatim.

    Only get_field / set_field / remove_field touch the tree. Anything not
    addressed through them is never interpreted.
    """

    def __init__(self, data: Optional[dict[str, Any]] = None):
        if data is not None and not isinstance(data, dict):
            raise TypeError("JsonDocument root must be a JSON object")
        self._data: dict[str, Any] = data if data is not None else {}

    @classmethod
    def empty(cls) -> "JsonDocument":
        return cls({})

    def get_field(self, path: FieldPath, default: Any = None) -> Any:
        node: Any = self._data
        for key in _split_path(path):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def has_field(self, path: FieldPath) -> bool:
        return self.get_field(path, _MISSING) is not _MISSING

    def set_field(self, path: FieldPath, value: Any) -> None:
        """Set a value, creating intermediate objects as needed.

        A non-object value sitting where an intermediate object is needed is
        replaced; sibling keys are never removed.
        """
        keys = _split_path(path)
        node = self._data
        for key in keys[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[keys[-1]] = value

    def remove_field(self, path: FieldPath) -> bool:
        """Remove a value. Returns False (and changes nothing) if absent."""
        keys = _split_path(path)
        node: Any = self._data
        for key in keys[:-1]:
            if not isinstance(node, dict) or key not in node:
                return False
            node = node[key]
        if not isinstance(node, dict) or keys[-1] not in node:
            return False
        del node[keys[-1]]
        return True

    def keys(self) -> Iterable[str]:
        return self._data.keys()

    def to_dict(self) -> dict[str, Any]:
        """Deep copy of the whole tree."""
        return copy.deepcopy(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JsonDocument):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"JsonDocument(keys={sorted(self._data)})"


def parse_document(content: str, path: Path) -> JsonDocument:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(path, f"Invalid JSON ({e})") from e
    if not isinstance(data, dict):
        raise MalformedDocumentError(path, "Top-level JSON value is not an object")
    return JsonDocument(data)


def load_document(path: Path) -> JsonDocument:
    """Read a JSON object from disk.

    Raises:
        DocumentNotFoundError: the file does not exist
        MalformedDocumentError: the file is not a JSON object
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise DocumentNotFoundError(path) from e
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedDocumentError(path, f"Unreadable document ({e})") from e
    return parse_document(content, path)


def serialize(doc: JsonDocument) -> str:
    """Deterministic serialization: sorted keys, 2-space indent, trailing newline."""
    return json.dumps(doc._data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def save_document(doc: JsonDocument, path: Path) -> None:
    """Atomically write a document, creating the parent directory if missing.

    Raises:
        DocumentWriteError: on any filesystem failure
    """
    path = Path(path)
    content = serialize(doc)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        mode: Optional[int] = None
        if path.exists():
            mode = stat.S_IMODE(path.stat().st_mode)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=f".{path.name}-")
    except OSError as e:
        raise DocumentWriteError(path, f"Cannot prepare write ({e})") from e

    closed = False
    try:
        os.write(fd, content.encode("utf-8"))
        os.fsync(fd)
        os.close(fd)
        closed = True
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as e:
        if not closed:
            os.close(fd)
        if Path(tmp_path).exists():
            os.unlink(tmp_path)
        raise DocumentWriteError(path, f"Write failed ({e})") from e

    logger.debug(f"Wrote {path}")
