"""
MCP server definition models.

A definition is either command-based (a local process spoken to over stdio)
or network-based (an HTTP or SSE endpoint). Definitions are read from several
JSON files; `origin` records which one, and `enabled` is derived from that
file's enable/disable lists rather than stored on the definition.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class ExtensionKind(str, Enum):
    """Transport of an MCP server."""

    COMMAND = "command"  # stdio: command + args
    HTTP = "http"
    SSE = "sse"

    @property
    def is_network(self) -> bool:
        return self is not ExtensionKind.COMMAND

    @property
    def display_name(self) -> str:
        return {"command": "Command", "http": "HTTP", "sse": "SSE"}[self.value]


class Activation(str, Enum):
    """Per-definition activation as stored in a source document.

    INHERITED means the id is in neither list and takes the document's
    default: on when the enabled-list is empty, off otherwise.
    """

    ENABLED = "enabled"
    DISABLED = "disabled"
    INHERITED = "inherited"


class LivenessState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class ExtensionDefinition(BaseModel):
    """A named MCP server configuration."""

    id: str = Field(min_length=1, description="Server name, unique within a source")
    kind: ExtensionKind = Field(default=ExtensionKind.COMMAND)

    # Command-based
    executable: Optional[str] = Field(default=None, description="npx / node / uvx / ...")
    arguments: list[str] = Field(default_factory=list)
    environment: Optional[dict[str, str]] = None

    # Network-based
    endpoint: Optional[str] = None
    headers: Optional[dict[str, str]] = None

    enabled: bool = Field(default=True, description="Derived from enable/disable lists")
    origin: Optional[str] = Field(default=None, description="Source tag it was read from")

    @model_validator(mode="after")
    def _check_shape(self) -> "ExtensionDefinition":
        if self.kind is ExtensionKind.COMMAND:
            if not self.executable:
                raise ValueError(f"Server '{self.id}': command servers need an executable")
        else:
            if not self.endpoint:
                raise ValueError(f"Server '{self.id}': {self.kind.value} servers need a url")
        return self

    def validation_errors(self) -> list[str]:
        """Stricter checks applied before we write a definition ourselves.

        Files written by other tools are read leniently; these only gate our
        own writes.
        """
        errors = []
        if self.id != self.id.strip():
            errors.append(f"Server '{self.id}': name has leading or trailing whitespace")
        if self.kind.is_network:
            if not (self.endpoint or "").startswith(("http://", "https://")):
                errors.append(f"Server '{self.id}': url must start with http:// or https://")
        elif self.executable and not self.executable.strip():
            errors.append(f"Server '{self.id}': executable is blank")
        return errors

    @property
    def name(self) -> str:
        return self.id

    @property
    def display_command(self) -> str:
        if self.kind is ExtensionKind.COMMAND:
            return " ".join([self.executable or "", *self.arguments]).strip()
        return self.endpoint or ""

    def to_blob(self) -> dict[str, Any]:
        """On-disk shape used by the mcpServers maps."""
        blob: dict[str, Any] = {}
        if self.kind is ExtensionKind.COMMAND:
            blob["command"] = self.executable
            if self.arguments:
                blob["args"] = list(self.arguments)
            if self.environment:
                blob["env"] = dict(self.environment)
        else:
            blob["type"] = self.kind.value
            blob["url"] = self.endpoint
            if self.headers:
                blob["headers"] = dict(self.headers)
        return blob


def _string_map(value: Any) -> Optional[dict[str, str]]:
    if not isinstance(value, dict):
        return None
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
        return None
    return dict(value)


def parse_definition(
    name: str, blob: Any, enabled: bool = True, origin: Optional[str] = None
) -> Optional[ExtensionDefinition]:
    """Classify an on-disk blob. Returns None for shapes we don't understand.

    A string `command` makes it command-based. Otherwise a string `type` plus a
    string `url` makes it network-based: "sse" is a stream server, any other
    tag is treated as plain HTTP.
    """
    if not isinstance(blob, dict) or not name:
        return None

    try:
        command = blob.get("command")
        if isinstance(command, str) and command:
            args = blob.get("args")
            return ExtensionDefinition(
                id=name,
                kind=ExtensionKind.COMMAND,
                executable=command,
                arguments=[a for a in args if isinstance(a, str)] if isinstance(args, list) else [],
                environment=_string_map(blob.get("env")),
                enabled=enabled,
                origin=origin,
            )

        type_tag = blob.get("type")
        url = blob.get("url")
        if isinstance(type_tag, str) and isinstance(url, str):
            return ExtensionDefinition(
                id=name,
                kind=ExtensionKind.SSE if type_tag == "sse" else ExtensionKind.HTTP,
                endpoint=url,
                headers=_string_map(blob.get("headers")),
                enabled=enabled,
                origin=origin,
            )
    except ValueError:
        # pydantic ValidationError is a ValueError
        return None

    return None
