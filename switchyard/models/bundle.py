"""
Skill bundle and sync target models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


class BundleOrigin(str, Enum):
    LOCAL = "local"
    GIT = "git"


class SyncState(str, Enum):
    SYNCED = "synced"
    NOT_SYNCED = "not_synced"


class Bundle(BaseModel):
    """A skill: one directory (or link to one) under the bundle root.

    Identity is the folder name, so renaming the folder on disk makes it a
    different bundle.
    """

    id: str = Field(description="Folder name")
    display_name: str = Field(description="Manifest name, or the folder name")
    description: Optional[str] = None
    origin_kind: BundleOrigin = BundleOrigin.LOCAL
    origin_location: Optional[str] = Field(
        default=None, description="Remote URL for git bundles, link target for linked bundles"
    )
    created_at: datetime
    path: Path = Field(description="Entry inside the bundle root")
    is_link: bool = False

    @property
    def folder_name(self) -> str:
        return self.path.name


@dataclass
class TargetTool:
    """A tool with its own skills directory that bundles can be linked into."""

    id: str
    label: str
    skills_dir: Path
    is_source: bool = False

    def bundle_path(self, bundle_id: str) -> Path:
        return self.skills_dir / bundle_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "skills_dir": str(self.skills_dir),
            "is_source": self.is_source,
        }


@dataclass
class BundleFile:
    """One node of a bundle's file tree."""

    name: str
    path: Path
    is_directory: bool
    size: Optional[int] = None
    children: list["BundleFile"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "path": str(self.path),
            "is_directory": self.is_directory,
        }
        if self.is_directory:
            result["children"] = [c.to_dict() for c in self.children]
        else:
            result["size"] = self.size
        return result
