"""
Pydantic models for Switchyard.
"""

from switchyard.models.bundle import Bundle, BundleFile, BundleOrigin, SyncState, TargetTool
from switchyard.models.extension import (
    Activation,
    ExtensionDefinition,
    ExtensionKind,
    LivenessState,
    parse_definition,
)
from switchyard.models.preset import ModelPlatform, ModelPreset, PRESETS

__all__ = [
    # Extensions
    "Activation",
    "ExtensionDefinition",
    "ExtensionKind",
    "LivenessState",
    "parse_definition",
    # Bundles
    "Bundle",
    "BundleFile",
    "BundleOrigin",
    "SyncState",
    "TargetTool",
    # Models
    "ModelPlatform",
    "ModelPreset",
    "PRESETS",
]
