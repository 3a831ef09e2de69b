"""
Switching the model Claude Code uses.

Claude Code reads ANTHROPIC_MODEL, ANTHROPIC_AUTH_TOKEN and ANTHROPIC_BASE_URL
from the `env` block of ~/.claude/settings.json. Switching rewrites those
three fields and nothing else.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from switchyard.lib.json_document import (
    DocumentError,
    DocumentNotFoundError,
    JsonDocument,
    MalformedDocumentError,
    load_document,
    save_document,
)
from switchyard.lib.typed_errors import ErrorCode, OperationResult
from switchyard.models.preset import ModelPlatform, ModelPreset, find_preset

logger = logging.getLogger(__name__)

MODEL_KEY = ("env", "ANTHROPIC_MODEL")
TOKEN_KEY = ("env", "ANTHROPIC_AUTH_TOKEN")
BASE_URL_KEY = ("env", "ANTHROPIC_BASE_URL")


class ModelState(BaseModel):
    """What the settings file currently selects."""

    model_id: Optional[str] = None
    platform: ModelPlatform = ModelPlatform.ANTHROPIC
    base_url: Optional[str] = None
    has_token: bool = False
    display_name: str = "Not set"

    model_config = {"protected_namespaces": ()}


def _str_field(doc: JsonDocument, path: tuple[str, ...]) -> Optional[str]:
    value = doc.get_field(path)
    return value if isinstance(value, str) and value else None


class ModelSwitcher:
    """Reads and rewrites the model selection in Claude Code's settings."""

    def __init__(self, settings_path: Path):
        self.settings_path = settings_path

    def _read(self) -> Optional[JsonDocument]:
        try:
            return load_document(self.settings_path)
        except DocumentNotFoundError:
            return None
        except MalformedDocumentError as e:
            logger.warning(f"Cannot read model settings: {e}")
            return None

    def _token(self) -> Optional[str]:
        doc = self._read()
        return _str_field(doc, TOKEN_KEY) if doc is not None else None

    def current(self) -> ModelState:
        doc = self._read()
        if doc is None:
            return ModelState()

        model_id = _str_field(doc, MODEL_KEY)
        base_url = _str_field(doc, BASE_URL_KEY)
        platform = ModelPlatform.detect(base_url)
        preset = find_preset(model_id, platform) if model_id else None
        return ModelState(
            model_id=model_id,
            platform=platform,
            base_url=base_url,
            has_token=_str_field(doc, TOKEN_KEY) is not None,
            display_name=preset.display_name if preset else (model_id or "Not set"),
        )

    def switch(self, preset: ModelPreset, api_key: Optional[str] = None) -> OperationResult:
        """Point Claude Code at `preset`.

        Without an explicit key the token already on disk is reused, but only
        when it belongs to the same platform.
        """
        key = api_key
        if not key and self.current().platform is preset.platform:
            key = self._token()
        if not key:
            return OperationResult.fail(
                ErrorCode.API_KEY_MISSING,
                f"No API key for {preset.platform.label}",
                subject=preset.model_id,
            )

        try:
            try:
                doc = load_document(self.settings_path)
            except DocumentNotFoundError:
                doc = JsonDocument.empty()

            doc.set_field(MODEL_KEY, preset.model_id)
            doc.set_field(TOKEN_KEY, key)
            base_url = preset.platform.base_url
            if base_url:
                doc.set_field(BASE_URL_KEY, base_url)
            else:
                doc.remove_field(BASE_URL_KEY)
            save_document(doc, self.settings_path)
        except MalformedDocumentError as e:
            return OperationResult.fail(
                ErrorCode.MALFORMED_SOURCE,
                f"Refusing to modify {e.path}: {e.message}",
                subject=preset.model_id,
            )
        except DocumentError as e:
            return OperationResult.fail(ErrorCode.FILESYSTEM_ERROR, str(e), subject=preset.model_id)

        logger.info(f"Switched model to {preset.model_id} ({preset.platform.value})")
        return OperationResult.ok(
            f"Switched to {preset.display_name}",
            subject=preset.model_id,
            platform=preset.platform.value,
        )

    def quick_switch(self, model_id: str, api_key: Optional[str] = None) -> OperationResult:
        """Switch by model id; unknown ids become custom models on the current platform."""
        if not model_id.strip():
            return OperationResult.fail(ErrorCode.INVALID_DEFINITION, "Model id is empty")
        platform = self.current().platform
        preset = find_preset(model_id, platform)
        if preset is None:
            preset = ModelPreset(
                model_id=model_id, display_name=model_id, platform=platform, is_custom=True
            )
        return self.switch(preset, api_key)
