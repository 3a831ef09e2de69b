"""
Model switching API endpoints.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from switchyard.api.deps import check_result, get_engine
from switchyard.models.preset import PRESETS, ModelPlatform, ModelPreset, find_preset

router = APIRouter()
logger = logging.getLogger(__name__)


class SwitchRequest(BaseModel):
    model_id: str
    platform: Optional[ModelPlatform] = None
    api_key: Optional[str] = None

    model_config = {"protected_namespaces": ()}


@router.get("/models")
async def list_models(
    platform: Optional[ModelPlatform] = Query(None, description="Filter by platform"),
) -> dict[str, Any]:
    presets = [p for p in PRESETS if platform is None or p.platform is platform]
    return {
        "models": [p.model_dump(mode="json") for p in presets],
        "platforms": [
            {"id": p.value, "label": p.label, "base_url": p.base_url} for p in ModelPlatform
        ],
    }


@router.get("/models/current")
async def current_model(request: Request) -> dict[str, Any]:
    engine = get_engine(request)
    return engine.current_model().model_dump(mode="json")


@router.post("/models/switch")
async def switch_model(request: Request, body: SwitchRequest) -> dict[str, Any]:
    """
    Switch Claude Code to a model.

    With a platform, an unknown model id is accepted as a custom model on
    that platform; without one the current platform is assumed.
    """
    engine = get_engine(request)
    if body.platform is None:
        result = await engine.quick_switch_model(body.model_id, body.api_key)
        return check_result(result)

    preset = find_preset(body.model_id, body.platform)
    if preset is None or preset.platform is not body.platform:
        if not body.model_id.strip():
            raise HTTPException(status_code=400, detail="model_id is empty")
        preset = ModelPreset(
            model_id=body.model_id,
            display_name=body.model_id,
            platform=body.platform,
            is_custom=True,
        )
    return check_result(await engine.switch_model(preset, body.api_key))
