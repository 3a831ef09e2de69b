"""
Skill bundle API endpoints.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from switchyard.api.deps import check_result, get_engine
from switchyard.core.engine import Engine
from switchyard.models.bundle import Bundle

router = APIRouter()
logger = logging.getLogger(__name__)


class InstallRequest(BaseModel):
    """Install from a local folder/zip (`path`) or a git repository (`url`)."""

    path: Optional[str] = None
    url: Optional[str] = None
    name: Optional[str] = None


def _require_bundle(engine: Engine, skill_id: str) -> Bundle:
    bundle = engine.get_bundle(skill_id)
    if bundle is None:
        raise HTTPException(status_code=404, detail=f"Skill '{skill_id}' not found")
    return bundle


def bundle_response(bundle: Bundle) -> dict[str, Any]:
    return bundle.model_dump(mode="json")


@router.get("/skills")
async def list_skills(
    request: Request,
    refresh: bool = Query(False, description="Rescan the bundle root first"),
) -> dict[str, Any]:
    engine = get_engine(request)
    if refresh:
        await engine.rescan()
    return {
        "skills": [bundle_response(b) for b in engine.bundles],
        "root": str(engine.bundle_root),
        "targets": [t.to_dict() for t in engine.targets],
    }


@router.post("/skills/sync/refresh")
async def refresh_sync_status(request: Request) -> dict[str, Any]:
    engine = get_engine(request)
    results = await engine.refresh_sync_status()
    statuses: dict[str, dict[str, str]] = {}
    for (bundle_id, target_id), state in results.items():
        statuses.setdefault(bundle_id, {})[target_id] = state.value
    return {"statuses": statuses}


@router.post("/skills/install")
async def install_skill(request: Request, body: InstallRequest) -> dict[str, Any]:
    if bool(body.path) == bool(body.url):
        raise HTTPException(status_code=400, detail="Provide exactly one of 'path' or 'url'")
    engine = get_engine(request)
    if body.url:
        result = await engine.install_git(body.url, body.name)
    else:
        result = await engine.install_local(Path(body.path), body.name)
    return check_result(result)


@router.get("/skills/{skill_id}")
async def get_skill(request: Request, skill_id: str) -> dict[str, Any]:
    engine = get_engine(request)
    bundle = _require_bundle(engine, skill_id)
    statuses = await engine.bundle_status(skill_id)
    return {
        **bundle_response(bundle),
        "sync": {target_id: state.value for target_id, state in statuses.items()},
    }


@router.get("/skills/{skill_id}/files")
async def list_skill_files(request: Request, skill_id: str) -> dict[str, Any]:
    engine = get_engine(request)
    _require_bundle(engine, skill_id)
    return {"files": [f.to_dict() for f in engine.bundle_files(skill_id) or []]}


@router.get("/skills/{skill_id}/files/{file_path:path}")
async def read_skill_file(request: Request, skill_id: str, file_path: str) -> dict[str, Any]:
    engine = get_engine(request)
    _require_bundle(engine, skill_id)
    try:
        content = await engine.read_bundle_file(skill_id, file_path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"File '{file_path}' not found")
    return {"path": file_path, "content": content}


@router.post("/skills/{skill_id}/sync/{target_id}")
async def sync_skill(request: Request, skill_id: str, target_id: str) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.sync_bundle(skill_id, target_id))


@router.delete("/skills/{skill_id}/sync/{target_id}")
async def unsync_skill(request: Request, skill_id: str, target_id: str) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.unsync_bundle(skill_id, target_id))


@router.post("/skills/{skill_id}/update")
async def update_skill(request: Request, skill_id: str) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.update_bundle(skill_id))


@router.delete("/skills/{skill_id}")
async def delete_skill(request: Request, skill_id: str) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.delete_bundle(skill_id))
