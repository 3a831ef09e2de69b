"""
MCP server management API endpoints.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from switchyard.api.deps import check_result, get_engine
from switchyard.core.templates import find_template, templates_by_category
from switchyard.models.extension import ExtensionDefinition, parse_definition

router = APIRouter()
logger = logging.getLogger(__name__)


class McpServerBody(BaseModel):
    """Server configuration as posted by clients, in the on-disk shape."""

    command: Optional[str] = None
    args: list[str] = Field(default_factory=list)
    env: Optional[dict[str, str]] = None
    type: Optional[str] = Field(default=None, description="http or sse for network servers")
    url: Optional[str] = None
    headers: Optional[dict[str, str]] = None

    def to_blob(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"name"})


class McpServerCreate(McpServerBody):
    name: str


class TemplateInstall(BaseModel):
    name: Optional[str] = None
    env: dict[str, str] = Field(default_factory=dict)
    args: list[str] = Field(default_factory=list)


class EnabledBody(BaseModel):
    enabled: bool


def _to_definition(name: str, body: McpServerBody) -> ExtensionDefinition:
    blob = body.to_blob()
    if body.command is None and body.url is not None and body.type is None:
        blob["type"] = "http"
    definition = parse_definition(name, blob)
    if definition is None:
        raise HTTPException(
            status_code=400,
            detail="Server needs either a command, or a type and url",
        )
    return definition


def server_response(definition: ExtensionDefinition) -> dict[str, Any]:
    return {
        "name": definition.id,
        **definition.to_blob(),
        "kind": definition.kind.value,
        "enabled": definition.enabled,
        "source": definition.origin,
        "displayType": definition.kind.display_name,
        "displayCommand": definition.display_command,
    }


@router.get("/mcps")
async def list_mcp_servers(
    request: Request,
    refresh: bool = Query(False, description="Rescan sources first"),
) -> dict[str, Any]:
    """
    List MCP servers merged from every source.
    """
    engine = get_engine(request)
    if refresh:
        await engine.rescan()
    return {
        "servers": [server_response(d) for d in engine.definitions],
        "sources": [e.to_dict() for e in engine.registry],
    }


@router.post("/mcps/rescan")
async def rescan_sources(request: Request) -> dict[str, Any]:
    engine = get_engine(request)
    counts = await engine.rescan()
    return {"success": True, **(counts if isinstance(counts, dict) else {})}


@router.get("/mcps/templates")
async def list_templates() -> dict[str, Any]:
    return {
        "categories": [
            {"category": category, "templates": [t.to_dict() for t in templates]}
            for category, templates in templates_by_category()
        ]
    }


@router.post("/mcps/templates/{template_id}")
async def add_from_template(request: Request, template_id: str, body: TemplateInstall) -> dict[str, Any]:
    if find_template(template_id) is None:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    engine = get_engine(request)
    result = await engine.add_from_template(template_id, body.env, body.name, body.args)
    return check_result(result)


@router.post("/mcps/status/refresh")
async def refresh_statuses(request: Request) -> dict[str, Any]:
    engine = get_engine(request)
    statuses = await engine.refresh_liveness()
    return {"statuses": {name: state.value for name, state in statuses.items()}}


@router.get("/mcps/{name}")
async def get_mcp_server(request: Request, name: str) -> dict[str, Any]:
    definition = get_engine(request).get_definition(name)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"MCP server '{name}' not found")
    return server_response(definition)


@router.post("/mcps")
async def add_mcp_server(request: Request, body: McpServerCreate) -> dict[str, Any]:
    """
    Add an MCP server to the primary source.
    """
    engine = get_engine(request)
    result = await engine.add_definition(_to_definition(body.name, body))
    return check_result(result)


@router.put("/mcps/{name}")
async def update_mcp_server(request: Request, name: str, body: McpServerBody) -> dict[str, Any]:
    engine = get_engine(request)
    result = await engine.update_definition(_to_definition(name, body))
    return check_result(result)


@router.delete("/mcps/{name}")
async def remove_mcp_server(request: Request, name: str) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.remove_definition(name))


@router.post("/mcps/{name}/toggle")
async def toggle_mcp_server(request: Request, name: str) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.toggle_definition(name))


@router.put("/mcps/{name}/enabled")
async def set_mcp_server_enabled(request: Request, name: str, body: EnabledBody) -> dict[str, Any]:
    engine = get_engine(request)
    return check_result(await engine.set_definition_enabled(name, body.enabled))


@router.get("/mcps/{name}/status")
async def mcp_server_status(request: Request, name: str) -> dict[str, Any]:
    engine = get_engine(request)
    state = await engine.definition_status(name)
    if state is None:
        raise HTTPException(status_code=404, detail=f"MCP server '{name}' not found")
    return {"name": name, "status": state.value}
