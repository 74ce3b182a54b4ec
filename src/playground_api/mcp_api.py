# src/playground_api/mcp_api.py
"""Simulated MCP tool server endpoints."""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Query, Request

from playground_api import fast_json as json
from playground_api.analytics import isoformat_z, utcnow
from playground_api.config import MCPRequest
from playground_api.errors import InternalError, InvalidRequest, PlaygroundError
from playground_api.mcp import COST_PER_CALL, MCPServer
from playground_api.prompt_formatter import estimate_tokens

logger = logging.getLogger(__name__)

mcp_router = APIRouter(
    prefix="/api/mcp",
    tags=["MCP"],
)


def _get_server(request: Request) -> MCPServer:
    return request.app.state.mcp_server


@mcp_router.get("",
    summary="MCP Server Status",
    description="""
`action=tools` lists the tools with their parameter specs, `action=contexts`
lists the contexts created so far. Without an action the server status is returned.
    """,
)
async def mcp_status(request: Request, action: Optional[str] = Query(None, description="tools or contexts")):
    server = _get_server(request)
    if action == "tools":
        return {"tools": server.list_tools()}
    if action == "contexts":
        return {"contexts": [context.to_dict() for context in server.list_contexts()]}
    return server.status()


@mcp_router.post("",
    summary="MCP Action",
    description="""
Dispatch on `action`:

- `execute_tool`: run `tool` with `parameters`. With `context_id` the
  `memory_manager` tool reads and writes that context's memory.
- `create_context`: create a context from `parameters` (`name`, `description`, `tools`).
- `update_context`: change `name`, `description`, `tools` or `memory` of `context_id`.

Every tool call is recorded in analytics as model `mcp-<tool>`.
    """,
    responses={
        400: {"description": "Missing tool, bad parameters or unknown action"},
        404: {"description": "Tool or context not found"},
        500: {"description": "Tool execution failed"},
    },
)
async def mcp_action(mcp_request: MCPRequest, request: Request):
    server = _get_server(request)

    if mcp_request.action == "execute_tool":
        return await _execute_tool(request, server, mcp_request)
    if mcp_request.action == "create_context":
        return server.create_context(mcp_request.parameters).to_dict()
    if mcp_request.action == "update_context":
        return server.update_context(mcp_request.context_id, mcp_request.parameters).to_dict()
    raise InvalidRequest("Invalid action")


async def _execute_tool(request: Request, server: MCPServer, mcp_request: MCPRequest):
    recorder = request.app.state.analytics_recorder
    tool = server.get_tool(mcp_request.tool)
    tokens = estimate_tokens(json.dumps(mcp_request.parameters or {}))
    start_time = time.monotonic()

    try:
        result = server.execute_tool(tool.name, mcp_request.parameters, mcp_request.context_id)
    except PlaygroundError:
        raise
    except Exception as e:
        logger.error(f"MCP tool '{tool.name}' failed: {e}", exc_info=True)
        await recorder.record(
            model=f"mcp-{tool.name}",
            tokens=tokens,
            response_time=time.monotonic() - start_time,
            success=False,
        )
        raise InternalError() from e

    await recorder.record(
        model=f"mcp-{tool.name}",
        tokens=tokens,
        response_time=time.monotonic() - start_time,
        success=True,
        cost=COST_PER_CALL,
    )
    return {"tool": tool.name, "result": result, "timestamp": isoformat_z(utcnow())}
