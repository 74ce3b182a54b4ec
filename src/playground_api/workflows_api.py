# src/playground_api/workflows_api.py
"""Workflow definition and execution endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from playground_api.config import WorkflowActionRequest
from playground_api.errors import InvalidRequest
from playground_api.workflows import WorkflowExecutor, WorkflowStore

logger = logging.getLogger(__name__)

workflows_router = APIRouter(
    prefix="/api/workflows",
    tags=["Workflows"],
)


def _get_store(request: Request) -> WorkflowStore:
    return request.app.state.workflow_store


@workflows_router.get("",
    summary="List Workflows or Executions",
    description="""
All workflows by default. With `action=executions` the execution history
instead, optionally filtered by `workflow_id`.
    """,
)
async def list_workflows(
    request: Request,
    action: Optional[str] = Query(None, description="executions"),
    workflow_id: Optional[str] = Query(None, description="Only executions of this workflow"),
):
    store = _get_store(request)
    if action == "executions":
        return {"executions": [e.to_dict() for e in store.list_executions(workflow_id)]}
    return {"workflows": [w.to_dict() for w in store.list_workflows()]}


@workflows_router.post("",
    summary="Workflow Action",
    description="""
Dispatch on `action`:

- `execute`: run `workflow_id` once with `input_data` and return the execution.
  Node failures fail the execution (status `failed` with an `error`), not the request.
- `create`: add `workflow` (name, nodes, connections, triggers, variables).
- `update`: merge `workflow` into `workflow_id`. Ids, timestamps and statistics are kept.

Each execution is recorded in analytics as model `workflow-<id>`.
    """,
    responses={
        400: {"description": "Missing or invalid workflow, or unknown action"},
        404: {"description": "Workflow not found"},
    },
)
async def workflow_action(action_request: WorkflowActionRequest, request: Request):
    store = _get_store(request)

    if action_request.action == "execute":
        workflow = store.get(action_request.workflow_id)
        executor = WorkflowExecutor(
            workflow,
            action_request.input_data,
            store.new_execution_id(),
            completion_service=request.app.state.completion_service,
            mcp_server=request.app.state.mcp_server,
            recorder=request.app.state.analytics_recorder,
            rng=store.rng,
            wall_clock=store.wall_clock,
        )
        execution = await executor.execute()
        store.record_execution(execution)
        return {"execution": execution.to_dict()}

    if action_request.action == "create":
        return {"workflow": store.create(action_request.workflow).to_dict()}
    if action_request.action == "update":
        return {"workflow": store.update(action_request.workflow_id, action_request.workflow).to_dict()}
    raise InvalidRequest("Invalid action")


@workflows_router.delete("",
    summary="Delete Workflow",
    description="Delete the workflow named by the `id` query parameter.",
    responses={
        400: {"description": "Missing id"},
        404: {"description": "Workflow not found"},
    },
)
async def delete_workflow(request: Request, id: Optional[str] = Query(None, description="Workflow ID to delete")):
    _get_store(request).delete(id)
    return {"message": "Workflow deleted successfully"}
