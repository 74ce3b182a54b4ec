# src/playground_api/schema/__init__.py

from playground_api.schema.streaming import (
    PartialEvent,
    FinalEvent,
    ErrorEvent,
    StreamEvent,
    to_sse,
)
from playground_api.schema.workflows import (
    WorkflowNode,
    WorkflowConnection,
    WorkflowDefinition,
    Workflow,
    ExecutionStep,
    WorkflowExecution,
)
