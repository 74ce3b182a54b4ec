# src/playground_api/schema/workflows.py
#
# Workflow graph types for /api/workflows.
#
# A workflow is a set of nodes joined by directed connections. Execution
# starts at the trigger nodes and follows connections depth-first; condition
# nodes only follow connections whose fromPort matches their result
# ("true"/"false") or is the plain "output" port.

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

NodeType = Literal["trigger", "ai", "action", "condition", "transform"]
NodeCategory = Literal["ai", "core", "integration", "flow", "human"]
StepStatus = Literal["running", "completed", "failed", "skipped"]


class NodePosition(BaseModel):
    x: float = 0
    y: float = 0


class NodeConnections(BaseModel):
    input: List[str] = Field(default_factory=list)
    output: List[str] = Field(default_factory=list)


class WorkflowNode(BaseModel):
    id: str
    type: NodeType
    category: NodeCategory
    name: str
    description: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)
    position: NodePosition = Field(default_factory=NodePosition)
    connections: NodeConnections = Field(default_factory=NodeConnections)
    status: Literal["idle", "running", "success", "error", "waiting"] = "idle"


class WorkflowConnection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_node: str = Field(alias="from")
    to: str
    from_port: str = Field("output", alias="fromPort")
    to_port: str = Field("input", alias="toPort")


class WorkflowTrigger(BaseModel):
    type: Literal["manual", "webhook", "schedule", "event"]
    config: Dict[str, Any] = Field(default_factory=dict)


class ExecutionStats(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    last_run: Optional[str] = None


class PerformanceStats(BaseModel):
    avg_execution_time: float = 0.0
    success_rate: float = 0.0
    total_runtime: float = 0.0


class WorkflowDefinition(BaseModel):
    """The user-editable part of a workflow."""
    name: str
    description: str = ""
    status: Literal["active", "inactive", "draft"] = "draft"
    category: Literal["ai-agent", "automation", "integration", "custom"] = "custom"
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[WorkflowConnection] = Field(default_factory=list)
    triggers: List[WorkflowTrigger] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    created_by: str = "user-1"

    @field_validator("nodes")
    @classmethod
    def validate_nodes(cls, v):
        ids = [node.id for node in v]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate node ids: {', '.join(duplicates)}")
        return v

    @field_validator("connections")
    @classmethod
    def validate_connections(cls, v, info: ValidationInfo):
        # Cross-checked only once the nodes themselves validated
        if "nodes" not in info.data:
            return v
        known = {node.id for node in info.data["nodes"]}
        for conn in v:
            for end in (conn.from_node, conn.to):
                if end not in known:
                    raise ValueError(f"Connection references unknown node '{end}'")
        return v

    def node(self, node_id: str) -> Optional[WorkflowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)


class Workflow(WorkflowDefinition):
    id: str
    created_at: str
    updated_at: str
    executions: ExecutionStats = Field(default_factory=ExecutionStats)
    performance: PerformanceStats = Field(default_factory=PerformanceStats)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExecutionStep(BaseModel):
    node_id: str
    status: StepStatus = "running"
    started_at: str
    completed_at: Optional[str] = None
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    execution_time: float = 0.0  # milliseconds


class WorkflowExecution(BaseModel):
    id: str
    workflow_id: str
    status: Literal["running", "completed", "failed", "cancelled"] = "running"
    started_at: str
    completed_at: Optional[str] = None
    input_data: Dict[str, Any] = Field(default_factory=dict)
    output_data: Optional[Dict[str, Any]] = None
    execution_path: List[ExecutionStep] = Field(default_factory=list)
    error: Optional[str] = None
    total_execution_time: float = 0.0  # milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
