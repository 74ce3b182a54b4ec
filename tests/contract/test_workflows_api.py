# tests/contract/test_workflows_api.py
#
# Contract tests for GET/POST/DELETE /api/workflows. The customer-support
# demo workflow is present at the start of every test.

import pytest

pytestmark = pytest.mark.contract

DEMO_ID = "wf-ai-agent-1"


def _execute(client, workflow_id=DEMO_ID, input_data=None):
    return client.post("/api/workflows", json={
        "action": "execute",
        "workflow_id": workflow_id,
        "input_data": input_data if input_data is not None else {"message": "My order is late"},
    })


def _simple_workflow(**overrides):
    workflow = {
        "name": "Notify",
        "nodes": [
            {"id": "t", "type": "trigger", "category": "core", "name": "Webhook Trigger"},
            {"id": "send", "type": "action", "category": "integration", "name": "Send Response"},
        ],
        "connections": [{"from": "t", "to": "send", "fromPort": "output", "toPort": "input"}],
        "triggers": [{"type": "manual"}],
    }
    workflow.update(overrides)
    return workflow


class TestListWorkflows:

    def test_demo_workflow_present(self, client):
        [workflow] = client.get("/api/workflows").json()["workflows"]
        assert workflow["id"] == DEMO_ID
        assert workflow["name"] == "Customer Support AI Agent"
        assert len(workflow["nodes"]) == 5
        assert workflow["connections"][-1] == {
            "from": "condition-1", "to": "action-2", "fromPort": "true", "toPort": "input",
        }
        assert workflow["executions"] == {
            "total": 142, "successful": 134, "failed": 8, "last_run": "2024-01-20T14:45:00Z",
        }

    def test_no_executions_yet(self, client):
        assert client.get("/api/workflows", params={"action": "executions"}).json() == {"executions": []}


class TestExecute:

    def test_demo_run_completes(self, client, analytics_store):
        resp = _execute(client)
        assert resp.status_code == 200

        execution = resp.json()["execution"]
        assert execution["id"].startswith("exec-")
        assert execution["workflow_id"] == DEMO_ID
        assert execution["status"] == "completed"
        assert execution["input_data"] == {"message": "My order is late"}
        assert execution["total_execution_time"] >= 0

        path = [step["node_id"] for step in execution["execution_path"]]
        assert path[:3] == ["trigger-1", "ai-agent-1", "condition-1"]
        assert sorted(path[3:]) == ["action-1", "action-2"]
        assert execution["output_data"]["trigger-1"] == {"message": "My order is late"}

        models = [r.model for r in analytics_store.records()]
        assert models == ["phi", f"workflow-{DEMO_ID}"]
        workflow_record = analytics_store.records()[-1]
        assert workflow_record.success is True
        assert workflow_record.tokens == execution["output_data"]["ai-agent-1"]["tokens"]

    def test_backend_down_uses_canned_agent_reply(self, client, fake_ollama):
        fake_ollama.available = False

        execution = _execute(client).json()["execution"]
        assert execution["status"] == "completed"

        agent = execution["output_data"]["ai-agent-1"]
        assert agent["response"] == "AI Agent successfully handled the task: My order is late"
        assert agent["requires_escalation"] is False

        steps = {step["node_id"]: step["status"] for step in execution["execution_path"]}
        assert steps["condition-1"] == "completed"
        assert steps["action-2"] == "skipped"
        assert steps["action-1"] == "completed"
        assert execution["output_data"]["condition-1"] == {"result": False}

    def test_stats_updated(self, client):
        _execute(client)

        [workflow] = client.get("/api/workflows").json()["workflows"]
        assert workflow["executions"]["total"] == 143
        assert workflow["executions"]["successful"] == 135
        assert workflow["performance"]["success_rate"] == round(135 / 143 * 100, 1)

    def test_executions_listed_and_filtered(self, client):
        created = client.post("/api/workflows", json={"action": "create", "workflow": _simple_workflow()}).json()
        _execute(client)
        _execute(client, created["workflow"]["id"], {})

        everything = client.get("/api/workflows", params={"action": "executions"}).json()["executions"]
        assert len(everything) == 2

        demo_only = client.get("/api/workflows", params={"action": "executions", "workflow_id": DEMO_ID})
        [execution] = demo_only.json()["executions"]
        assert execution["workflow_id"] == DEMO_ID

    def test_unknown_workflow(self, client):
        resp = _execute(client, "wf-missing")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Workflow not found"}

    def test_workflow_without_trigger_fails(self, client, analytics_store):
        workflow = _simple_workflow(nodes=[
            {"id": "send", "type": "action", "category": "integration", "name": "Send Response"},
        ], connections=[])
        created = client.post("/api/workflows", json={"action": "create", "workflow": workflow}).json()["workflow"]

        resp = _execute(client, created["id"], {})
        assert resp.status_code == 200
        execution = resp.json()["execution"]
        assert execution["status"] == "failed"
        assert execution["error"] == "No trigger node found in workflow"
        assert [r.success for r in analytics_store.records()] == [False]


class TestCreateUpdateDelete:

    def test_create(self, client):
        resp = client.post("/api/workflows", json={"action": "create", "workflow": _simple_workflow()})
        assert resp.status_code == 200

        workflow = resp.json()["workflow"]
        assert workflow["id"].startswith("wf-")
        assert workflow["status"] == "draft"
        assert workflow["category"] == "custom"
        assert workflow["executions"] == {"total": 0, "successful": 0, "failed": 0}
        assert workflow["created_at"] == workflow["updated_at"]
        assert len(client.get("/api/workflows").json()["workflows"]) == 2

    def test_create_requires_definition(self, client):
        resp = client.post("/api/workflows", json={"action": "create"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Workflow definition is required"}

    def test_dangling_connection_rejected(self, client):
        workflow = _simple_workflow(connections=[{"from": "t", "to": "ghost"}])
        resp = client.post("/api/workflows", json={"action": "create", "workflow": workflow})
        assert resp.status_code == 400
        assert "ghost" in resp.json()["error"]

    def test_update_keeps_identity_and_stats(self, client):
        resp = client.post("/api/workflows", json={
            "action": "update",
            "workflow_id": DEMO_ID,
            "workflow": {"name": "Renamed", "status": "inactive", "id": "wf-other", "executions": {"total": 0}},
        })
        assert resp.status_code == 200

        workflow = resp.json()["workflow"]
        assert workflow["id"] == DEMO_ID
        assert workflow["name"] == "Renamed"
        assert workflow["status"] == "inactive"
        assert workflow["executions"]["total"] == 142
        assert workflow["created_at"] == "2024-01-15T10:30:00Z"
        assert workflow["updated_at"] != "2024-01-20T14:45:00Z"

    def test_update_unknown(self, client):
        resp = client.post("/api/workflows", json={"action": "update", "workflow_id": "wf-x", "workflow": {}})
        assert resp.status_code == 404

    def test_delete(self, client):
        resp = client.delete("/api/workflows", params={"id": DEMO_ID})
        assert resp.status_code == 200
        assert resp.json() == {"message": "Workflow deleted successfully"}
        assert client.get("/api/workflows").json() == {"workflows": []}

    def test_delete_requires_id(self, client):
        resp = client.delete("/api/workflows")
        assert resp.status_code == 400
        assert resp.json() == {"error": "Workflow ID is required"}

    def test_delete_unknown(self, client):
        resp = client.delete("/api/workflows", params={"id": "wf-x"})
        assert resp.status_code == 404
        assert resp.json() == {"error": "Workflow not found"}

    def test_invalid_action(self, client):
        resp = client.post("/api/workflows", json={"action": "pause"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid action"}
