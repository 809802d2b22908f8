import json

import pytest

from flowgraph.mcp.executor import TOOL_CLASSES, execute_mcp_tool
from flowgraph.utils.exceptions import WorkflowStoreError
from tests.factories import HTTP_NODE, make_execution, make_node, make_workflow, run_entry, simple_workflow


async def _call(tools, name, /, **args):
    return await execute_mcp_tool(tool_name=name, args=args, tools=tools)


@pytest.mark.asyncio
async def test_unknown_tool_returns_not_found(tools):
    result = await _call(tools, "teleport")

    assert result["success"] is False
    assert result["code"] == "not_found"


@pytest.mark.asyncio
async def test_invalid_arguments_never_reach_the_store(tools, store):
    missing_target = await _call(tools, "connect", workflow="wf-1", action="add", source="Start")
    extra_field = await _call(tools, "discover", type="nodes", colour="blue")

    assert missing_target["code"] == "validation_error"
    assert extra_field["code"] == "validation_error"
    assert isinstance(extra_field["detail"], list)
    assert sum(store.calls.values()) == 0


@pytest.mark.asyncio
async def test_connect_add_is_idempotent(tools, store):
    first = await _call(tools, "connect", workflow="wf-1", action="add", source="Start", target="Fetch")
    second = await _call(tools, "connect", workflow="wf-1", action="add", source="Start", target="Fetch")

    assert first["success"] is True
    assert first["data"]["status"] == "added"
    assert first["data"]["connection_count"] == 3
    assert second["success"] is True
    assert second["data"]["success"] is False
    assert second["data"]["status"] == "already_exists"
    assert store.calls["update_workflow"] == 1


@pytest.mark.asyncio
async def test_connect_list_and_remove(tools, store):
    listed = await _call(tools, "connect", workflow="Simple", action="list")
    removed = await _call(tools, "connect", workflow="wf-1", action="remove", source="Set", target="Fetch")

    assert listed["data"]["total"] == 2
    assert listed["data"]["connections"][0]["from"]["name"] == "Start"
    assert removed["data"]["status"] == "removed"
    assert "Set" not in store.workflows["wf-1"].connections


@pytest.mark.asyncio
async def test_modify_node_rename_keeps_connections(tools, store):
    result = await _call(tools, "modify", workflow="wf-1", type="node", node="Set", changes={"name": "Prepare"})

    assert result["success"] is True
    stored = store.workflows["wf-1"]
    assert stored.connections["Start"]["main"][0][0].node == "Prepare"
    assert "Prepare" in stored.connections


@pytest.mark.asyncio
async def test_modify_node_rejects_duplicate_name(tools, store):
    result = await _call(tools, "modify", workflow="wf-1", type="node", node="Set", changes={"name": "Fetch"})

    assert result["code"] == "validation_error"
    assert store.calls["update_workflow"] == 0


@pytest.mark.asyncio
async def test_modify_activation_requires_trigger(tools, store):
    store.add(make_workflow("Bare", [make_node("A")], workflow_id="wf-2"))

    rejected = await _call(tools, "modify", workflow="wf-2", type="workflow", changes={"active": True})
    accepted = await _call(tools, "modify", workflow="wf-1", type="workflow", changes={"active": True})

    assert rejected["code"] == "structural_error"
    assert rejected["detail"][0]["kind"] == "missing_trigger"
    assert accepted["data"]["workflow"]["active"] is True
    assert store.workflows["wf-1"].active is True


@pytest.mark.asyncio
async def test_create_workflow_from_skeleton(tools, store):
    result = await _call(tools, "create", type="workflow", name="Inbound", template="webhook")

    created = store.workflows[result["data"]["workflow"]["id"]]
    assert result["data"]["node_count"] == 2
    assert [n.name for n in created.nodes] == ["Webhook", "Respond to Webhook"]
    assert created.nodes[1].position[0] - created.nodes[0].position[0] == 200


@pytest.mark.asyncio
async def test_create_node_after_existing_node(tools, store):
    result = await _call(tools, "create", type="node", workflow="wf-1", node_type=HTTP_NODE, after="Set")

    assert result["data"]["node"]["name"] == "Http Request"
    assert result["data"]["connection"]["status"] == "added"
    stored = store.workflows["wf-1"]
    assert len(stored.nodes) == 4
    assert [t.node for t in stored.connections["Set"]["main"][0]] == ["Fetch", "Http Request"]


@pytest.mark.asyncio
async def test_create_trigger_rejects_non_trigger_type(tools):
    result = await _call(tools, "create", type="trigger", workflow="wf-1", node_type="n8n-nodes-base.set")

    assert result["code"] == "validation_error"


@pytest.mark.asyncio
async def test_discover_and_validate(tools):
    overview = await _call(tools, "discover", type="nodes")
    missing = await _call(tools, "discover", type="nodes", node_type="acme.none")
    report = await _call(tools, "validate", type="workflow", workflow="wf-1", deep=True)

    assert overview["data"]["total_nodes"] == 3
    assert missing["code"] == "not_found"
    assert report["data"]["valid"] is True


@pytest.mark.asyncio
async def test_execute_run_waits_for_result(tools, store):
    store.script_execution("wf-1", "ex-1", [make_execution("ex-1", status="success")])

    result = await _call(tools, "execute", action="run", workflow="wf-1", wait=True)
    production = await _call(tools, "execute", action="run", workflow="wf-1", mode="production")

    assert result["data"]["execution_id"] == "ex-1"
    assert result["data"]["status"] == "success"
    assert production["code"] == "validation_error"


@pytest.mark.asyncio
async def test_execute_trace_resolves_workflow_from_execution(tools, store):
    store.executions["ex-5"] = [
        make_execution("ex-5", run_data={"Set": [run_entry()], "Start": [run_entry()]}),
    ]

    result = await _call(tools, "execute", action="trace", execution_id="ex-5")

    assert result["data"]["order"] == ["Start", "Set"]
    assert result["data"]["summary"]["successful_nodes"] == 2


@pytest.mark.asyncio
async def test_batch_dry_run_through_tool(tools, store):
    result = await _call(
        tools, "batch", operation="delete", targets={"workflow_ids": ["wf-1"]}, options={"dry_run": True}
    )

    assert result["data"]["successful"][0]["status"] == "would_delete"
    assert store.calls["delete_workflow"] == 0


@pytest.mark.asyncio
async def test_batch_abort_reports_completed_items_and_backups(tools, store, discovery):
    store.add(simple_workflow("wf-2", name="Two"))
    store.add(simple_workflow("wf-3", name="Three"))
    store.failures[("delete_workflow", "wf-2")] = WorkflowStoreError("locked", status_code=409)
    await discovery.discover()

    result = await _call(
        tools,
        "batch",
        operation="delete",
        targets={"workflow_ids": ["wf-1", "wf-2", "wf-3"]},
        options={"concurrent": 1, "continue_on_error": False},
    )

    assert result["success"] is False
    assert result["code"] == "batch_aborted"
    detail = result["detail"]
    assert detail["cause"]["code"] == "store_error"
    assert [item["id"] for item in detail["successful"]] == ["wf-1"]
    assert [item["id"] for item in detail["failed"]] == ["wf-2"]
    assert [b["id"] for b in detail["backups"]] == ["wf-1", "wf-2", "wf-3"]
    assert detail["backups"][0]["backup"]["name"] == "Simple"
    assert sorted(store.workflows) == ["wf-2", "wf-3"]
    assert discovery.cached_catalog is None


@pytest.mark.asyncio
async def test_template_generate_and_save(tools, store):
    preview = await _call(tools, "template", action="generate", pattern="webhook_api", name="Inbound", save=False)
    saved = await _call(tools, "template", action="generate", pattern="scheduled_task")

    assert preview["data"]["workflow"]["name"] == "Inbound"
    assert "created" not in preview["data"]
    assert store.workflows[saved["data"]["created"]["id"]].name == "Scheduled Task"


@pytest.mark.asyncio
async def test_template_create_then_apply(tools, store):
    created = await _call(tools, "template", action="create", workflow="wf-1")
    applied = await _call(
        tools,
        "template",
        action="apply",
        template=created["data"]["template"],
        variables={"node_2_url": "https://staging.example.com"},
        save=False,
    )

    nodes = applied["data"]["workflow"]["nodes"]
    assert nodes[2]["parameters"]["url"] == "https://staging.example.com"
    assert applied["data"]["missing_variables"] == []


def test_http_lists_every_tool(client):
    response = client.get("/mcp/tools")

    assert response.status_code == 200
    names = [tool["name"] for tool in response.json()["tools"]]
    assert names == [cls.name for cls in TOOL_CLASSES]
    assert all("properties" in tool["inputSchema"] for tool in response.json()["tools"])


def test_http_tool_call_wraps_envelope(client):
    ok = client.post("/mcp/tools/call", json={"name": "discover", "arguments": {"type": "workflows"}})
    failed = client.post("/mcp/tools/call", json={"name": "discover", "arguments": {"type": "galaxies"}})

    assert ok.status_code == 200
    assert ok.json()["isError"] is False
    assert json.loads(ok.json()["content"][0]["text"])["data"]["total"] == 1
    assert failed.status_code == 200
    assert failed.json()["isError"] is True
    assert ok.headers["X-Correlation-ID"]


def test_health_and_info(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/mcp/info").json()["protocolVersion"] == "2024-11-05"
