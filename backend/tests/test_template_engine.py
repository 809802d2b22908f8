import pytest

from flowgraph.schemas.template import WorkflowTemplate
from flowgraph.schemas.workflow import Workflow
from flowgraph.services.node_catalog import build_catalog
from flowgraph.services.template_engine import (
    TemplateEngine,
    calculate_complexity,
    matching_rule,
    substitute,
)
from flowgraph.services.workflow_patterns import WORKFLOW_PATTERNS, get_pattern
from tests.factories import HTTP_NODE, MANUAL_TRIGGER, chain, make_node, make_workflow, simple_workflow


def _api_workflow():
    return make_workflow(
        name="Orders",
        workflow_id="wf-9",
        nodes=[
            make_node("Start", MANUAL_TRIGGER),
            make_node(
                "Call API",
                HTTP_NODE,
                parameters={
                    "url": "https://api.example.com/orders",
                    "apiKey": "abc123",
                    "body": "={{ $json.payload }}",
                    "timeout": 30,
                },
                credentials={"httpHeaderAuth": {"id": "7", "name": "Prod key"}},
            ),
        ],
        connections=chain("Start", "Call API"),
    )


def test_matching_rule_skips_expressions_and_non_strings():
    assert matching_rule("url", "https://example.com") == 0
    assert matching_rule("apiKey", "abc-123") == 1
    assert matching_rule("url", "={{ $json.url }}") is None
    assert matching_rule("timeout", 30) is None
    assert matching_rule("tableName", "orders") == 3


def test_substitute_keeps_lone_placeholder_types_and_unknown_placeholders():
    values = {"count": 5, "host": "example.com"}

    result = substitute({"n": "{{count}}", "u": "https://{{host}}/x", "keep": "{{missing}}"}, values)

    assert result == {"n": 5, "u": "https://example.com/x", "keep": "{{missing}}"}


def test_extract_replaces_values_and_credentials():
    template = TemplateEngine().extract(_api_workflow())

    node = template.workflow["nodes"][1]
    assert node["parameters"]["url"] == "{{node_1_url}}"
    assert node["parameters"]["apiKey"] == "{{node_1_apiKey}}"
    assert node["parameters"]["body"] == "={{ $json.payload }}"
    assert node["parameters"]["timeout"] == 30
    assert node["credentials"]["httpHeaderAuth"]["id"] == "{{credential_httpHeaderAuth}}"
    assert template.variables["node_1_url"].default_value == "https://api.example.com/orders"
    assert template.metadata.original_id == "wf-9"
    assert template.metadata.required_credentials == ["httpHeaderAuth"]
    assert "id" not in template.workflow
    assert template.workflow["active"] is False


def test_apply_round_trips_to_original_parameters():
    workflow = simple_workflow()
    engine = TemplateEngine()

    payload = engine.apply(engine.extract(workflow), {})
    restored = Workflow.model_validate(payload)

    assert [n.parameters for n in restored.nodes] == [n.parameters for n in workflow.nodes]
    assert restored.connections == workflow.connections


def test_apply_maps_or_drops_placeholder_credentials():
    engine = TemplateEngine()
    template = engine.extract(_api_workflow())

    mapped = engine.apply(template, {}, credentials={"httpHeaderAuth": {"id": "42", "name": "Staging key"}})
    dropped = engine.apply(template, {})

    assert mapped["nodes"][1]["credentials"] == {"httpHeaderAuth": {"id": "42", "name": "Staging key"}}
    assert "credentials" not in dropped["nodes"][1]


def test_apply_uses_supplied_variables_over_defaults():
    engine = TemplateEngine()
    template = engine.extract(_api_workflow())

    payload = engine.apply(template, {"node_1_url": "https://staging.example.com/orders"})

    assert payload["nodes"][1]["parameters"]["url"] == "https://staging.example.com/orders"
    assert payload["nodes"][1]["parameters"]["apiKey"] == "abc123"


def test_missing_variables_reports_required_without_value():
    template = WorkflowTemplate(
        id="t",
        name="T",
        workflow={"name": "{{workflow_name}}", "nodes": []},
        variables={"workflow_name": {"description": "name", "default_value": ""}},
    )

    assert TemplateEngine().missing_variables(template, {}) == ["workflow_name"]
    assert TemplateEngine().missing_variables(template, {"workflow_name": "X"}) == []


@pytest.mark.parametrize("pattern_id", [p["id"] for p in WORKFLOW_PATTERNS])
def test_builtin_patterns_instantiate_with_defaults(pattern_id):
    template = WorkflowTemplate.model_validate(get_pattern(pattern_id))

    workflow = Workflow.model_validate(TemplateEngine().apply(template, {}))

    assert workflow.name == template.variables["workflow_name"].default_value
    assert workflow.nodes
    assert TemplateEngine().missing_variables(template, {}) == []


def test_unknown_node_types_from_workflow_nodes():
    template = WorkflowTemplate.model_validate(get_pattern("webhook_api"))
    catalog = build_catalog([simple_workflow()])

    unknown = TemplateEngine().unknown_node_types(template, catalog)

    assert HTTP_NODE not in unknown
    assert "n8n-nodes-base.webhook" in unknown
    assert TemplateEngine().unknown_node_types(template, None) == []


def test_analyze_patterns_and_complexity():
    webhook = make_workflow(
        name="Hook",
        nodes=[make_node("Hook", "n8n-nodes-base.webhook"), make_node("Call", HTTP_NODE)],
        connections=chain("Hook", "Call"),
    )

    analysis = TemplateEngine().analyze_patterns([webhook, simple_workflow()])

    assert analysis["workflows_analyzed"] == 2
    assert analysis["node_usage"][HTTP_NODE] == 2
    assert analysis["integration_patterns"][0]["pattern"] == "webhook_to_api"
    assert analysis["complexity_distribution"] == {"simple": 1, "medium": 1, "complex": 0}
    assert calculate_complexity({"nodes": [{}] * 20, "connections": {}}) == 10
