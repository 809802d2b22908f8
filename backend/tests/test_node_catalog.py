from datetime import datetime, timedelta, timezone

import pytest

from flowgraph.services.node_catalog import (
    NodeCatalogBuilder,
    NodeDiscoveryService,
    build_catalog,
    categorize_node_type,
    display_name_for,
)
from flowgraph.utils.exceptions import WorkflowStoreError
from tests.factories import HTTP_NODE, MANUAL_TRIGGER, FakeWorkflowStore, make_node, make_workflow, simple_workflow


def test_categorize_node_type_uses_first_matching_rule():
    assert categorize_node_type("n8n-nodes-base.webhook") == "Triggers"
    assert categorize_node_type("n8n-nodes-base.httpRequest") == "Communication"
    assert categorize_node_type("n8n-nodes-base.if") == "Flow Control"
    assert categorize_node_type("acme.widget") == "Other"


def test_display_name_for_splits_camel_case():
    assert display_name_for(HTTP_NODE) == "Http Request"
    assert display_name_for("n8n-nodes-base.manualTrigger") == "Manual Trigger"


def test_builder_counts_usage_and_dedupes_examples():
    builder = NodeCatalogBuilder()
    builder.add_workflow(
        make_workflow(
            nodes=[
                make_node("A", HTTP_NODE, parameters={"url": "https://a.example.com", "method": "GET"}),
                make_node("B", HTTP_NODE, parameters={"url": "https://a.example.com", "method": "GET"}),
                make_node("C", HTTP_NODE, parameters={"url": "https://b.example.com"}),
            ]
        )
    )

    catalog = builder.build()
    (entry,) = catalog.find_type(HTTP_NODE)

    assert entry.usage_count == 3
    assert len(entry.example_configs) == 2
    assert entry.required_parameters() == ["url"]
    assert entry.is_core is True
    assert entry.package_name == "n8n-nodes-base"


def test_every_distinct_example_is_kept():
    nodes = [make_node(f"N{i}", HTTP_NODE, parameters={"url": f"https://{i}.example.com"}) for i in range(15)]
    nodes.append(make_node("Again", HTTP_NODE, parameters={"url": "https://0.example.com"}))

    (entry,) = build_catalog([make_workflow(nodes=nodes)]).find_type(HTTP_NODE)

    assert entry.usage_count == 16
    assert len(entry.example_configs) == 15


def test_most_used_is_stable_for_ties():
    catalog = build_catalog(
        [
            make_workflow(
                nodes=[
                    make_node("T", MANUAL_TRIGGER),
                    make_node("X", "acme.first"),
                    make_node("Y", "acme.second"),
                    make_node("Z", "acme.second"),
                ]
            )
        ]
    )

    assert [n.type for n in catalog.most_used] == ["acme.second", MANUAL_TRIGGER, "acme.first"]
    assert catalog.total_nodes == 3
    assert [n.type for n in catalog.community_nodes] == ["acme.first", "acme.second"]


@pytest.mark.asyncio
async def test_discover_uses_cache_until_forced():
    store = FakeWorkflowStore([simple_workflow()])
    service = NodeDiscoveryService(store, ttl_seconds=300)

    first = await service.discover()
    second = await service.discover()
    assert second is first
    assert store.calls["list_workflows"] == 1

    third = await service.discover(force_refresh=True)
    assert third is not first
    assert store.calls["list_workflows"] == 2
    assert [n.key for n in third.all_nodes()] == [n.key for n in first.all_nodes()]


@pytest.mark.asyncio
async def test_discover_refreshes_after_ttl():
    now = [datetime(2024, 1, 1, tzinfo=timezone.utc)]
    store = FakeWorkflowStore([simple_workflow()])
    service = NodeDiscoveryService(store, ttl_seconds=60, clock=lambda: now[0])

    await service.discover()
    now[0] += timedelta(seconds=30)
    await service.discover()
    assert store.calls["list_workflows"] == 1

    now[0] += timedelta(seconds=31)
    assert service.is_cache_valid() is False
    await service.discover()
    assert store.calls["list_workflows"] == 2


@pytest.mark.asyncio
async def test_discover_skips_workflows_that_fail_to_load():
    store = FakeWorkflowStore([simple_workflow("wf-1"), simple_workflow("wf-2", name="Other")])
    store.failures[("get_workflow", "wf-2")] = WorkflowStoreError("boom", status_code=500)
    service = NodeDiscoveryService(store)

    catalog = await service.discover()

    assert catalog.workflows_scanned == 1
    assert catalog.workflows_skipped == 1
    assert catalog.total_nodes == 3


@pytest.mark.asyncio
async def test_search_and_category_lookup():
    service = NodeDiscoveryService(FakeWorkflowStore([simple_workflow()]))

    found = await service.search_nodes("http")
    by_category = await service.get_nodes_by_category("triggers")
    stats = await service.get_statistics()

    assert [n.type for n in found] == [HTTP_NODE]
    assert list(by_category) == ["Triggers"]
    assert stats.unique_types == 3
    assert await service.get_nodes_by_category("nonexistent") == {}
