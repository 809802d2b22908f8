"""
Pytest configuration and fixtures for backend tests.
"""

import pytest
from fastapi.testclient import TestClient

from main import app
from flowgraph.mcp import executor
from flowgraph.mcp.executor import build_tools
from flowgraph.services.node_catalog import NodeDiscoveryService
from tests.factories import FakeWorkflowStore, simple_workflow


@pytest.fixture
def store() -> FakeWorkflowStore:
    """Store holding one simple three-node workflow (``wf-1``)."""
    return FakeWorkflowStore([simple_workflow()])


@pytest.fixture
def discovery(store: FakeWorkflowStore) -> NodeDiscoveryService:
    return NodeDiscoveryService(store, ttl_seconds=300)


@pytest.fixture
def tools(store: FakeWorkflowStore, discovery: NodeDiscoveryService):
    return build_tools(store=store, discovery=discovery)


@pytest.fixture
def client(tools, monkeypatch) -> TestClient:
    """Test client whose MCP endpoints run against the in-memory store."""
    monkeypatch.setattr(executor, "_default_tools", tools)
    return TestClient(app)
