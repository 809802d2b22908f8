"""
Node type discovery.

n8n does not reliably expose a node-type registry through its public API, so the
catalog is inferred from the nodes that actually appear in stored workflows.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from flowgraph.core.config import settings
from flowgraph.schemas.catalog import (
    DiscoveredNodeType,
    DiscoveryStatistics,
    ExampleConfig,
    NodeCatalog,
)
from flowgraph.schemas.workflow import Node, Workflow
from flowgraph.services.workflow_store import get_workflow_store
from flowgraph.utils.json_values import deep_clone, deep_equal


# Ordered (keywords, category); evaluated against the lower-cased type, first match wins.
CATEGORY_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("trigger", "webhook", "cron"), "Triggers"),
    (("http", "api", "rest"), "Communication"),
    (("database", "sql", "mongo", "redis"), "Data Storage"),
    (("file", "csv", "json", "xml"), "Files"),
    (("email", "slack", "discord", "teams"), "Communication"),
    (("function", "code", "script"), "Logic"),
    (("if", "switch", "merge", "split"), "Flow Control"),
    (("set", "transform", "filter"), "Data Processing"),
    (("ai", "openai", "gpt", "claude"), "AI & ML"),
    (("google", "microsoft", "aws", "azure"), "Cloud Services"),
]
DEFAULT_CATEGORY = "Other"

CORE_PACKAGE_PREFIXES = ("n8n-nodes-base", "@n8n/n8n-nodes-langchain")


def categorize_node_type(node_type: str) -> str:
    lowered = node_type.lower()
    for keywords, category in CATEGORY_RULES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def display_name_for(node_type: str) -> str:
    """``n8n-nodes-base.httpRequest`` -> ``Http Request``."""
    last = node_type.rsplit(".", 1)[-1]
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", last)
    spaced = spaced.replace("-", " ").replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def package_name_for(node_type: str) -> Optional[str]:
    if "." not in node_type:
        return None
    return node_type.split(".", 1)[0]


def is_core_type(node_type: str) -> bool:
    return any(node_type.startswith(prefix) for prefix in CORE_PACKAGE_PREFIXES)


class NodeCatalogBuilder:
    """Accumulates node types across workflows, keyed by ``type:typeVersion``."""

    def __init__(self, most_used_limit: Optional[int] = None):
        self.most_used_limit = most_used_limit or settings.CATALOG_MOST_USED_LIMIT
        self._discovered: Dict[str, DiscoveredNodeType] = {}
        self.workflows_scanned = 0
        self.workflows_skipped = 0

    def add_workflow(self, workflow: Workflow) -> None:
        for node in workflow.nodes:
            self.add_node(node)
        self.workflows_scanned += 1

    def add_node(self, node: Node) -> None:
        key = f"{node.type}:{node.type_version}"
        entry = self._discovered.get(key)
        example = ExampleConfig(
            name=node.name,
            parameters=deep_clone(node.parameters),
            credentials=deep_clone(node.credentials) if node.credentials else None,
        )

        if entry is None:
            display_name = display_name_for(node.type)
            category = categorize_node_type(node.type)
            entry = DiscoveredNodeType(
                type=node.type,
                type_version=node.type_version,
                display_name=display_name,
                description=(
                    f"{display_name} node in the {category} category. "
                    "Used for workflow automation and integration."
                ),
                category=category,
                usage_count=1,
                example_configs=[example],
                is_core=is_core_type(node.type),
                package_name=package_name_for(node.type),
                parameters=deep_clone(node.parameters),
            )
            self._discovered[key] = entry
        else:
            entry.usage_count += 1
            duplicate = any(deep_equal(existing.parameters, node.parameters) for existing in entry.example_configs)
            if not duplicate:
                entry.example_configs.append(example)

        for param_key in node.parameters:
            entry.parameter_key_counts[param_key] = entry.parameter_key_counts.get(param_key, 0) + 1

    def mark_skipped(self) -> None:
        self.workflows_skipped += 1

    def build(self, now: Optional[datetime] = None) -> NodeCatalog:
        discovered = list(self._discovered.values())
        categories: Dict[str, List[DiscoveredNodeType]] = {}
        for entry in discovered:
            categories.setdefault(entry.category, []).append(entry)

        # sorted() is stable, so ties keep discovery order
        most_used = sorted(discovered, key=lambda n: n.usage_count, reverse=True)[: self.most_used_limit]

        return NodeCatalog(
            total_nodes=len(discovered),
            core_nodes=[n for n in discovered if n.is_core],
            community_nodes=[n for n in discovered if not n.is_core],
            categories=categories,
            most_used=most_used,
            last_updated=now or datetime.now(timezone.utc),
            workflows_scanned=self.workflows_scanned,
            workflows_skipped=self.workflows_skipped,
        )


def build_catalog(workflows: Iterable[Workflow], now: Optional[datetime] = None) -> NodeCatalog:
    builder = NodeCatalogBuilder()
    for workflow in workflows:
        builder.add_workflow(workflow)
    return builder.build(now=now)


class NodeDiscoveryService:
    """
    Builds and caches the node catalog from a workflow store.

    The cache is valid while the catalog's own ``last_updated`` is younger than
    the TTL. Overlapping refreshes are not serialized; the last one to finish wins.
    """

    def __init__(
        self,
        store,
        ttl_seconds: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.CATALOG_CACHE_TTL_SECONDS)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._catalog: Optional[NodeCatalog] = None

    def is_cache_valid(self) -> bool:
        if self._catalog is None:
            return False
        return self._clock() - self._catalog.last_updated < self.ttl

    def invalidate(self) -> None:
        self._catalog = None

    @property
    def cached_catalog(self) -> Optional[NodeCatalog]:
        return self._catalog

    async def discover(self, force_refresh: bool = False) -> NodeCatalog:
        if not force_refresh and self.is_cache_valid():
            logger.debug("Using cached node catalog")
            return self._catalog

        logger.info("Discovering node types from stored workflows")
        summaries = await self.store.list_workflows()
        builder = NodeCatalogBuilder()

        for summary in summaries:
            try:
                workflow = summary
                if summary.id is not None:
                    workflow = await self.store.get_workflow(summary.id)
                builder.add_workflow(workflow)
            except Exception as e:
                builder.mark_skipped()
                logger.warning(f"Skipping workflow {summary.id} during discovery: {e}")

        catalog = builder.build(now=self._clock())
        self._catalog = catalog
        logger.info(
            f"Discovered {catalog.total_nodes} node types across "
            f"{catalog.workflows_scanned} workflows ({catalog.workflows_skipped} skipped)"
        )
        return catalog

    async def get_nodes_by_category(self, category: Optional[str] = None, force_refresh: bool = False):
        catalog = await self.discover(force_refresh=force_refresh)
        if category is None:
            return catalog.categories
        wanted = category.lower()
        for name, nodes in catalog.categories.items():
            if name.lower() == wanted:
                return {name: nodes}
        return {}

    async def search_nodes(self, query: str, limit: Optional[int] = None) -> List[DiscoveredNodeType]:
        catalog = await self.discover()
        needle = query.lower().strip()
        matches = [
            node for node in catalog.all_nodes()
            if needle in node.type.lower()
            or needle in node.display_name.lower()
            or needle in node.description.lower()
            or needle in node.category.lower()
        ]
        matches.sort(key=lambda n: n.usage_count, reverse=True)
        return matches[:limit] if limit else matches

    async def get_node_details(self, node_type: str) -> List[DiscoveredNodeType]:
        catalog = await self.discover()
        return catalog.find_type(node_type)

    async def get_statistics(self) -> DiscoveryStatistics:
        catalog = await self.discover()
        return DiscoveryStatistics(
            total_discovered=catalog.total_nodes,
            unique_types=len(catalog.known_types()),
            most_used_node=catalog.most_used[0].display_name if catalog.most_used else None,
            categories_found=len(catalog.categories),
            last_updated=catalog.last_updated,
        )


_discovery_service: Optional[NodeDiscoveryService] = None


def get_discovery_service(store=None) -> NodeDiscoveryService:
    global _discovery_service
    if _discovery_service is None:
        _discovery_service = NodeDiscoveryService(store or get_workflow_store())
    return _discovery_service
