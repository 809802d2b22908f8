"""
Pydantic schemas for the discovered node catalog.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class ExampleConfig(BaseModel):
    """One distinct parameter configuration observed for a node type."""
    name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    credentials: Optional[Dict[str, Any]] = None


class DiscoveredNodeType(BaseModel):
    """Aggregated view of one (type, typeVersion) pair seen across workflows."""
    type: str
    type_version: Union[int, float] = 1
    display_name: str
    description: str
    category: str
    usage_count: int = 0
    example_configs: List[ExampleConfig] = Field(default_factory=list)
    is_core: bool = False
    package_name: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict, description="First observed parameter set")
    parameter_key_counts: Dict[str, int] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.type}:{self.type_version}"

    def required_parameters(self) -> List[str]:
        """Parameter keys carried by every observed node of this type."""
        return [k for k, count in self.parameter_key_counts.items() if count >= self.usage_count > 0]


class NodeCatalog(BaseModel):
    """Read-only snapshot built by one discovery cycle."""
    total_nodes: int = 0
    core_nodes: List[DiscoveredNodeType] = Field(default_factory=list)
    community_nodes: List[DiscoveredNodeType] = Field(default_factory=list)
    categories: Dict[str, List[DiscoveredNodeType]] = Field(default_factory=dict)
    most_used: List[DiscoveredNodeType] = Field(default_factory=list)
    last_updated: datetime
    workflows_scanned: int = 0
    workflows_skipped: int = 0

    def all_nodes(self) -> List[DiscoveredNodeType]:
        return self.core_nodes + self.community_nodes

    def known_types(self) -> set:
        return {n.type for n in self.all_nodes()}

    def find_type(self, node_type: str) -> List[DiscoveredNodeType]:
        return [n for n in self.all_nodes() if n.type == node_type]


class DiscoveryStatistics(BaseModel):
    total_discovered: int
    unique_types: int
    most_used_node: Optional[str] = None
    categories_found: int
    last_updated: datetime
