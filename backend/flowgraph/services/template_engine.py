"""
Workflow templates.

Extraction swaps concrete parameter values for ``{{name}}`` placeholders using an
ordered rule table; application substitutes them back. Placeholders without a
value are left in place.
"""

from __future__ import annotations

import re
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

from loguru import logger

from flowgraph.schemas.catalog import NodeCatalog
from flowgraph.schemas.template import TemplateMetadata, TemplateVariable, WorkflowTemplate
from flowgraph.schemas.workflow import Workflow
from flowgraph.utils.json_values import deep_clone, walk_strings


PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")
CREDENTIAL_PLACEHOLDER_PREFIX = "{{credential_"

# (parameter-name substrings, value pattern); first matching rule wins.
EXTRACTION_RULES: List[Tuple[Tuple[str, ...], Pattern[str]]] = [
    (("url",), re.compile(r"https?://\S+")),
    (("apikey", "api_key", "token", "key"), re.compile(r"^[a-zA-Z0-9_\-]+$")),
    (("endpoint",), re.compile(r"^/.*")),
    (("table", "collection", "database"), re.compile(r"^[a-zA-Z0-9_\-]+$")),
]

TEMPLATE_DROPPED_FIELDS = ("id", "createdAt", "updatedAt", "versionId", "shared", "isArchived", "staticData")


def matching_rule(param_key: str, value: Any) -> Optional[int]:
    """Index of the first extraction rule matching a parameter, or None."""
    if not isinstance(value, str) or not value or value.startswith("=") or "{{" in value:
        return None
    lowered = param_key.lower()
    for index, (keys, pattern) in enumerate(EXTRACTION_RULES):
        if any(k in lowered for k in keys) and pattern.search(value):
            return index
    return None


def substitute(value: Any, values: Dict[str, Any]) -> Any:
    """Replace ``{{name}}`` occurrences in every string of ``value``."""
    def replace(text: str) -> Any:
        whole = PLACEHOLDER_RE.fullmatch(text)
        if whole and values.get(whole.group(1)) is not None:
            # a lone placeholder keeps the variable's own type
            return deep_clone(values[whole.group(1)])

        def one(match: "re.Match[str]") -> str:
            replacement = values.get(match.group(1))
            return match.group(0) if replacement is None else str(replacement)

        return PLACEHOLDER_RE.sub(one, text)

    return walk_strings(value, replace)


def count_edges(connections: Dict[str, Any]) -> int:
    total = 0
    for channels in (connections or {}).values():
        for slots in (channels or {}).values():
            for slot in slots or []:
                total += len(slot or [])
    return total


def calculate_complexity(workflow: Dict[str, Any]) -> int:
    return min(len(workflow.get("nodes") or []) + count_edges(workflow.get("connections") or {}), 10)


def infer_category(workflow: Dict[str, Any]) -> str:
    types = [str(n.get("type", "")).lower() for n in workflow.get("nodes") or []]
    for keyword, category in (
        ("webhook", "integration"),
        ("email", "communication"),
        ("database", "data"),
        ("schedule", "automation"),
    ):
        if any(keyword in t for t in types):
            return category
    return "general"


def generate_tags(workflow: Dict[str, Any]) -> List[str]:
    types = [str(n.get("type", "")).lower() for n in workflow.get("nodes") or []]
    tags = []
    for keyword, tag in (
        ("webhook", "webhook"),
        ("api", "api"),
        ("email", "email"),
        ("database", "database"),
        ("schedule", "scheduled"),
    ):
        if any(keyword in t for t in types):
            tags.append(tag)
    return tags


class TemplateEngine:
    """Builds templates from workflows and instantiates workflows from templates."""

    def extract(
        self,
        workflow: Workflow,
        name: Optional[str] = None,
        description: Optional[str] = None,
        include_credentials: bool = False,
        generate_variables: bool = True,
    ) -> WorkflowTemplate:
        payload = workflow.to_payload()
        for key in TEMPLATE_DROPPED_FIELDS:
            payload.pop(key, None)
        payload["active"] = False

        variables: Dict[str, TemplateVariable] = {}
        node_types: List[str] = []
        required_credentials: List[str] = []

        for index, node in enumerate(payload.get("nodes", [])):
            if node["type"] not in node_types:
                node_types.append(node["type"])

            credentials = node.get("credentials") or {}
            for cred_type in list(credentials):
                if cred_type not in required_credentials:
                    required_credentials.append(cred_type)
                if not include_credentials:
                    credentials[cred_type] = {
                        "id": f"{{{{credential_{cred_type}}}}}",
                        "name": f"Template {cred_type} credential",
                    }

            if not generate_variables:
                continue
            parameters = node.get("parameters") or {}
            for param_key, value in parameters.items():
                if matching_rule(param_key, value) is None:
                    continue
                var_name = f"node_{index}_{param_key}"
                variables[var_name] = TemplateVariable(
                    description=f"{param_key} for {node['name']}",
                    default_value=value,
                    type="string",
                    required=True,
                )
                parameters[param_key] = f"{{{{{var_name}}}}}"

        template = WorkflowTemplate(
            id=f"template_{uuid.uuid4().hex[:12]}",
            name=name or f"{workflow.name} Template",
            description=description or f"{workflow.name} - Template",
            category=infer_category(payload),
            tags=generate_tags(payload),
            workflow=payload,
            variables=variables,
            metadata=TemplateMetadata(
                original_id=workflow.id,
                node_types=node_types,
                connection_count=count_edges(payload.get("connections") or {}),
                required_credentials=required_credentials,
                complexity=calculate_complexity(payload),
            ),
            created_at=datetime.now(timezone.utc),
        )
        logger.info(f"Extracted template '{template.name}' with {len(variables)} variable(s)")
        return template

    def resolve_values(self, template: WorkflowTemplate, supplied: Dict[str, Any]) -> Dict[str, Any]:
        values = {name: var.default_value for name, var in template.variables.items()}
        values.update({k: v for k, v in (supplied or {}).items() if v is not None})
        return values

    def missing_variables(self, template: WorkflowTemplate, supplied: Dict[str, Any]) -> List[str]:
        values = self.resolve_values(template, supplied)
        return [
            name for name, var in template.variables.items()
            if var.required and values.get(name) in (None, "")
        ]

    def apply(
        self,
        template: WorkflowTemplate,
        variables: Optional[Dict[str, Any]] = None,
        credentials: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Instantiate a workflow payload from a template."""
        workflow = deep_clone(template.workflow)
        credentials = credentials or {}

        for node in workflow.get("nodes", []):
            node_credentials = node.get("credentials")
            if not node_credentials:
                continue
            for cred_type in list(node_credentials):
                ref = node_credentials[cred_type]
                is_placeholder = isinstance(ref, dict) and str(ref.get("id", "")).startswith(
                    CREDENTIAL_PLACEHOLDER_PREFIX
                )
                if cred_type in credentials:
                    mapped = credentials[cred_type]
                    node_credentials[cred_type] = (
                        deep_clone(mapped) if isinstance(mapped, dict) else {"id": str(mapped), "name": str(mapped)}
                    )
                elif is_placeholder:
                    del node_credentials[cred_type]
            if not node_credentials:
                node.pop("credentials", None)

        return substitute(workflow, self.resolve_values(template, variables or {}))

    def unknown_node_types(self, template: WorkflowTemplate, catalog: Optional[NodeCatalog]) -> List[str]:
        if catalog is None:
            return []
        known = catalog.known_types()
        node_types = template.metadata.node_types or list(
            dict.fromkeys(str(n.get("type", "")) for n in template.workflow.get("nodes", []))
        )
        return [t for t in node_types if t not in known]

    def analyze_patterns(self, workflows: Iterable[Workflow]) -> Dict[str, Any]:
        node_usage: Counter = Counter()
        integration_patterns: List[Dict[str, Any]] = []
        distribution = {"simple": 0, "medium": 0, "complex": 0}
        analyzed = 0

        for workflow in workflows:
            analyzed += 1
            types = [node.type for node in workflow.nodes]
            node_usage.update(types)

            detected = []
            if "n8n-nodes-base.webhook" in types and any("httpRequest" in t for t in types):
                detected.append("webhook_to_api")
            if any("postgres" in t or "mysql" in t for t in types):
                detected.append("database_integration")
            if "n8n-nodes-base.emailSend" in types:
                detected.append("email_automation")
            for pattern in detected:
                integration_patterns.append(
                    {"pattern": pattern, "workflow_id": workflow.id, "workflow_name": workflow.name}
                )

            complexity = calculate_complexity(workflow.to_payload())
            if complexity <= 3:
                distribution["simple"] += 1
            elif complexity <= 8:
                distribution["medium"] += 1
            else:
                distribution["complex"] += 1

        recommendations = []
        if node_usage.get("n8n-nodes-base.webhook"):
            recommendations.append("Consider creating webhook templates for common API integrations")
        if node_usage.get("n8n-nodes-base.emailSend"):
            recommendations.append("Create email notification templates for different use cases")
        if integration_patterns:
            recommendations.append("Document common integration patterns as reusable templates")

        return {
            "workflows_analyzed": analyzed,
            "node_usage": dict(node_usage.most_common()),
            "integration_patterns": integration_patterns,
            "complexity_distribution": distribution,
            "recommendations": recommendations,
        }
