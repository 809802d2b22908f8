"""
Graph-rewrite rules applied by batch migrations.

Each rule is a dict with a ``type`` key. Rules always operate on a deep copy;
the input payload is never modified.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from flowgraph.utils.exceptions import ValidationError
from flowgraph.utils.json_values import deep_clone


def _replace_node_type(workflow: Dict[str, Any], rule: Dict[str, Any]) -> None:
    source_type = rule.get("from")
    target_type = rule.get("to")
    if not source_type or not target_type:
        raise ValidationError("node_replacement requires 'from' and 'to'", field="migrations")
    mapping: Dict[str, str] = rule.get("parameter_mapping") or rule.get("parameterMapping") or {}
    for node in workflow.get("nodes", []):
        if node.get("type") != source_type:
            continue
        node["type"] = target_type
        if "type_version" in rule or "typeVersion" in rule:
            node["typeVersion"] = rule.get("type_version", rule.get("typeVersion"))
        if mapping:
            node["parameters"] = {mapping.get(k, k): v for k, v in (node.get("parameters") or {}).items()}


def _update_parameters(workflow: Dict[str, Any], rule: Dict[str, Any]) -> None:
    parameters = rule.get("parameters")
    if not isinstance(parameters, dict):
        raise ValidationError("parameter_update requires a 'parameters' object", field="migrations")
    node_type = rule.get("node_type") or rule.get("nodeType")
    for node in workflow.get("nodes", []):
        if node_type and node.get("type") != node_type:
            continue
        node.setdefault("parameters", {}).update(deep_clone(parameters))


def _migrate_credentials(workflow: Dict[str, Any], rule: Dict[str, Any]) -> None:
    mapping = rule.get("credential_mapping") or rule.get("credentialMapping")
    if not isinstance(mapping, dict):
        raise ValidationError("credential_migration requires a 'credential_mapping' object", field="migrations")
    for node in workflow.get("nodes", []):
        credentials = node.get("credentials")
        if not credentials:
            continue
        for old_key, new_key in mapping.items():
            if old_key in credentials:
                credentials[new_key] = credentials.pop(old_key)


def _update_workflow_properties(workflow: Dict[str, Any], rule: Dict[str, Any]) -> None:
    properties = rule.get("properties")
    if not isinstance(properties, dict):
        raise ValidationError("workflow_property requires a 'properties' object", field="migrations")
    workflow.update(deep_clone(properties))


MIGRATION_RULES: Dict[str, Callable[[Dict[str, Any], Dict[str, Any]], None]] = {
    "node_replacement": _replace_node_type,
    "parameter_update": _update_parameters,
    "credential_migration": _migrate_credentials,
    "workflow_property": _update_workflow_properties,
}


def apply_migration(workflow: Dict[str, Any], rule: Dict[str, Any]) -> Dict[str, Any]:
    """Return a migrated copy of ``workflow``. Unknown rule types raise ValidationError."""
    kind = (rule or {}).get("type")
    handler = MIGRATION_RULES.get(kind)
    if handler is None:
        raise ValidationError(f"Unknown migration type: {kind}", field="migrations")
    migrated = deep_clone(workflow)
    handler(migrated, rule)
    return migrated


def apply_migrations(workflow: Dict[str, Any], rules: List[Dict[str, Any]]) -> Dict[str, Any]:
    for rule in rules:
        workflow = apply_migration(workflow, rule)
    return workflow


def migration_label(rule: Dict[str, Any]) -> str:
    return str(rule.get("name") or rule.get("type") or "unnamed")
