"""
Structural validation of workflow graphs and their executions.

Every check appends to the issue list independently; none of them raise.
Only ``ensure_activatable`` raises, for callers that need a valid graph.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from loguru import logger

from flowgraph.core.config import settings
from flowgraph.schemas.catalog import NodeCatalog
from flowgraph.schemas.validation import SEVERITY_RANK, CheckResult, Issue, ValidationReport
from flowgraph.schemas.workflow import Execution, Workflow
from flowgraph.services.workflow_graph import WorkflowGraph
from flowgraph.utils.exceptions import StructuralError


MANUAL_TRIGGER_TYPE = "n8n-nodes-base.manualTrigger"
TRIGGER_KEYWORDS = ("trigger", "webhook", "cron")

INVALIDATING_SEVERITIES = ("critical", "high")

RECOMMENDATIONS: Dict[str, str] = {
    "missing_trigger": "Add a trigger node (Manual Trigger, Webhook, Schedule, etc.) to make the workflow executable",
    "orphaned_node": "Connect all nodes or remove unused nodes to improve workflow clarity",
    "unknown_node_type": "Install the missing node packages or replace unknown nodes with available alternatives",
    "missing_required_parameter": "Fill in the required parameters flagged on each node",
    "dangling_connection": "Remove or repair connections that point to nodes which no longer exist",
    "execution_failed": "Inspect the failing node's error and fix its configuration or input data",
    "node_execution_error": "Enable retries or error outputs on nodes that fail intermittently",
    "empty_data_output": "Check filters and upstream data; some nodes produced no output items",
    "long_execution_time": "Reduce execution time with batching, pagination or splitting the workflow",
}


def is_trigger_type(node_type: str) -> bool:
    lowered = node_type.lower()
    return node_type == MANUAL_TRIGGER_TYPE or any(k in lowered for k in TRIGGER_KEYWORDS)


def sort_issues(issues: List[Issue]) -> List[Issue]:
    """Severity descending; sorted() is stable so ties keep encounter order."""
    return sorted(issues, key=lambda issue: SEVERITY_RANK[issue.severity], reverse=True)


def derive_recommendations(issues: List[Issue]) -> List[str]:
    recommendations: List[str] = []
    seen = set()
    for issue in issues:
        if issue.kind in seen:
            continue
        seen.add(issue.kind)
        text = RECOMMENDATIONS.get(issue.kind)
        if text:
            recommendations.append(text)
    return recommendations


def count_output_items(run: Dict[str, Any]) -> int:
    main = ((run or {}).get("data") or {}).get("main") or []
    if not main or not isinstance(main[0], list):
        return 0
    return len(main[0])


class WorkflowValidator:
    """Runs the structural and execution checks against one workflow."""

    def __init__(
        self,
        catalog: Optional[NodeCatalog] = None,
        long_execution_threshold_ms: Optional[int] = None,
    ):
        self.catalog = catalog
        self.long_execution_threshold_ms = (
            long_execution_threshold_ms
            if long_execution_threshold_ms is not None
            else settings.LONG_EXECUTION_THRESHOLD_MS
        )

    def validate(
        self,
        workflow: Workflow,
        execution: Optional[Execution] = None,
        deep: bool = False,
    ) -> ValidationReport:
        graph = WorkflowGraph(workflow)
        issues: List[Issue] = []

        issues.extend(self.check_trigger(graph))
        issues.extend(self.check_orphans(graph))
        issues.extend(self.check_unknown_types(graph))
        if deep:
            issues.extend(self.check_required_parameters(graph))
        dangling = self.check_dangling_connections(graph)
        issues.extend(dangling)
        if execution is not None:
            issues.extend(self.check_execution(graph, execution, deep=deep))

        ordered = sort_issues(issues)
        valid = not dangling and not any(i.severity in INVALIDATING_SEVERITIES for i in ordered)

        counts: Dict[str, int] = {severity: 0 for severity in SEVERITY_RANK}
        for issue in ordered:
            counts[issue.severity] += 1

        logger.debug(f"Validated workflow {workflow.id or workflow.name}: valid={valid}, issues={len(ordered)}")
        return ValidationReport(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            valid=valid,
            issues=ordered,
            recommendations=derive_recommendations(ordered),
            counts=counts,
            execution_id=execution.id if execution else None,
        )

    # ------------------------------------------------------------------
    # Structural checks
    # ------------------------------------------------------------------

    def check_trigger(self, graph: WorkflowGraph) -> List[Issue]:
        if any(is_trigger_type(node.type) for node in graph.nodes):
            return []
        return [
            Issue(
                severity="critical",
                kind="missing_trigger",
                message="Workflow has no trigger node; workflow cannot be executed.",
                suggestion="Add a Manual Trigger, Webhook or Schedule node",
            )
        ]

    def check_orphans(self, graph: WorkflowGraph) -> List[Issue]:
        # Only the first node in array order is exempt, whatever its type.
        referenced = graph.referenced_refs()
        issues = []
        for node in graph.nodes[1:]:
            if node.id in referenced or node.name in referenced:
                continue
            issues.append(
                Issue(
                    severity="low",
                    kind="orphaned_node",
                    message=f"Node '{node.name}' is not connected to any other node",
                    node_id=node.id,
                    suggestion="Connect this node or remove it",
                )
            )
        return issues

    def check_unknown_types(self, graph: WorkflowGraph) -> List[Issue]:
        if self.catalog is None:
            return []
        known = self.catalog.known_types()
        return [
            Issue(
                severity="critical",
                kind="unknown_node_type",
                message=f"Node '{node.name}' uses unknown type '{node.type}'",
                node_id=node.id,
                suggestion="Install the package providing this node or replace it",
            )
            for node in graph.nodes
            if node.type not in known
        ]

    def check_required_parameters(self, graph: WorkflowGraph) -> List[Issue]:
        if self.catalog is None:
            return []
        issues = []
        for node in graph.nodes:
            for missing in self.missing_parameters(node.type, node.parameters, node.type_version):
                issues.append(
                    Issue(
                        severity="high",
                        kind="missing_required_parameter",
                        message=f"Node '{node.name}' is missing required parameter '{missing}'",
                        node_id=node.id,
                        suggestion=f"Set '{missing}' on this node",
                    )
                )
        return issues

    def missing_parameters(
        self, node_type: str, parameters: Dict[str, Any], type_version: Optional[float] = None
    ) -> List[str]:
        entries = self.catalog.find_type(node_type) if self.catalog else []
        # other versions only stand in when this version was never observed
        same_version = [e for e in entries if type_version is not None and e.type_version == type_version]
        required: List[str] = []
        for entry in same_version or entries:
            for key in entry.required_parameters():
                if key not in required:
                    required.append(key)
        return [key for key in required if key not in (parameters or {})]

    def check_dangling_connections(self, graph: WorkflowGraph) -> List[Issue]:
        issues = []
        for edge in graph.dangling_connections():
            missing = [ref for ref in (edge.source, edge.target) if graph.find_node(ref) is None]
            issues.append(
                Issue(
                    severity="high",
                    kind="dangling_connection",
                    message=(
                        f"Connection {edge.source} -> {edge.target} ({edge.channel}[{edge.output_index}]) "
                        f"references missing node(s): {', '.join(missing)}"
                    ),
                    node_id=graph.canonical_id(edge.source),
                    suggestion="Remove the connection or restore the missing node",
                )
            )
        return issues

    # ------------------------------------------------------------------
    # Execution checks
    # ------------------------------------------------------------------

    def check_execution(self, graph: WorkflowGraph, execution: Execution, deep: bool = False) -> List[Issue]:
        issues: List[Issue] = []

        error = execution.error
        if error:
            issues.append(
                Issue(
                    severity="critical",
                    kind="execution_failed",
                    message=f"Execution {execution.id} failed: {error.get('message', 'unknown error')}",
                    node_id=graph.canonical_id((error.get("node") or {}).get("name"))
                    if isinstance(error.get("node"), dict) else None,
                    suggestion="Inspect the error details and fix the failing node",
                )
            )

        for node_ref, runs in execution.run_data.items():
            node_id = graph.canonical_id(node_ref) or node_ref
            for run in runs or []:
                if run.get("error"):
                    if deep:
                        issues.append(
                            Issue(
                                severity="high",
                                kind="node_execution_error",
                                message=f"Node '{node_ref}' errored: {run['error'].get('message', 'unknown error')}",
                                node_id=node_id,
                            )
                        )
                    break
                if count_output_items(run) == 0:
                    issues.append(
                        Issue(
                            severity="medium",
                            kind="empty_data_output",
                            message=f"Node '{node_ref}' produced no output items",
                            node_id=node_id,
                            suggestion="Check the node's filters and input data",
                        )
                    )
                    break

        duration = execution.duration_ms
        if duration is not None and duration > self.long_execution_threshold_ms:
            issues.append(
                Issue(
                    severity="medium",
                    kind="long_execution_time",
                    message=f"Execution took {duration / 1000:.1f}s",
                    suggestion="Consider splitting the workflow or processing data in batches",
                )
            )
        return issues

    # ------------------------------------------------------------------
    # Stand-alone checks
    # ------------------------------------------------------------------

    def validate_parameters(
        self, node_type: str, parameters: Dict[str, Any], type_version: Optional[float] = None
    ) -> CheckResult:
        errors: List[str] = []
        warnings: List[str] = []
        if self.catalog is None or not self.catalog.find_type(node_type):
            warnings.append(f"Node type '{node_type}' is not in the catalog; parameters cannot be checked")
        else:
            missing = self.missing_parameters(node_type, parameters, type_version)
            errors.extend(f"Missing required parameter '{key}'" for key in missing)
        return CheckResult(valid=not errors, errors=errors, warnings=warnings, details={"node_type": node_type})

    def validate_credentials(self, workflow: Workflow) -> CheckResult:
        errors: List[str] = []
        required: List[str] = []
        for node in workflow.nodes:
            for cred_type, ref in (node.credentials or {}).items():
                if cred_type not in required:
                    required.append(cred_type)
                if not isinstance(ref, dict) or not ref.get("id"):
                    errors.append(f"Node '{node.name}' has an incomplete '{cred_type}' credential reference")
        return CheckResult(valid=not errors, errors=errors, details={"required_credentials": required})

    def validate_readiness(self, workflow: Workflow) -> CheckResult:
        graph = WorkflowGraph(workflow)
        errors: List[str] = []
        warnings: List[str] = []
        if not workflow.nodes:
            errors.append("Workflow has no nodes")
        elif all(node.disabled for node in workflow.nodes):
            errors.append("All nodes are disabled")
        if workflow.nodes and not any(is_trigger_type(n.type) and not n.disabled for n in workflow.nodes):
            errors.append("Workflow has no enabled trigger node")
        dangling = graph.dangling_connections()
        if dangling:
            errors.append(f"Workflow has {len(dangling)} dangling connection(s)")
        if not workflow.active:
            warnings.append("Workflow is inactive; only manual executions are possible")
        return CheckResult(valid=not errors, errors=errors, warnings=warnings)


def ensure_activatable(workflow: Workflow) -> None:
    """Raise StructuralError unless the graph has a trigger and no dangling connections."""
    validator = WorkflowValidator()
    graph = WorkflowGraph(workflow)
    problems = validator.check_trigger(graph) + validator.check_dangling_connections(graph)
    if problems:
        raise StructuralError(
            f"Workflow '{workflow.name}' cannot be activated: " + "; ".join(p.message for p in problems),
            issues=[p.model_dump() for p in problems],
        )
