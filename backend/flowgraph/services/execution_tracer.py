"""
Execution tracing.

Reconstructs a causal node order from an execution's run data, summarizes each
node's run, and waits on executions that are still in flight.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from loguru import logger

from flowgraph.core.config import settings
from flowgraph.schemas.trace import (
    ExecutionOutcome,
    ExecutionTrace,
    TraceEntry,
    TraceError,
    TraceSummary,
)
from flowgraph.schemas.workflow import Execution, Workflow
from flowgraph.services.workflow_graph import WorkflowGraph
from flowgraph.services.workflow_validator import count_output_items
from flowgraph.utils.polling import poll_until


SAMPLE_SIZE = 3
VERBOSE_SAMPLE_SIZE = 10


def build_execution_order(workflow: Workflow, run_data: Dict[str, Any]) -> List[str]:
    """
    Order executed nodes so that each appears after the executed nodes feeding it.

    Depth-first from each run-data key in map order, visiting predecessors first.
    Nodes without run data are left out. A visited set keeps cycles from looping.
    Returned values are the run-data keys themselves.
    """
    graph = WorkflowGraph(workflow)

    def canon(ref: str) -> str:
        return graph.canonical_id(ref) or ref

    run_key_for: Dict[str, str] = {}
    for key in run_data:
        run_key_for.setdefault(canon(key), key)

    predecessors: Dict[str, List[str]] = {}
    for edge in graph.list_connections():
        target = canon(edge.target)
        source = canon(edge.source)
        sources = predecessors.setdefault(target, [])
        if source not in sources:
            sources.append(source)

    visited = set()
    order: List[str] = []

    for start in run_key_for:
        if start in visited:
            continue
        visited.add(start)
        stack = [(start, iter(predecessors.get(start, [])))]
        while stack:
            current, pending = stack[-1]
            advanced = False
            for source in pending:
                if source in visited or source not in run_key_for:
                    continue
                visited.add(source)
                stack.append((source, iter(predecessors.get(source, []))))
                advanced = True
                break
            if not advanced:
                stack.pop()
                order.append(run_key_for[current])

    return order


def _trace_error(error: Dict[str, Any], verbose: bool) -> TraceError:
    return TraceError(
        message=str(error.get("message") or "Unknown error"),
        type=error.get("name"),
        stack=error.get("stack") if verbose else None,
    )


def trace_execution(
    workflow: Workflow,
    run_data: Dict[str, List[Dict[str, Any]]],
    include_data: bool = False,
    verbose: bool = False,
) -> ExecutionTrace:
    graph = WorkflowGraph(workflow)
    order = build_execution_order(workflow, run_data)
    sample_size = VERBOSE_SAMPLE_SIZE if verbose else SAMPLE_SIZE

    entries: List[TraceEntry] = []
    summary = TraceSummary()
    for key in order:
        runs = run_data.get(key) or []
        run = runs[0] if runs else {}
        node = graph.find_node(key)
        error = run.get("error")
        items = count_output_items(run)

        entry = TraceEntry(
            node_id=node.id if node else key,
            node_name=node.name if node else key,
            node_type=node.type if node else None,
            status="error" if error else "success",
            start_time=run.get("startTime"),
            execution_time=run.get("executionTime"),
            items_processed=items,
            error=_trace_error(error, verbose) if error else None,
        )
        if include_data and items:
            entry.output_sample = run["data"]["main"][0][:sample_size]
        entries.append(entry)

        summary.total_nodes += 1
        summary.total_items += items
        if error:
            summary.failed_nodes += 1
        else:
            summary.successful_nodes += 1

    return ExecutionTrace(
        workflow_id=workflow.id,
        order=order,
        entries=entries,
        summary=summary,
    )


def trace(
    workflow: Workflow,
    execution: Execution,
    include_data: bool = False,
    verbose: bool = False,
) -> ExecutionTrace:
    result = trace_execution(workflow, execution.run_data, include_data=include_data, verbose=verbose)
    result.execution_id = execution.id
    result.status = execution.status or ("success" if execution.succeeded else "error")
    result.duration_ms = execution.duration_ms
    result.last_node_executed = execution.result_data.get("lastNodeExecuted")
    return result


async def wait_for_execution(
    store,
    execution_id: str,
    timeout: Optional[float] = None,
    interval: Optional[float] = None,
) -> ExecutionOutcome:
    """Poll an execution until it reaches a terminal state or the timeout passes."""
    timeout = settings.EXECUTION_DEFAULT_TIMEOUT_SECONDS if timeout is None else timeout
    interval = settings.EXECUTION_POLL_INTERVAL_SECONDS if interval is None else interval
    started = time.monotonic()

    outcome = await poll_until(
        lambda: store.get_execution(execution_id),
        lambda execution: execution.is_terminal,
        interval=interval,
        timeout=timeout,
        label=f"execution {execution_id}",
    )
    duration_ms = (time.monotonic() - started) * 1000
    execution: Optional[Execution] = outcome.value

    if outcome.timed_out:
        return ExecutionOutcome(
            execution_id=execution_id,
            status="timeout",
            duration_ms=duration_ms,
            error=f"Execution did not finish within {timeout}s",
        )

    error = execution.error if execution else None
    status = "success" if execution and execution.succeeded else "failed"
    logger.info(f"Execution {execution_id} finished with status={status} in {duration_ms:.0f}ms")
    return ExecutionOutcome(
        execution_id=execution_id,
        status=status,
        duration_ms=execution.duration_ms if execution and execution.duration_ms is not None else duration_ms,
        error=(error or {}).get("message") if status == "failed" else None,
    )


def compare_executions(first: Execution, second: Execution) -> Dict[str, Any]:
    """Diff two executions of (usually) the same workflow node by node."""
    first_nodes = set(first.run_data)
    second_nodes = set(second.run_data)

    node_differences = []
    for name in sorted(first_nodes & second_nodes):
        a = (first.run_data.get(name) or [{}])[0]
        b = (second.run_data.get(name) or [{}])[0]
        a_items, b_items = count_output_items(a), count_output_items(b)
        a_status = "error" if a.get("error") else "success"
        b_status = "error" if b.get("error") else "success"
        if a_items != b_items or a_status != b_status:
            node_differences.append(
                {
                    "node": name,
                    "status": [a_status, b_status],
                    "items_processed": [a_items, b_items],
                    "execution_time": [a.get("executionTime"), b.get("executionTime")],
                }
            )

    first_duration = first.duration_ms
    second_duration = second.duration_ms
    return {
        "executions": [first.id, second.id],
        "status": [first.status, second.status],
        "duration_ms": [first_duration, second_duration],
        "duration_delta_ms": (
            second_duration - first_duration
            if first_duration is not None and second_duration is not None
            else None
        ),
        "only_in_first": sorted(first_nodes - second_nodes),
        "only_in_second": sorted(second_nodes - first_nodes),
        "node_differences": node_differences,
    }
