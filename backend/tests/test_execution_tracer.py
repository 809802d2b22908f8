import pytest

from flowgraph.services.execution_tracer import (
    build_execution_order,
    compare_executions,
    trace,
    wait_for_execution,
)
from tests.factories import (
    FakeWorkflowStore,
    chain,
    make_execution,
    make_node,
    make_workflow,
    run_entry,
    simple_workflow,
)


def test_order_puts_predecessors_first_regardless_of_run_data_order():
    run_data = {"Fetch": [run_entry()], "Start": [run_entry()], "Set": [run_entry()]}

    order = build_execution_order(simple_workflow(), run_data)

    assert order == ["Start", "Set", "Fetch"]


def test_order_is_deterministic_and_skips_unexecuted_nodes():
    run_data = {"Set": [run_entry()], "Start": [run_entry()]}

    first = build_execution_order(simple_workflow(), run_data)
    second = build_execution_order(simple_workflow(), run_data)

    assert first == second == ["Start", "Set"]


def test_order_terminates_on_cycles():
    workflow = make_workflow(
        nodes=[make_node("A"), make_node("B")],
        connections={**chain("A", "B"), **chain("B", "A")},
    )

    order = build_execution_order(workflow, {"A": [run_entry()], "B": [run_entry()]})

    assert sorted(order) == ["A", "B"]
    assert len(order) == 2


def test_order_handles_id_keyed_connections_with_name_keyed_run_data():
    workflow = make_workflow(
        nodes=[make_node("A"), make_node("B")],
        connections=chain("id-a", "id-b"),
    )

    assert build_execution_order(workflow, {"B": [run_entry()], "A": [run_entry()]}) == ["A", "B"]


def test_trace_summarizes_runs():
    execution = make_execution(
        status="error",
        run_data={
            "Start": [run_entry(items=1)],
            "Set": [run_entry(items=5)],
            "Fetch": [run_entry(items=0, error={"message": "timeout", "name": "NodeApiError", "stack": "..."})],
        },
    )
    execution.data["resultData"]["lastNodeExecuted"] = "Fetch"

    result = trace(simple_workflow(), execution, include_data=True)

    assert result.order == ["Start", "Set", "Fetch"]
    assert result.summary.total_nodes == 3
    assert result.summary.failed_nodes == 1
    assert result.summary.total_items == 6
    assert result.last_node_executed == "Fetch"
    assert result.status == "error"
    assert len(result.entries[1].output_sample) == 3
    fetch = result.entries[2]
    assert fetch.status == "error"
    assert fetch.error.type == "NodeApiError"
    assert fetch.error.stack is None


@pytest.mark.asyncio
async def test_wait_for_execution_polls_until_terminal():
    store = FakeWorkflowStore()
    store.executions["ex-1"] = [
        make_execution(status="running", finished=False, duration_ms=None),
        make_execution(status="running", finished=False, duration_ms=None),
        make_execution(status="success"),
    ]

    outcome = await wait_for_execution(store, "ex-1", timeout=5, interval=0.01)

    assert outcome.status == "success"
    assert outcome.error is None
    assert store.calls["get_execution"] == 3


@pytest.mark.asyncio
async def test_wait_for_execution_reports_failure():
    store = FakeWorkflowStore()
    store.executions["ex-1"] = [make_execution(status="error", error={"message": "bad input"})]

    outcome = await wait_for_execution(store, "ex-1", timeout=5, interval=0.01)

    assert outcome.status == "failed"
    assert outcome.error == "bad input"


@pytest.mark.asyncio
async def test_wait_for_execution_times_out():
    store = FakeWorkflowStore()
    store.executions["ex-1"] = [make_execution(status="running", finished=False, duration_ms=None)]

    outcome = await wait_for_execution(store, "ex-1", timeout=0.05, interval=0.01)

    assert outcome.status == "timeout"
    assert store.calls["get_execution"] >= 2


def test_compare_executions_reports_node_differences():
    first = make_execution("ex-1", run_data={"Start": [run_entry()], "Set": [run_entry(items=2)]}, duration_ms=1000)
    second = make_execution(
        "ex-2",
        run_data={"Start": [run_entry()], "Set": [run_entry(items=3)], "Fetch": [run_entry()]},
        duration_ms=1500,
    )

    diff = compare_executions(first, second)

    assert diff["duration_delta_ms"] == pytest.approx(500)
    assert diff["only_in_second"] == ["Fetch"]
    assert [d["node"] for d in diff["node_differences"]] == ["Set"]
