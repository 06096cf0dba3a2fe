"""WorkflowRunner scheduling, failure and loop tests."""

import asyncio
import time

import pytest

from flowrunner.core.exceptions import ValidationError
from flowrunner.engine.graph import build_graph
from flowrunner.engine.reporter import ExecutionResult, ReportBuilder
from flowrunner.engine.types import (
    CancellationToken,
    ExecutionEventType,
    NodeStatus,
    RunOptions,
    RunOutcome,
    RunStatus,
)


def _graph(nodes, edges):
    return build_graph(nodes, [{"source": s, "target": t} for s, t in edges])


def _node(node_id, node_type, **extra):
    return {"id": node_id, "type": node_type, **extra}


@pytest.fixture
def calls(registry):
    """Register `record`, `fail` and `slow` executors; returns the call log."""
    log = []

    def record(config, inbound):
        log.append(config.get("name"))
        return {config.get("name", "out"): True, **config.get("emit", {})}

    def fail(config, inbound):
        log.append(config.get("name"))
        raise ValueError(config.get("message", "boom"))

    async def slow(config, inbound):
        log.append(config.get("name"))
        await asyncio.sleep(config.get("seconds", 0.1))
        return {config["name"]: "done"}

    registry.register_executor("record", record)
    registry.register_executor("fail", fail)
    registry.register_executor("slow", slow)
    return log


@pytest.mark.asyncio
async def test_every_node_gets_exactly_one_result(runner, calls):
    graph = _graph(
        [
            _node("t", "trigger"),
            _node("a", "record", config={"name": "a"}),
            _node("b", "record", config={"name": "b"}),
            _node("c", "record", config={"name": "c"}),
        ],
        [("t", "a"), ("t", "b"), ("a", "c"), ("b", "c")],
    )

    report = await runner.run(graph)

    assert len(report) == 4
    assert list(report.results) == ["t", "a", "b", "c"]
    assert report.status == RunStatus.COMPLETE
    assert report.outcome == RunOutcome.ALL_SUCCESS
    assert sorted(calls) == ["a", "b", "c"]
    assert report.execution_id.startswith("exec_")


@pytest.mark.asyncio
async def test_unregistered_type_rejected_before_any_node_runs(runner, calls):
    graph = _graph(
        [_node("a", "record", config={"name": "a"}), _node("b", "nope")],
        [("a", "b")],
    )

    with pytest.raises(ValidationError) as exc:
        await runner.run(graph)

    assert exc.value.details["node_type"] == "nope"
    assert calls == []


@pytest.mark.asyncio
async def test_children_start_after_parents_finish(runner, calls):
    graph = _graph(
        [
            _node("a", "slow", config={"name": "a", "seconds": 0.05}),
            _node("b", "slow", config={"name": "b", "seconds": 0.02}),
            _node("c", "record", config={"name": "c"}),
        ],
        [("a", "c"), ("b", "c")],
    )

    report = await runner.run(graph)

    c = report.get("c")
    assert c.started_at >= report.get("a").finished_at
    assert c.started_at >= report.get("b").finished_at
    assert calls[-1] == "c"


@pytest.mark.asyncio
async def test_failure_skips_descendants_only(runner, calls):
    graph = _graph(
        [
            _node("t", "trigger"),
            _node("bad", "fail", config={"name": "bad"}),
            _node("after", "record", config={"name": "after"}),
            _node("deep", "record", config={"name": "deep"}),
            _node("side", "record", config={"name": "side"}),
        ],
        [("t", "bad"), ("bad", "after"), ("after", "deep"), ("t", "side")],
    )

    report = await runner.run(graph)

    assert report.statuses() == {
        "t": NodeStatus.SUCCESS,
        "bad": NodeStatus.ERROR,
        "after": NodeStatus.SKIPPED,
        "deep": NodeStatus.SKIPPED,
        "side": NodeStatus.SUCCESS,
    }
    assert report.outcome == RunOutcome.PARTIAL_FAILURE
    assert report.status == RunStatus.COMPLETE
    assert "after" not in calls and "deep" not in calls

    bad = report.get("bad")
    assert bad.error_detail["type"] == "NodeExecutionError"
    assert bad.error_detail["details"]["exception"] == "ValueError"
    assert bad.error_detail["message"] == "boom"
    assert "bad" in report.get("after").reason


@pytest.mark.asyncio
async def test_fan_in_node_skipped_when_any_parent_fails(runner, calls):
    graph = _graph(
        [
            _node("ok", "record", config={"name": "ok"}),
            _node("bad", "fail", config={"name": "bad"}),
            _node("join", "record", config={"name": "join"}),
        ],
        [("ok", "join"), ("bad", "join")],
    )

    report = await runner.run(graph)

    assert report.get("join").status == NodeStatus.SKIPPED
    assert "join" not in calls


@pytest.mark.asyncio
async def test_repeated_runs_are_identical(runner, calls):
    graph = _graph(
        [
            _node("t", "trigger", config={"payload": {"n": 1}}),
            _node("m", "dataMapper", config={"mapping": {"value": "n"}}),
            _node("bad", "fail", config={"name": "bad"}),
        ],
        [("t", "m"), ("t", "bad")],
    )

    first = await runner.run(graph)
    second = await runner.run(graph)

    assert first.statuses() == second.statuses()
    assert {k: r.output for k, r in first.results.items()} == {
        k: r.output for k, r in second.results.items()
    }
    assert first.execution_id != second.execution_id


@pytest.mark.asyncio
async def test_independent_branches_run_concurrently(runner, calls):
    graph = _graph(
        [
            _node("a", "trigger"),
            _node("b", "slow", config={"name": "b", "seconds": 0.5}),
            _node("c", "slow", config={"name": "c", "seconds": 0.01}),
        ],
        [("a", "b"), ("a", "c")],
    )

    started = time.monotonic()
    report = await runner.run(graph)
    elapsed = time.monotonic() - started

    assert report.get("c").finished_at < report.get("b").finished_at
    assert elapsed < 0.9


@pytest.mark.asyncio
async def test_max_parallelism_bounds_in_flight_nodes(runner, registry):
    active = 0
    peak = 0

    async def tracked(config, inbound):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        active -= 1
        return {}

    registry.register_executor("tracked", tracked)
    graph = _graph(
        [_node("t", "trigger")] + [_node(f"n{i}", "tracked") for i in range(5)],
        [("t", f"n{i}") for i in range(5)],
    )

    report = await runner.run(graph, RunOptions(max_parallelism=2))

    assert report.outcome == RunOutcome.ALL_SUCCESS
    assert peak == 2


@pytest.mark.asyncio
async def test_end_to_end_fetch_filter_map(runner, transport):
    transport.add("https://api.example.com/users/7", {"id": 7, "name": "Ada", "active": True})
    graph = _graph(
        [
            _node("trigger", "trigger", config={"payload": {"userId": 7}}),
            _node("fetch", "api", config={"url": "https://api.example.com/users/{{ $json.userId }}"}),
            _node(
                "active",
                "filter",
                config={"conditions": [{"field": "body.active", "operator": "equals", "value": True}]},
            ),
            _node(
                "shape",
                "dataMapper",
                config={"mapping": {"user.id": "body.id", "user.name": "body.name"}},
            ),
        ],
        [("trigger", "fetch"), ("fetch", "active"), ("active", "shape")],
    )

    report = await runner.run(graph)

    assert report.outcome == RunOutcome.ALL_SUCCESS
    assert report.get("fetch").output["statusCode"] == 200
    assert report.get("shape").output == {"user": {"id": 7, "name": "Ada"}}
    assert transport.calls[0]["method"] == "GET"


@pytest.mark.asyncio
async def test_filter_mismatch_short_circuits_branch(runner, transport):
    transport.add("https://api.example.com/users/7", {"id": 7, "active": False})
    graph = _graph(
        [
            _node("fetch", "api", config={"url": "https://api.example.com/users/7"}),
            _node(
                "active",
                "filter",
                config={"conditions": [{"field": "body.active", "operator": "equals", "value": True}]},
            ),
            _node("shape", "dataMapper", config={"mapping": {"id": "body.id"}}),
        ],
        [("fetch", "active"), ("active", "shape")],
    )

    report = await runner.run(graph)

    assert report.get("active").status == NodeStatus.SHORT_CIRCUITED
    assert report.get("active").output["matched"] is False
    assert report.get("shape").status == NodeStatus.SKIPPED
    assert report.outcome == RunOutcome.ALL_SUCCESS


@pytest.mark.asyncio
async def test_short_circuit_can_let_children_run(runner, calls):
    graph = _graph(
        [
            _node("t", "trigger", config={"payload": {"keep": 1}}),
            _node("gate", "filter", config={"conditions": [{"field": "missing", "operator": "exists"}]}),
            _node("other", "record", config={"name": "other"}),
            _node("join", "record", config={"name": "join"}),
        ],
        [("t", "gate"), ("t", "other"), ("gate", "join"), ("other", "join")],
    )

    report = await runner.run(graph, RunOptions(skip_on_short_circuit=False))

    assert report.get("gate").status == NodeStatus.SHORT_CIRCUITED
    assert report.get("join").status == NodeStatus.SUCCESS
    assert "join" in calls


@pytest.mark.asyncio
async def test_inbound_merges_parent_outputs_in_edge_order(runner, registry):
    seen = {}

    def capture(config, inbound):
        seen.update(inbound)
        return {}

    registry.register_executor("capture", capture)
    registry.register_executor("listy", lambda config, inbound: [1, 2, 3])
    registry.register_executor("first", lambda config, inbound: {"shared": "first", "a": 1})
    registry.register_executor("second", lambda config, inbound: {"shared": "second", "b": 2})

    graph = _graph(
        [
            _node("p1", "first"),
            _node("p2", "second"),
            _node("p3", "listy"),
            _node("join", "capture"),
        ],
        [("p1", "join"), ("p2", "join"), ("p3", "join")],
    )

    await runner.run(graph)

    assert seen == {"shared": "second", "a": 1, "b": 2, "p3": [1, 2, 3]}


@pytest.mark.asyncio
async def test_inbound_is_private_per_node(runner, registry):
    def mutate(config, inbound):
        inbound["items"].append("mutated")
        return {}

    seen = []

    def read(config, inbound):
        seen.append(list(inbound["items"]))
        return {}

    registry.register_executor("mutate", mutate)
    registry.register_executor("read", read)
    graph = _graph(
        [
            _node("t", "trigger", config={"payload": {"items": ["x"]}}),
            _node("m", "mutate"),
            _node("r", "read"),
        ],
        [("t", "m"), ("t", "r")],
    )

    report = await runner.run(graph)

    assert seen == [["x"]]
    assert report.get("t").output == {"items": ["x"]}


@pytest.mark.asyncio
async def test_initial_data_reaches_start_nodes(runner):
    graph = _graph([_node("t", "trigger")], [])

    report = await runner.run(graph, initial_data={"source": "manual"})

    assert report.get("t").output == {"source": "manual"}


@pytest.mark.asyncio
async def test_node_timeout(runner, calls):
    graph = _graph(
        [
            _node("slow", "slow", config={"name": "slow", "seconds": 1}, timeoutMs=50),
            _node("after", "record", config={"name": "after"}),
        ],
        [("slow", "after")],
    )

    report = await runner.run(graph)

    slow = report.get("slow")
    assert slow.status == NodeStatus.TIMED_OUT
    assert slow.error_detail["type"] == "NodeTimeoutError"
    assert report.get("after").status == NodeStatus.SKIPPED
    assert report.outcome == RunOutcome.PARTIAL_FAILURE


@pytest.mark.asyncio
async def test_run_wide_timeout_option(runner, calls):
    graph = _graph([_node("slow", "slow", config={"name": "slow", "seconds": 1})], [])

    report = await runner.run(graph, RunOptions(node_timeout_ms=30))

    assert report.get("slow").status == NodeStatus.TIMED_OUT


@pytest.mark.asyncio
async def test_string_timeout_is_coerced(runner, calls):
    graph = _graph([_node("slow", "slow", config={"name": "slow", "seconds": 1}, timeoutMs="50")], [])

    report = await runner.run(graph)

    assert graph.node("slow").timeout_ms == 50
    assert report.get("slow").status == NodeStatus.TIMED_OUT


@pytest.mark.asyncio
async def test_sync_executor_does_not_block_timeout(runner, registry):
    def sleepy(config, inbound):
        time.sleep(0.5)
        return {}

    registry.register_executor("sleepy", sleepy)
    graph = _graph([_node("s", "sleepy", timeoutMs=50)], [])

    started = time.monotonic()
    report = await runner.run(graph)
    elapsed = time.monotonic() - started

    assert report.get("s").status == NodeStatus.TIMED_OUT
    assert elapsed < 0.4


@pytest.mark.asyncio
async def test_retries_until_success(runner, registry):
    attempts = []

    def flaky(config, inbound):
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("try again")
        return {"ok": True}

    registry.register_executor("flaky", flaky)
    graph = _graph([_node("f", "flaky", retryOnFail=2, retryDelay=0)], [])

    report = await runner.run(graph)

    result = report.get("f")
    assert result.status == NodeStatus.SUCCESS
    assert result.attempts == 3
    assert result.output == {"ok": True}


@pytest.mark.asyncio
async def test_retries_exhausted(runner, calls):
    graph = _graph([_node("bad", "fail", config={"name": "bad"}, retryOnFail=1, retryDelay=0)], [])

    report = await runner.run(graph)

    result = report.get("bad")
    assert result.status == NodeStatus.ERROR
    assert result.attempts == 2
    assert result.error_detail["details"]["attempts"] == 2
    assert calls == ["bad", "bad"]


@pytest.mark.asyncio
async def test_continue_on_fail_passes_error_downstream(runner, registry, calls):
    seen = {}

    def capture(config, inbound):
        seen.update(inbound)
        return {}

    registry.register_executor("capture", capture)
    graph = _graph(
        [
            _node("bad", "fail", config={"name": "bad", "message": "upstream down"}, continueOnFail=True),
            _node("next", "capture"),
        ],
        [("bad", "next")],
    )

    report = await runner.run(graph)

    assert report.get("bad").status == NodeStatus.ERROR
    assert report.get("next").status == NodeStatus.SUCCESS
    assert seen == {"error": "upstream down", "errorNode": "bad"}


@pytest.mark.asyncio
async def test_cancellation_stops_new_nodes(runner, registry, calls):
    token = CancellationToken()

    def stop(config, inbound):
        token.cancel("user requested")
        return {"stopped": True}

    registry.register_executor("stop", stop)
    graph = _graph(
        [
            _node("s", "stop"),
            _node("next", "record", config={"name": "next"}),
            _node("last", "record", config={"name": "last"}),
        ],
        [("s", "next"), ("next", "last")],
    )

    report = await runner.run(graph, cancel_token=token)

    assert report.status == RunStatus.COMPLETE
    assert report.cancelled is True
    assert report.cancel_reason == "user requested"
    assert report.get("s").status == NodeStatus.SUCCESS
    assert report.get("next").status == NodeStatus.CANCELLED
    assert report.get("last").status == NodeStatus.CANCELLED
    assert calls == []
    assert len(report) == 3


@pytest.mark.asyncio
async def test_cancelled_token_before_run(runner, calls):
    token = CancellationToken()
    token.cancel()
    graph = _graph([_node("a", "record", config={"name": "a"})], [])

    report = await runner.run(graph, cancel_token=token)

    assert report.get("a").status == NodeStatus.CANCELLED
    assert report.outcome == RunOutcome.PARTIAL_FAILURE
    assert calls == []


@pytest.mark.asyncio
async def test_in_flight_nodes_finish_after_cancellation(runner, registry, calls):
    token = CancellationToken()

    async def stop(config, inbound):
        await asyncio.sleep(0.02)
        token.cancel("user requested")
        return {"stopped": True}

    registry.register_executor("stop", stop)
    graph = _graph(
        [
            _node("s", "stop"),
            _node("slow", "slow", config={"name": "slow", "seconds": 0.1}),
            _node("queued", "record", config={"name": "queued"}),
            _node("after_stop", "record", config={"name": "after_stop"}),
            _node("after_slow", "record", config={"name": "after_slow"}),
        ],
        [("s", "after_stop"), ("slow", "after_slow")],
    )

    report = await runner.run(graph, RunOptions(max_parallelism=2), cancel_token=token)

    assert report.get("s").status == NodeStatus.SUCCESS
    assert report.get("slow").status == NodeStatus.SUCCESS
    assert report.get("slow").output == {"slow": "done"}
    assert report.get("queued").status == NodeStatus.CANCELLED
    assert report.get("after_stop").status == NodeStatus.CANCELLED
    assert report.get("after_slow").status == NodeStatus.CANCELLED
    assert calls == ["slow"]


@pytest.mark.asyncio
async def test_retries_stop_once_cancelled(runner, registry):
    token = CancellationToken()
    invocations = []

    def flaky(config, inbound):
        invocations.append(1)
        token.cancel()
        raise ConnectionError("still down")

    registry.register_executor("flaky", flaky)
    graph = _graph([_node("f", "flaky", retryOnFail=4, retryDelay=0)], [])

    report = await runner.run(graph, cancel_token=token)

    result = report.get("f")
    assert result.status == NodeStatus.ERROR
    assert result.attempts == 1
    assert len(invocations) == 1


@pytest.mark.asyncio
async def test_executor_removed_after_validation_fails_node(runner, registry, calls):
    def remove(config, inbound):
        registry.unregister("record")
        return {}

    registry.register_executor("remove", remove)
    graph = _graph(
        [_node("r", "remove"), _node("a", "record", config={"name": "a"})],
        [("r", "a")],
    )

    report = await runner.run(graph)

    result = report.get("a")
    assert result.status == NodeStatus.ERROR
    assert result.error_detail["type"] == "NodeTypeNotFoundError"
    assert report.outcome == RunOutcome.PARTIAL_FAILURE
    assert calls == []


@pytest.mark.asyncio
async def test_events_are_emitted_in_order(runner, calls):
    events = []
    graph = _graph(
        [_node("a", "record", config={"name": "a"}), _node("b", "fail", config={"name": "b"})],
        [("a", "b")],
    )

    await runner.run(graph, on_event=events.append)

    types = [e.type for e in events]
    assert types[0] == ExecutionEventType.EXECUTION_START
    assert types[-1] == ExecutionEventType.EXECUTION_COMPLETE
    assert ExecutionEventType.NODE_ERROR in types
    assert events[-1].progress == {"completed": 2, "total": 2}


@pytest.mark.asyncio
async def test_failing_event_callback_does_not_break_run(runner, calls):
    def explode(event):
        raise RuntimeError("listener broke")

    graph = _graph([_node("a", "record", config={"name": "a"})], [])

    report = await runner.run(graph, on_event=explode)

    assert report.outcome == RunOutcome.ALL_SUCCESS


# --- Loops ---


@pytest.fixture
def doubler(registry):
    """Executor that doubles `item` and fails on item 2."""
    seen = []

    def double(config, inbound):
        seen.append(inbound["item"])
        if inbound["item"] == 2:
            raise ValueError("two is not allowed")
        return {"doubled": inbound["item"] * 2}

    registry.register_executor("double", double)
    return seen


def _loop_graph(loop_config):
    return _graph(
        [
            _node("t", "trigger", config={"payload": {"batch": "b1"}}),
            _node("loop", "loop", config=loop_config),
            _node("double", "double"),
            _node("shape", "dataMapper", config={"mapping": {"value": "doubled"}}),
        ],
        [("t", "loop"), ("loop", "double"), ("double", "shape")],
    )


@pytest.mark.asyncio
async def test_loop_runs_body_per_item_and_collects_failures(runner, doubler):
    report = await runner.run(_loop_graph({"items": [1, 2, 3]}))

    loop = report.get("loop")
    assert loop.status == NodeStatus.SUCCESS
    assert loop.output["total"] == 3
    assert loop.output["succeeded"] == 2
    assert loop.output["failed"] == 1
    assert [it["status"] for it in loop.output["iterations"]] == ["success", "error", "success"]
    assert sorted(doubler) == [1, 2, 3]

    double = report.get("double")
    assert double.status == NodeStatus.ERROR
    assert double.error_detail["details"]["failed_iterations"] == [1]
    assert double.output == [{"doubled": 2}, None, {"doubled": 6}]

    shape = report.get("shape")
    assert shape.status == NodeStatus.SUCCESS
    assert shape.output == [{"value": 2}, None, {"value": 6}]

    assert len(report) == 4
    assert report.outcome == RunOutcome.PARTIAL_FAILURE


@pytest.mark.asyncio
async def test_loop_body_receives_item_index_and_inbound(runner, registry):
    payloads = []

    def capture(config, inbound):
        payloads.append(inbound)
        return {}

    registry.register_executor("capture", capture)
    graph = _graph(
        [
            _node("t", "trigger", config={"payload": {"rows": ["a", "b"]}}),
            _node("loop", "loop", config={"itemsField": "rows"}),
            _node("body", "capture"),
        ],
        [("t", "loop"), ("loop", "body")],
    )

    await runner.run(graph)

    assert payloads == [
        {"rows": ["a", "b"], "item": "a", "index": 0},
        {"rows": ["a", "b"], "item": "b", "index": 1},
    ]


@pytest.mark.asyncio
async def test_loop_fail_fast_stops_remaining_iterations(runner, doubler):
    report = await runner.run(_loop_graph({"items": [1, 2, 3], "failFast": True}))

    loop = report.get("loop")
    assert loop.status == NodeStatus.ERROR
    assert loop.error_detail["type"] == "LoopIterationError"
    assert loop.error_detail["details"]["failed_iterations"] == [1]
    assert doubler == [1, 2]
    assert report.get("double").status == NodeStatus.ERROR


@pytest.mark.asyncio
async def test_loop_fail_fast_from_run_options(runner, doubler):
    report = await runner.run(
        _loop_graph({"items": [1, 2, 3]}),
        RunOptions(fail_fast_on_loop_iteration=True),
    )

    assert report.get("loop").status == NodeStatus.ERROR
    assert 3 not in doubler


@pytest.mark.asyncio
async def test_loop_concurrency(runner, registry):
    active = 0
    peak = 0

    async def tracked(config, inbound):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        active -= 1
        return {"item": inbound["item"]}

    registry.register_executor("tracked", tracked)
    graph = _graph(
        [_node("loop", "loop", config={"items": list(range(6)), "concurrency": 3}), _node("body", "tracked")],
        [("loop", "body")],
    )

    report = await runner.run(graph)

    assert report.get("body").output == [{"item": i} for i in range(6)]
    assert peak == 3


@pytest.mark.asyncio
async def test_loop_timeout_keeps_finished_iterations(runner, registry):
    started, finished = [], []

    async def nap(config, inbound):
        started.append(inbound["item"])
        await asyncio.sleep(0.1)
        finished.append(inbound["item"])
        return {"item": inbound["item"]}

    registry.register_executor("nap", nap)
    graph = _graph(
        [
            _node("t", "trigger"),
            _node("loop", "loop", config={"items": [1, 2, 3]}, timeoutMs=150),
            _node("nap", "nap"),
        ],
        [("t", "loop"), ("loop", "nap")],
    )

    report = await runner.run(graph)

    assert report.get("loop").status == NodeStatus.TIMED_OUT
    assert started == [1, 2]
    assert finished == [1]
    nap_result = report.get("nap")
    assert nap_result.status == NodeStatus.SUCCESS
    assert nap_result.output == [{"item": 1}, None, None]


@pytest.mark.asyncio
async def test_empty_loop_skips_body(runner, doubler):
    report = await runner.run(_loop_graph({"items": []}))

    assert report.get("loop").status == NodeStatus.SUCCESS
    assert report.get("double").status == NodeStatus.SKIPPED
    assert report.get("double").reason == "loop had no items"
    assert report.get("shape").status == NodeStatus.SKIPPED


@pytest.mark.asyncio
async def test_loop_without_items_fails_and_skips_body(runner, doubler):
    report = await runner.run(_loop_graph({"itemsField": "nowhere"}))

    assert report.get("loop").status == NodeStatus.ERROR
    assert report.get("loop").error_detail["type"] == "MappingError"
    assert report.get("double").status == NodeStatus.SKIPPED
    assert doubler == []


@pytest.mark.asyncio
async def test_edge_into_loop_body_from_outside_rejected(runner, doubler):
    graph = _graph(
        [_node("t", "trigger"), _node("loop", "loop", config={"items": [1]}), _node("double", "double")],
        [("t", "loop"), ("loop", "double"), ("t", "double")],
    )

    with pytest.raises(ValidationError) as exc:
        await runner.run(graph)

    assert exc.value.details["loop"] == "loop"
    assert doubler == []


@pytest.mark.asyncio
async def test_nested_loops(runner, registry):
    pairs = []

    def pair(config, inbound):
        pairs.append((inbound["outer"], inbound["item"]))
        return {"pair": [inbound["outer"], inbound["item"]]}

    registry.register_executor("pair", pair)
    graph = _graph(
        [
            _node("outer", "loop", config={"items": ["x", "y"]}),
            _node("name", "transformer", config={"mappings": [{"sourceField": "item", "targetField": "outer"}]}),
            _node("inner", "loop", config={"items": [1, 2]}),
            _node("pair", "pair"),
        ],
        [("outer", "name"), ("name", "inner"), ("inner", "pair")],
    )

    report = await runner.run(graph)

    assert sorted(pairs) == [("x", 1), ("x", 2), ("y", 1), ("y", 2)]
    assert report.get("inner").status == NodeStatus.SUCCESS
    assert [it["status"] for it in report.get("outer").output["iterations"]] == ["success", "success"]
    assert report.get("pair").status == NodeStatus.SUCCESS
    assert len(report) == 4


@pytest.mark.asyncio
async def test_report_helpers(runner, calls):
    graph = _graph(
        [
            _node("a", "record", config={"name": "a"}),
            _node("b", "fail", config={"name": "b"}),
            _node("c", "record", config={"name": "c"}),
        ],
        [("b", "c")],
    )

    report = await runner.run(graph)

    assert [r.node_id for r in report.succeeded] == ["a"]
    assert [r.node_id for r in report.failed] == ["b"]
    assert [r.node_id for r in report.with_status(NodeStatus.SKIPPED)] == ["c"]
    assert report.duration_ms >= 0

    data = report.to_dict()
    assert data["status"] == "complete"
    assert data["outcome"] == "partial_failure"
    assert [r["nodeId"] for r in data["results"]] == ["a", "b", "c"]
    assert data["results"][2]["reason"] == "upstream b did not succeed"


def test_results_are_write_once():
    builder = ReportBuilder("exec_test", ["a", "b"])
    builder.record(ExecutionResult(node_id="b", status=NodeStatus.SKIPPED))
    builder.record(ExecutionResult(node_id="a", status=NodeStatus.SUCCESS))

    with pytest.raises(RuntimeError):
        builder.record(ExecutionResult(node_id="a", status=NodeStatus.ERROR))

    assert list(builder.results()) == ["a", "b"]
    assert builder.build().outcome == RunOutcome.ALL_SUCCESS
