"""
Workflow runner - executes DAG-based workflows.

Uses a ready-set approach: a node is dispatched as soon as every
predecessor has a terminal status, and independent branches run as
concurrent asyncio tasks.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TYPE_CHECKING

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    NodeCancelledError,
    NodeExecutionError,
    NodeTimeoutError,
    NodeTypeNotFoundError,
    ValidationError,
    WorkflowEngineError,
)
from .graph import Graph, descendants_of, start_nodes
from .reporter import ExecutionReport, ExecutionResult, ReportBuilder
from .types import (
    CancellationToken,
    ExecutionContext,
    ExecutionEvent,
    ExecutionEventCallback,
    ExecutionEventType,
    NodeDefinition,
    NodeExecutionResult,
    NodeStatus,
    NodeType,
    RunOptions,
)

if TYPE_CHECKING:
    from .node_registry import ExecutorRegistry
    from ..nodes.base import ExecutorFunction

logger = logging.getLogger(__name__)

_FAILED = (NodeStatus.ERROR, NodeStatus.TIMED_OUT)


@dataclass
class _RunState:
    """Mutable bookkeeping shared by a run and its nested loop bodies."""

    execution_id: str
    options: RunOptions
    token: CancellationToken
    on_event: ExecutionEventCallback | None
    bodies: dict[str, tuple[str, ...]]
    total_nodes: int
    completed: int = 0
    sequence: int = 0


@dataclass
class _Scope:
    """One (sub)graph being executed: the whole workflow or one loop iteration."""

    graph: Graph
    builder: ReportBuilder
    entry_inbound: dict[str, Any]
    depth: int
    schedulable: tuple[str, ...] = ()
    pending: dict[str, int] = field(default_factory=dict)
    blocked: dict[str, list[str]] = field(default_factory=dict)
    ready: deque[str] = field(default_factory=deque)


class WorkflowRunner:
    """Executes workflow graphs using ready-set scheduling."""

    def __init__(
        self,
        registry: ExecutorRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        from .node_registry import node_registry

        self._registry: ExecutorRegistry = registry if registry is not None else node_registry
        self._settings = settings or get_settings()

    @property
    def registry(self) -> ExecutorRegistry:
        return self._registry

    def register_executor(self, node_type: str, fn: ExecutorFunction) -> None:
        """Register a plain `(config, inbound) -> output` executor for `node_type`."""
        self._registry.register_executor(node_type, fn)

    async def run(
        self,
        graph: Graph,
        options: RunOptions | None = None,
        *,
        initial_data: dict[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
        on_event: ExecutionEventCallback | None = None,
    ) -> ExecutionReport:
        """
        Run a workflow graph to completion.

        Args:
            graph: The validated workflow graph to execute
            options: Parallelism, timeout and policy options (defaults from settings)
            initial_data: Inbound data handed to every start node
            cancel_token: Token that stops admitting new nodes once cancelled
            on_event: Optional callback for real-time execution events

        Returns:
            ExecutionReport with one result per node

        Raises:
            ValidationError: if the graph cannot be run; no node is executed
        """
        options = options or RunOptions.from_settings(self._settings)
        token = cancel_token or CancellationToken()

        start_nodes(graph)
        self._validate_node_types(graph)
        bodies = self._loop_bodies(graph)

        state = _RunState(
            execution_id=self._generate_id(),
            options=options,
            token=token,
            on_event=on_event,
            bodies=bodies,
            total_nodes=len(graph),
        )
        builder = ReportBuilder(state.execution_id, graph.node_ids)

        logger.info(
            "Execution %s started: %d nodes, %d edges",
            state.execution_id,
            len(graph.nodes),
            len(graph.edges),
        )
        self._emit_event(
            state,
            ExecutionEvent(
                type=ExecutionEventType.EXECUTION_START,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                progress={"completed": 0, "total": state.total_nodes},
            ),
        )

        scope = _Scope(graph=graph, builder=builder, entry_inbound=initial_data or {}, depth=0)
        await self._execute_scope(state, scope)

        report = builder.build(
            cancel_reason=token.reason if token.cancelled else None,
            cancelled=token.cancelled,
        )

        logger.info(
            "Execution %s finished: %s (%d ok, %d failed)",
            state.execution_id,
            report.outcome.value,
            len(report.succeeded),
            len(report.failed),
        )
        self._emit_event(
            state,
            ExecutionEvent(
                type=ExecutionEventType.EXECUTION_COMPLETE,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                progress={"completed": state.completed, "total": state.total_nodes},
            ),
        )
        return report

    # --- Validation ---

    def _validate_node_types(self, graph: Graph) -> None:
        for node in graph.nodes:
            if not self._registry.has(node.type):
                raise ValidationError(
                    f'No executor registered for node type "{node.type}"',
                    field="type",
                    details={"node_id": node.id, "node_type": node.type},
                )

    def _loop_bodies(self, graph: Graph) -> dict[str, tuple[str, ...]]:
        """Body of every loop node; edges may only enter a body from its loop or from inside it."""
        bodies: dict[str, tuple[str, ...]] = {}
        for node in graph.nodes:
            if node.type != NodeType.LOOP.value:
                continue
            body = tuple(n.id for n in descendants_of(graph, node.id))
            members = set(body) | {node.id}
            for body_id in body:
                outside = [p for p in graph.parent_ids(body_id) if p not in members]
                if outside:
                    raise ValidationError(
                        f'Node "{body_id}" is inside loop "{node.id}" but also depends on '
                        f'"{outside[0]}" outside the loop',
                        details={"loop": node.id, "node_id": body_id, "outside": outside},
                    )
            bodies[node.id] = body
        return bodies

    # --- Scheduling ---

    async def _execute_scope(self, state: _RunState, scope: _Scope) -> None:
        graph = scope.graph
        # Every descendant of a loop belongs to that loop's body, not to this scope
        owned: set[str] = set()
        for node_id in graph.node_ids:
            if node_id in state.bodies:
                owned.update(n.id for n in descendants_of(graph, node_id))
        scope.schedulable = tuple(nid for nid in graph.node_ids if nid not in owned)
        scope.pending = {nid: len(graph.parent_ids(nid)) for nid in scope.schedulable}
        scope.ready.extend(nid for nid in scope.schedulable if scope.pending[nid] == 0)

        ready = scope.ready
        in_flight: dict[asyncio.Task[tuple[ExecutionResult, ExecutionContext | None]], tuple[int, str]] = {}
        semaphore = (
            asyncio.Semaphore(state.options.max_parallelism)
            if state.options.max_parallelism
            else None
        )

        try:
            while ready or in_flight:
                while ready and not state.token.cancelled:
                    node_id = ready.popleft()
                    inbound = self._merge_inbound(scope, node_id)
                    task = asyncio.create_task(
                        self._execute_node(state, scope, graph.node(node_id), inbound, semaphore),
                        name=f"flowrunner:{state.execution_id}:{node_id}",
                    )
                    state.sequence += 1
                    in_flight[task] = (state.sequence, node_id)

                if not in_flight:
                    break

                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=lambda t: in_flight[t][0]):
                    _, node_id = in_flight.pop(task)
                    result, context = task.result()
                    self._complete(state, scope, result, context)
        except asyncio.CancelledError:
            for task in in_flight:
                task.cancel()
            raise

        # Anything left never started: the run was cancelled
        for node_id in scope.schedulable:
            if node_id not in scope.builder:
                self._prune(state, scope, node_id, blocked_by=[])

    def _complete(
        self,
        state: _RunState,
        scope: _Scope,
        result: ExecutionResult,
        context: ExecutionContext | None,
    ) -> None:
        """Record a finished node and admit or prune its children."""
        self._record(state, scope, result)
        if result.node_id in state.bodies:
            self._record_body(state, scope, result, context)
        self._release_children(state, scope, result)

    def _release_children(self, state: _RunState, scope: _Scope, result: ExecutionResult) -> None:
        node = scope.graph.node(result.node_id)
        passes = self._passes_downstream(node, result, state.options)

        for child_id in scope.graph.child_ids(result.node_id):
            if child_id not in scope.pending:
                continue  # loop body, run by the loop itself
            if not passes:
                scope.blocked.setdefault(child_id, []).append(result.node_id)
            scope.pending[child_id] -= 1
            if scope.pending[child_id] != 0:
                continue
            if child_id in scope.blocked:
                self._prune(state, scope, child_id, blocked_by=scope.blocked[child_id])
            else:
                scope.ready.append(child_id)

    def _passes_downstream(
        self,
        node: NodeDefinition,
        result: ExecutionResult,
        options: RunOptions,
    ) -> bool:
        if result.status == NodeStatus.SUCCESS:
            return True
        if result.status == NodeStatus.SHORT_CIRCUITED:
            return not options.skip_on_short_circuit
        if result.status in _FAILED:
            return node.continue_on_fail
        return False

    def _prune(
        self,
        state: _RunState,
        scope: _Scope,
        node_id: str,
        blocked_by: list[str],
    ) -> None:
        """Record a node that will never run, then propagate to its subtree."""
        if node_id in scope.builder:
            return
        result = self._pruned_result(state, node_id, blocked_by)
        self._record(state, scope, result)
        if node_id in state.bodies:
            self._record_body(state, scope, result, None)
        self._release_children(state, scope, result)

    def _pruned_result(
        self,
        state: _RunState,
        node_id: str,
        blocked_by: list[str],
    ) -> ExecutionResult:
        if state.token.cancelled:
            error = NodeCancelledError(node_id, state.token.reason)
            return ExecutionResult(
                node_id=node_id,
                status=NodeStatus.CANCELLED,
                error_detail=error.to_detail(),
                reason=state.token.reason or "run cancelled",
            )
        return ExecutionResult(
            node_id=node_id,
            status=NodeStatus.SKIPPED,
            reason=(
                f"upstream {', '.join(blocked_by)} did not succeed" if blocked_by else "not reached"
            ),
        )

    # --- Inbound data ---

    def _merge_inbound(self, scope: _Scope, node_id: str) -> dict[str, Any]:
        """Merged, private copy of every predecessor's output."""
        parents = scope.graph.parent_ids(node_id)
        if not parents:
            return copy.deepcopy(scope.entry_inbound)

        inbound: dict[str, Any] = {}
        for parent_id in parents:
            parent = scope.builder.get(parent_id)
            if parent is None or parent.status == NodeStatus.SHORT_CIRCUITED:
                continue
            if isinstance(parent.output, dict):
                inbound.update(parent.output)
            elif parent.output is not None:
                inbound[parent_id] = parent.output
        return copy.deepcopy(inbound)

    # --- Node execution ---

    async def _execute_node(
        self,
        state: _RunState,
        scope: _Scope,
        node: NodeDefinition,
        inbound: dict[str, Any],
        semaphore: asyncio.Semaphore | None,
    ) -> tuple[ExecutionResult, ExecutionContext | None]:
        """Run one node with retries and timeout. Never raises (except task cancellation)."""
        async with semaphore if semaphore is not None else contextlib.nullcontext():
            if state.token.cancelled:
                return self._pruned_result(state, node.id, []), None

            started_at = datetime.now()
            if scope.depth == 0:
                self._emit_event(
                    state,
                    ExecutionEvent(
                        type=ExecutionEventType.NODE_START,
                        execution_id=state.execution_id,
                        timestamp=started_at,
                        node_id=node.id,
                        node_type=node.type,
                        progress={"completed": state.completed, "total": state.total_nodes},
                    ),
                )

            try:
                executor = self._registry.get(node.type)
            except NodeTypeNotFoundError as e:
                return self._failed_result(node, e, started_at, datetime.now(), 0), None

            context = ExecutionContext(
                execution_id=state.execution_id,
                node=node,
                options=state.options,
                cancel_token=state.token,
                depth=scope.depth,
            )
            if node.id in state.bodies:
                body_ids = state.bodies[node.id]
                context.body_node_ids = body_ids

                async def body_runner(payload: dict[str, Any]) -> dict[str, ExecutionResult]:
                    return await self._run_body(state, scope, body_ids, payload)

                context.body_runner = body_runner

            timeout_ms = node.timeout_ms or state.options.node_timeout_ms
            max_retries = max(0, node.retry_on_fail)
            outcome: NodeExecutionResult | None = None
            last_error: Exception | None = None
            attempts = 0

            for attempt in range(max_retries + 1):
                if attempt > 0 and state.token.cancelled:
                    break
                attempts += 1
                context.body_results = []
                try:
                    outcome = await self._invoke(executor, context, node, copy.deepcopy(inbound), timeout_ms)
                    last_error = None
                    break  # Success, exit retry loop
                except Exception as e:
                    last_error = e
                    if attempt < max_retries:
                        await asyncio.sleep(node.retry_delay / 1000)

            finished_at = datetime.now()

            if last_error is not None or outcome is None:
                return self._failed_result(node, last_error, started_at, finished_at, attempts), context

            return (
                ExecutionResult(
                    node_id=node.id,
                    status=NodeStatus.SHORT_CIRCUITED if outcome.short_circuited else NodeStatus.SUCCESS,
                    output=outcome.output,
                    started_at=started_at,
                    finished_at=finished_at,
                    attempts=attempts,
                ),
                context,
            )

    async def _invoke(
        self,
        executor: Any,
        context: ExecutionContext,
        node: NodeDefinition,
        inbound: dict[str, Any],
        timeout_ms: int | None,
    ) -> NodeExecutionResult:
        if timeout_ms:
            try:
                result = await asyncio.wait_for(
                    executor.execute(context, node, inbound), timeout_ms / 1000
                )
            except asyncio.TimeoutError:
                raise NodeTimeoutError(node.id, timeout_ms) from None
        else:
            result = await executor.execute(context, node, inbound)

        if isinstance(result, NodeExecutionResult):
            return result
        return NodeExecutionResult(output=result)

    def _failed_result(
        self,
        node: NodeDefinition,
        error: Exception | None,
        started_at: datetime,
        finished_at: datetime,
        attempts: int,
    ) -> ExecutionResult:
        if isinstance(error, WorkflowEngineError):
            detail = error.to_detail()
        else:
            wrapped = NodeExecutionError(
                str(error) if error else "Unknown execution error",
                details={"exception": type(error).__name__} if error else None,
            )
            detail = wrapped.to_detail()
        if attempts > 1:
            detail["details"]["attempts"] = attempts

        status = NodeStatus.TIMED_OUT if isinstance(error, NodeTimeoutError) else NodeStatus.ERROR
        logger.warning("Node %s (%s) failed: %s", node.id, node.type, detail["message"])

        output = None
        if node.continue_on_fail:
            output = {"error": detail["message"], "errorNode": node.id}

        return ExecutionResult(
            node_id=node.id,
            status=status,
            output=output,
            error_detail=detail,
            started_at=started_at,
            finished_at=finished_at,
            attempts=attempts,
        )

    # --- Loop bodies ---

    async def _run_body(
        self,
        state: _RunState,
        scope: _Scope,
        body_ids: tuple[str, ...],
        payload: dict[str, Any],
    ) -> dict[str, ExecutionResult]:
        """Run a loop body once; its entry nodes receive `payload`."""
        subgraph = scope.graph.subgraph(body_ids)
        builder = ReportBuilder(state.execution_id, subgraph.node_ids)
        body_scope = _Scope(graph=subgraph, builder=builder, entry_inbound=payload, depth=scope.depth + 1)
        await self._execute_scope(state, body_scope)
        return builder.results()

    def _record_body(
        self,
        state: _RunState,
        scope: _Scope,
        loop_result: ExecutionResult,
        context: ExecutionContext | None,
    ) -> None:
        """Fold per-iteration body results into one result per body node."""
        iterations = context.body_results if context is not None else []
        for body_id in state.bodies[loop_result.node_id]:
            if body_id not in scope.graph or body_id in scope.builder:
                continue
            per_iteration = [it.get(body_id) for it in iterations]
            if not any(per_iteration):
                pruned = self._pruned_result(state, body_id, [loop_result.node_id])
                if not iterations and loop_result.ok:
                    pruned = ExecutionResult(node_id=body_id, status=pruned.status, reason="loop had no items")
                self._record(state, scope, pruned)
                continue
            self._record(state, scope, self._aggregate_iterations(body_id, per_iteration))

    def _aggregate_iterations(
        self,
        node_id: str,
        per_iteration: list[ExecutionResult | None],
    ) -> ExecutionResult:
        statuses = [r.status if r is not None else None for r in per_iteration]
        outputs = [
            r.output if r is not None and r.status == NodeStatus.SUCCESS else None
            for r in per_iteration
        ]
        ran = [r for r in per_iteration if r is not None]
        started = [r.started_at for r in ran if r.started_at]
        finished = [r.finished_at for r in ran if r.finished_at]
        timing = {
            "started_at": min(started) if started else None,
            "finished_at": max(finished) if finished else None,
            "attempts": sum(r.attempts for r in ran),
        }

        failed = [i for i, s in enumerate(statuses) if s in _FAILED]
        if failed:
            return ExecutionResult(
                node_id=node_id,
                status=NodeStatus.ERROR,
                output=outputs,
                error_detail={
                    "type": "LoopIterationError",
                    "message": f"Failed in {len(failed)} of {len(per_iteration)} iterations",
                    "details": {
                        "failed_iterations": failed,
                        "errors": [
                            {"index": i, **(per_iteration[i].error_detail or {})} for i in failed
                        ],
                    },
                },
                **timing,
            )

        for status in (NodeStatus.SUCCESS, NodeStatus.SHORT_CIRCUITED, NodeStatus.CANCELLED):
            if status in statuses:
                return ExecutionResult(node_id=node_id, status=status, output=outputs, **timing)
        return ExecutionResult(
            node_id=node_id, status=NodeStatus.SKIPPED, reason="skipped in every iteration", **timing
        )

    # --- Bookkeeping ---

    def _record(self, state: _RunState, scope: _Scope, result: ExecutionResult) -> None:
        scope.builder.record(result)
        if scope.depth != 0:
            return

        state.completed += 1
        node = scope.graph.node(result.node_id)
        if result.status == NodeStatus.SUCCESS or result.status == NodeStatus.SHORT_CIRCUITED:
            event_type = ExecutionEventType.NODE_COMPLETE
        elif result.status in _FAILED:
            event_type = ExecutionEventType.NODE_ERROR
        else:
            event_type = ExecutionEventType.NODE_SKIPPED

        self._emit_event(
            state,
            ExecutionEvent(
                type=event_type,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                node_id=result.node_id,
                node_type=node.type,
                status=result.status,
                data=result.output,
                error=result.error_detail["message"] if result.error_detail else None,
                progress={"completed": state.completed, "total": state.total_nodes},
            ),
        )

    def _emit_event(self, state: _RunState, event: ExecutionEvent) -> None:
        """Helper to emit events safely."""
        if state.on_event:
            try:
                state.on_event(event)
            except Exception:
                logger.exception("Error in execution event callback")

    def _generate_id(self) -> str:
        """Generate unique execution ID."""
        return f"exec_{int(datetime.now().timestamp() * 1000)}_{uuid.uuid4().hex[:7]}"
