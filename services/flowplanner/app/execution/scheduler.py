"""Asynchronous flow execution: dependency-ordered dispatch with bounded parallelism."""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence

import structlog
from opentelemetry import trace

from ..config import ExecutionSettings, get_settings
from ..domain.documents import Flow, FlowNode
from ..domain.errors import (
    ExecutionInProgressError,
    NodeExecutionError,
    NodeTimeoutError,
    ReviewNotPendingError,
    RollbackError,
)
from ..domain.types import EdgeConditionType
from .events import (
    PROGRESS_DONE,
    PROGRESS_REVIEWING,
    PROGRESS_ROLLING_BACK,
    EventStatus,
    NodeStatusEvent,
    running_progress,
)
from .resolver import DependencyResolver
from .retry import RetryPolicy
from .review import ReviewAction, ReviewChannel, ReviewDecision
from .run_state import NodeRunState, RunPhase
from .runner import Clock, NodeRunner, NodeRunRequest, NodeRunResult, RollbackHandler, SystemClock

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

NodeUpdateSink = Callable[[NodeStatusEvent], "Awaitable[None] | None"]

# Ordered from strongest to weakest when a node has several unusable predecessors.
_BLOCKING_PRIORITY = (RunPhase.failed, RunPhase.cancelled, RunPhase.skipped)


@dataclass
class ExecutionResult:
    flow_id: str
    success: bool
    status: str
    results: dict[str, NodeRunResult]
    total_duration: float
    node_states: dict[str, NodeRunState]
    errors: list[str]

    def as_dict(self) -> dict[str, Any]:
        return {
            "flowId": self.flow_id,
            "success": self.success,
            "status": self.status,
            "results": {node_id: result.as_dict() for node_id, result in self.results.items()},
            "totalDuration": self.total_duration,
            "nodes": {node_id: state.as_dict() for node_id, state in self.node_states.items()},
            "errors": list(self.errors),
        }


class FlowExecutor:
    """Runs one flow at a time; use separate instances for concurrent flows."""

    def __init__(
        self,
        runner: NodeRunner,
        settings: ExecutionSettings | None = None,
        clock: Clock | None = None,
        rollback_handler: RollbackHandler | None = None,
    ) -> None:
        self._runner = runner
        self._settings = settings or get_settings().execution
        self._clock = clock or SystemClock()
        self._rollback_handler = rollback_handler
        self._running = False
        self._cancel_requested = False
        self._paused = False
        self._wake = asyncio.Event()
        self._flow: Flow | None = None
        self._resolver: DependencyResolver | None = None
        self._states: dict[str, NodeRunState] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._settled: set[str] = set()
        self._progress: dict[str, int] = {}
        self._errors: list[str] = []
        self._reviews = ReviewChannel(())
        self._sink: NodeUpdateSink | None = None
        self._max_parallel = self._settings.max_parallel
        self._slots = asyncio.Semaphore(self._settings.max_parallel)
        self.events: list[NodeStatusEvent] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def states(self) -> Mapping[str, NodeRunState]:
        return self._states

    async def execute_flow(
        self,
        flow: Flow,
        dependency_map: Mapping[str, Sequence[str]] | None = None,
        on_node_update: NodeUpdateSink | None = None,
        max_parallel: int | None = None,
    ) -> ExecutionResult:
        if self._running:
            raise ExecutionInProgressError(f"Executor is already running flow '{self._flow.id if self._flow else ''}'")
        resolver = DependencyResolver(flow, dependency_map)
        self._reset(flow, resolver, on_node_update, max_parallel)
        self._running = True
        started = self._clock.now()
        logger.info("scheduler.flow.started", flow_id=flow.id, nodes=len(flow.nodes), max_parallel=self._max_parallel)
        try:
            with tracer.start_as_current_span("flowplanner.execute_flow") as span:
                span.set_attribute("flow.id", flow.id)
                span.set_attribute("flow.nodes", len(flow.nodes))
                for node_id in resolver.topological_order():
                    await self._emit(node_id, EventStatus.pending, 0)
                await self._drive()
                result = self._build_result(self._clock.now() - started)
                span.set_attribute("flow.status", result.status)
        finally:
            await self._drain()
            self._running = False
        logger.info(
            "scheduler.flow.finished",
            flow_id=flow.id,
            status=result.status,
            duration=result.total_duration,
            errors=len(result.errors),
        )
        return result

    def submit_review(self, decision: ReviewDecision) -> None:
        if not self._running or not self._reviews.accepts(decision.node_id):
            raise ReviewNotPendingError(decision.node_id)
        logger.info("scheduler.review.submitted", node_id=decision.node_id, action=decision.action.value)
        self._reviews.submit(decision)

    def active_reviews(self) -> list[str]:
        """Node ids currently blocked on a review decision."""
        return self._reviews.awaiting()

    def pause(self) -> None:
        """Hold new dispatches; nodes already in flight keep running."""
        if not self._running or self._paused:
            return
        self._paused = True
        logger.info("scheduler.flow.paused", flow_id=self._flow.id if self._flow else None)

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        logger.info("scheduler.flow.resumed", flow_id=self._flow.id if self._flow else None)
        self._wake.set()

    def cancel(self) -> None:
        """Stop dispatching and cancel in-flight nodes. No-op when idle."""
        if not self._running or self._cancel_requested:
            return
        self._cancel_requested = True
        logger.info("scheduler.flow.cancel_requested", flow_id=self._flow.id if self._flow else None)
        for task in self._tasks.values():
            task.cancel()
        self._wake.set()

    def _reset(
        self,
        flow: Flow,
        resolver: DependencyResolver,
        on_node_update: NodeUpdateSink | None,
        max_parallel: int | None,
    ) -> None:
        self._flow = flow
        self._resolver = resolver
        self._cancel_requested = False
        self._paused = False
        self._wake = asyncio.Event()
        self._states = {
            node.id: NodeRunState(node_id=node.id, agent_id=node.agent_id, instructions=node.instructions)
            for node in flow.nodes
        }
        self._tasks = {}
        self._settled = set()
        self._progress = {}
        self._errors = []
        self._sink = on_node_update
        self._reviews = ReviewChannel(node.id for node in flow.nodes if node.config.requires_review)
        self._max_parallel = max(1, max_parallel or self._settings.max_parallel)
        self._slots = asyncio.Semaphore(self._max_parallel)
        self.events = []

    async def _drive(self) -> None:
        await self._dispatch_ready()
        while self._tasks or self._held():
            waiter = asyncio.create_task(self._wake.wait())
            try:
                done, _ = await asyncio.wait({waiter, *self._tasks.values()}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                waiter.cancel()
            self._wake.clear()
            for node_id in [node_id for node_id, task in self._tasks.items() if task in done]:
                task = self._tasks.pop(node_id)
                self._settled.add(node_id)
                state = self._states[node_id]
                if task.cancelled() and state.phase is RunPhase.pending:
                    state.cancel(self._clock.now())
                    await self._emit(node_id, EventStatus.cancelled, PROGRESS_DONE)
                elif not task.cancelled() and task.exception() is not None:
                    raise task.exception()  # type: ignore[misc]
            await self._dispatch_ready()

    def _held(self) -> bool:
        """Paused with nodes still waiting to be dispatched."""
        return self._paused and not self._cancel_requested and len(self._settled) < len(self._states)

    async def _drain(self) -> None:
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = {}

    async def _dispatch_ready(self) -> None:
        assert self._resolver is not None
        for node_id in self._resolver.topological_order():
            if node_id in self._settled or node_id in self._tasks:
                continue
            state = self._states[node_id]
            if self._cancel_requested:
                state.cancel(self._clock.now())
                self._settled.add(node_id)
                await self._emit(node_id, EventStatus.cancelled, PROGRESS_DONE)
                continue
            if self._paused:
                continue
            verdict, reason = self._readiness(node_id)
            if verdict is None:
                continue
            if verdict is RunPhase.running:
                self._tasks[node_id] = asyncio.create_task(self._run_node(node_id), name=f"flow-node-{node_id}")
                continue
            await self._settle_unrunnable(node_id, verdict, reason)

    def _readiness(self, node_id: str) -> tuple[RunPhase | None, str]:
        """Return (running, "") when ready, a blocking phase when unrunnable, or (None, "") to wait."""
        assert self._resolver is not None
        blocked: dict[RunPhase, str] = {}
        waiting = False
        for source in self._resolver.predecessors(node_id):
            if source not in self._settled:
                waiting = True
                continue
            phase = self._states[source].phase
            condition = self._resolver.condition(source, node_id)
            if phase is RunPhase.cancelled:
                blocked.setdefault(RunPhase.cancelled, f"Dependency '{source}' was cancelled")
            elif condition is EdgeConditionType.failure:
                if phase not in (RunPhase.failed, RunPhase.rolled_back):
                    blocked.setdefault(RunPhase.skipped, f"Recovery path from '{source}' not taken")
            elif phase is RunPhase.failed:
                blocked.setdefault(RunPhase.failed, f"Dependency '{source}' failed")
            elif phase is not RunPhase.completed:
                blocked.setdefault(RunPhase.skipped, f"Dependency '{source}' did not complete ({phase.value})")
        for phase in _BLOCKING_PRIORITY:
            if phase in blocked:
                return phase, blocked[phase]
        if waiting:
            return None, ""
        return RunPhase.running, ""

    async def _settle_unrunnable(self, node_id: str, phase: RunPhase, reason: str) -> None:
        state = self._states[node_id]
        now = self._clock.now()
        if phase is RunPhase.failed:
            state.fail(reason, now)
            self._errors.append(f"{node_id}: {reason}")
            status = EventStatus.failed
        elif phase is RunPhase.cancelled:
            state.cancel(now)
            status = EventStatus.cancelled
        else:
            state.skip(reason, now)
            status = EventStatus.skipped
        self._settled.add(node_id)
        logger.info("scheduler.node.unrunnable", node_id=node_id, status=status.value, reason=reason)
        await self._emit(node_id, status, PROGRESS_DONE, error=reason)

    async def _run_node(self, node_id: str) -> None:
        assert self._flow is not None and self._resolver is not None
        node = self._resolver.nodes[node_id]
        state = self._states[node_id]
        policy = RetryPolicy.for_node(node.config, self._settings)
        try:
            while True:
                result = await self._run_attempts(node, state, policy)
                if result is None:
                    await self._handle_failure(node, state)
                    return
                if not node.config.requires_review:
                    state.succeed(result, self._clock.now())
                    await self._emit(node_id, EventStatus.completed, PROGRESS_DONE, output=result.output)
                    return
                state.succeed(result, self._clock.now(), review=True)
                await self._emit(node_id, EventStatus.reviewing, PROGRESS_REVIEWING, output=result.output)
                decision = await self._await_review(node_id)
                if decision.action is ReviewAction.approve:
                    state.approve(self._clock.now())
                    await self._emit(node_id, EventStatus.completed, PROGRESS_DONE, output=result.output)
                    return
                if decision.action is ReviewAction.request_changes:
                    state.request_changes(decision.feedback)
                    logger.info("scheduler.node.changes_requested", node_id=node_id)
                    continue
                reason = f"Review rejected{': ' + decision.feedback if decision.feedback else ''}"
                state.fail(reason, self._clock.now())
                await self._handle_failure(node, state)
                return
        except asyncio.CancelledError:
            if state.can_transition(RunPhase.cancelled):
                state.cancel(self._clock.now())
                await self._emit(node_id, EventStatus.cancelled, PROGRESS_DONE)
            raise

    async def _await_review(self, node_id: str) -> ReviewDecision:
        timeout = self._settings.review_timeout_seconds
        try:
            return await self._reviews.wait(node_id, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("scheduler.review.timeout", node_id=node_id, timeout=timeout)
            return ReviewDecision(node_id=node_id, action=ReviewAction.reject, feedback=f"no decision within {timeout}s")

    async def _run_attempts(self, node: FlowNode, state: NodeRunState, policy: RetryPolicy) -> NodeRunResult | None:
        error = ""
        for attempt in range(1, policy.max_attempts + 1):
            async with self._slots:
                state.start_attempt(self._clock.now())
                await self._emit(node.id, EventStatus.running, running_progress(state.attempt))
                with tracer.start_as_current_span("flowplanner.node.attempt") as span:
                    span.set_attribute("node.id", node.id)
                    span.set_attribute("node.agent_id", node.agent_id)
                    span.set_attribute("node.attempt", state.attempt)
                    try:
                        result = await self._invoke(node, state)
                    except NodeExecutionError as exc:
                        error = str(exc)
                        span.set_attribute("node.error", error)
                    else:
                        logger.info("scheduler.node.succeeded", node_id=node.id, attempt=state.attempt)
                        return result
            state.fail(error, self._clock.now())
            logger.warning(
                "scheduler.node.attempt_failed",
                node_id=node.id,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                error=error,
            )
            if policy.should_retry(attempt):
                await self._emit(node.id, EventStatus.retrying, running_progress(state.attempt), error=error)
                await self._clock.sleep(policy.delay(attempt))
        return None

    async def _invoke(self, node: FlowNode, state: NodeRunState) -> NodeRunResult:
        assert self._flow is not None
        request = NodeRunRequest(
            flow_id=self._flow.id,
            node=node,
            instructions=state.instructions,
            inputs=self._gather_inputs(node),
            attempt=state.attempt,
        )
        try:
            raw = await asyncio.wait_for(self._runner.run(request), timeout=node.config.timeout)
        except asyncio.TimeoutError as exc:
            raise NodeTimeoutError(node.id, node.agent_id, node.config.timeout) from exc
        except NodeExecutionError:
            raise
        except Exception as exc:
            raise NodeExecutionError(node.id, node.agent_id, str(exc) or exc.__class__.__name__) from exc
        result = NodeRunResult.coerce(raw)
        if not result.success:
            raise NodeExecutionError(
                node.id,
                node.agent_id,
                result.error or "agent reported failure",
                context={"output": result.output, "logs": result.logs},
            )
        return result

    def _gather_inputs(self, node: FlowNode) -> dict[str, Any]:
        """Upstream outputs in dependency order, then the node's own inputs."""
        assert self._resolver is not None
        inputs: dict[str, Any] = {}
        for source in self._resolver.predecessors(node.id):
            result = self._states[source].result
            if result is not None and self._states[source].phase is RunPhase.completed:
                inputs.update(result.output)
        inputs.update(node.inputs)
        return inputs

    async def _handle_failure(self, node: FlowNode, state: NodeRunState) -> None:
        self._errors.append(f"{node.id}: {state.error}")
        if not (node.config.critical and node.config.rollback_on_failure and self._rollback_handler):
            logger.error("scheduler.node.failed", node_id=node.id, attempts=state.attempt, error=state.error)
            await self._emit(node.id, EventStatus.failed, PROGRESS_DONE, error=state.error)
            return
        state.begin_rollback()
        await self._emit(node.id, EventStatus.rolling_back, PROGRESS_ROLLING_BACK, error=state.error)
        try:
            await self._rollback(node, state)
        except RollbackError as exc:
            state.rollback_failed(str(exc), self._clock.now())
            self._errors.append(f"{node.id}: {exc}")
            logger.error("scheduler.node.rollback_failed", node_id=node.id, error=str(exc))
            await self._emit(node.id, EventStatus.failed, PROGRESS_DONE, error=state.error)
            return
        state.finish_rollback(self._clock.now())
        logger.warning("scheduler.node.rolled_back", node_id=node.id, error=state.error)
        await self._emit(node.id, EventStatus.rolled_back, PROGRESS_DONE, error=state.error)

    async def _rollback(self, node: FlowNode, state: NodeRunState) -> None:
        assert self._rollback_handler is not None
        try:
            await self._rollback_handler.rollback(node, state)
        except asyncio.CancelledError:
            raise
        except RollbackError:
            raise
        except Exception as exc:
            raise RollbackError(node.id, str(exc) or exc.__class__.__name__) from exc

    async def _emit(
        self,
        node_id: str,
        status: EventStatus,
        progress: int,
        output: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        progress = max(self._progress.get(node_id, 0), progress)
        self._progress[node_id] = progress
        event = NodeStatusEvent(
            node_id=node_id,
            status=status,
            progress=progress,
            timestamp=self._clock.utcnow(),
            attempt=self._states[node_id].attempt,
            output=output,
            error=error,
        )
        self.events.append(event)
        if self._sink is None:
            return
        try:
            outcome = self._sink(event)
            if inspect.isawaitable(outcome):
                await outcome
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("scheduler.sink.error", node_id=node_id, status=status.value)

    def _build_result(self, duration: float) -> ExecutionResult:
        assert self._flow is not None
        phases = [state.phase for state in self._states.values()]
        if self._cancel_requested:
            status = "cancelled"
        elif RunPhase.failed in phases:
            status = "failed"
        elif RunPhase.rolled_back in phases:
            status = "degraded"
        else:
            status = "completed"
        results = {
            node_id: state.result
            for node_id, state in self._states.items()
            if state.result is not None and state.phase is RunPhase.completed
        }
        return ExecutionResult(
            flow_id=self._flow.id,
            success=status == "completed",
            status=status,
            results=results,
            total_duration=duration,
            node_states=dict(self._states),
            errors=list(self._errors),
        )


__all__ = ["ExecutionResult", "FlowExecutor", "NodeUpdateSink"]
