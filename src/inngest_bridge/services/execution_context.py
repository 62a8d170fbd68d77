"""Execution contexts and timeout-guarded handler execution."""

import asyncio
import inspect
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from ..core.config import Settings
from ..core.development import DevelopmentMode
from ..core.exceptions import FunctionTimeoutError
from ..core.logging import RunLoggerAdapter
from ..schemas.events import InngestEvent
from ..schemas.functions import FunctionMetadata
from .step_tools import StepInterrupt, StepSuspension, StepTools

logger = logging.getLogger(__name__)


@dataclass
class ExecutionContext:
    """Everything a handler gets for one invocation, besides the event."""
    function_id: str
    run_id: str
    event: InngestEvent
    attempt: int
    step: StepTools
    env: Mapping[str, Any]
    logger: RunLoggerAdapter
    execution_id: str
    function: FunctionMetadata = field(repr=False)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        """True once the run has been abandoned; long handlers should stop."""
        return self.cancel_event.is_set()


class ExecutionContextService:
    """Builds execution contexts and runs handlers against their timeout.

    Handlers are called as ``handler(event, context)``; coroutine functions
    are awaited and plain functions run in a worker thread. No retries
    happen here: the orchestrator owns retry policy.
    """

    def __init__(
        self,
        settings: Settings,
        development_mode: Optional[DevelopmentMode] = None,
        event_client: Any = None,
    ):
        self.settings = settings
        self.development_mode = development_mode or DevelopmentMode(settings)
        self.event_client = event_client
        self._active: Dict[str, ExecutionContext] = {}
        self._abandoned: Set[asyncio.Future] = set()
        self._stats: Counter = Counter()

    def create_execution_context(
        self,
        metadata: FunctionMetadata,
        event: Union[InngestEvent, Dict[str, Any]],
        run_id: str,
        attempt: int = 1,
        steps: Optional[Dict[str, Any]] = None,
    ) -> ExecutionContext:
        """Build a fresh context (and step toolkit) for one invocation."""
        if not run_id:
            raise ValueError("run_id is required")
        if isinstance(attempt, bool) or not isinstance(attempt, int) or attempt < 1:
            raise ValueError(f"attempt must be a positive integer, got {attempt!r}")
        if not isinstance(event, InngestEvent):
            event = InngestEvent.model_validate(event)

        function_id = metadata.id
        execution_id = f"{function_id}-{run_id}-{attempt}"
        context = ExecutionContext(
            function_id=function_id,
            run_id=run_id,
            event=event,
            attempt=attempt,
            step=StepTools(run_id, state=steps, event_client=self.event_client),
            env=MappingProxyType({
                "app_id": self.settings.APP_ID,
                "environment": self.settings.ENVIRONMENT,
                "is_dev": self.development_mode.enabled,
            }),
            logger=RunLoggerAdapter(
                logging.getLogger(f"inngest_bridge.functions.{function_id}"),
                function_id,
                run_id,
                attempt,
            ),
            execution_id=execution_id,
            function=metadata,
        )
        self._active[execution_id] = context
        self.development_mode.log("Created execution context", {"execution_id": execution_id})
        return context

    async def execute_function(self, context: ExecutionContext) -> Any:
        """Run the handler for ``context``.

        Returns the handler's result, or a ``StepSuspension`` when a step
        suspended the run. Handler exceptions propagate unmodified.

        Raises:
            FunctionTimeoutError: the handler did not settle in time. The
                handler task is abandoned, not awaited.
        """
        timeout_ms = self.resolve_timeout(context.function)
        self._stats["started"] += 1
        task = asyncio.ensure_future(self._invoke(context))

        try:
            try:
                done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
            except asyncio.CancelledError:
                self._abandon(context, task, cancel=True)
                raise

            if task not in done:
                self._stats["timed_out"] += 1
                logger.warning(
                    f"Function {context.function_id} run {context.run_id} timed out after {timeout_ms}ms"
                )
                self._abandon(context, task, cancel=self.settings.CANCEL_ON_TIMEOUT)
                raise FunctionTimeoutError(context.function_id, context.run_id, timeout_ms)

            try:
                result = task.result()
            except Exception:
                self._stats["failed"] += 1
                raise

            if isinstance(result, StepSuspension):
                self._stats["suspended"] += 1
                logger.info(
                    f"Function {context.function_id} run {context.run_id} suspended at step "
                    f"{result.pending.id} ({result.pending.op})"
                )
            else:
                self._stats["completed"] += 1
            return result
        finally:
            if self._active.get(context.execution_id) is context:
                del self._active[context.execution_id]

    def resolve_timeout(self, metadata: FunctionMetadata) -> int:
        """Function timeout if declared, else ``TIMEOUT_MS``; development override applies last."""
        timeout_ms = metadata.timeout_ms if metadata.has_explicit_timeout else self.settings.TIMEOUT_MS
        return self.development_mode.get_timeout(timeout_ms)

    async def _invoke(self, context: ExecutionContext) -> Any:
        handler = context.function.handler
        try:
            if inspect.iscoroutinefunction(handler):
                return await handler(context.event, context)
            result = await asyncio.to_thread(handler, context.event, context)
            if inspect.isawaitable(result):
                result = await result
            return result
        except StepInterrupt as interrupt:
            return StepSuspension(
                function_id=context.function_id,
                run_id=context.run_id,
                attempt=context.attempt,
                pending=interrupt.step,
                history=context.step.history,
            )

    def _abandon(self, context: ExecutionContext, task: asyncio.Future, cancel: bool) -> None:
        context.cancel_event.set()
        context.step.seal()
        if task.done():
            return
        self._abandoned.add(task)
        task.add_done_callback(partial(self._log_abandoned_outcome, context))
        if cancel:
            task.cancel()

    def _log_abandoned_outcome(self, context: ExecutionContext, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            logger.info(f"Abandoned run {context.execution_id} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Abandoned run {context.execution_id} failed after timeout: {error}")
        else:
            logger.info(f"Abandoned run {context.execution_id} finished after timeout; result discarded")

    def get_active_executions(self) -> List[ExecutionContext]:
        return list(self._active.values())

    def get_execution_stats(self) -> Dict[str, int]:
        return {
            "active_executions": len(self._active),
            "abandoned_tasks": len(self._abandoned),
            "started": self._stats["started"],
            "completed": self._stats["completed"],
            "failed": self._stats["failed"],
            "suspended": self._stats["suspended"],
            "timed_out": self._stats["timed_out"],
        }

    def clear(self) -> None:
        """Forget tracked contexts and counters (tests)."""
        self._active.clear()
        self._stats.clear()
