"""Step toolkit handed to handlers as ``context.step``.

Each step is identified by a caller-chosen id that is unique within a run.
The orchestrator owns memoization: when it re-invokes a run it supplies the
state of steps that already finished, keyed by step id, and those steps
return the stored value instead of executing again.

Operations that need the orchestrator to do something over time (sleeping,
waiting for an event, invoking another function) suspend the run by raising
``StepInterrupt``. The execution service turns that into a ``StepSuspension``
and the controller answers with a "pending" response describing the step.

Step state supplied by the orchestrator may be either the raw value or an
envelope ``{"data": ...}`` / ``{"error": ...}``.
"""

import inspect
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..core.exceptions import StepAbandonedError, StepError, StepIdConflictError
from ..schemas.events import InngestEvent
from ..schemas.webhook import PendingStepResponse, StepOpResponse
from .function_registry import get_function_config

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)\s*$")
_UNIT_MS = {"ms": 1, "s": 1000, "m": 60_000, "h": 3_600_000, "d": 86_400_000}
_ENVELOPE_KEYS = {"data", "error"}

Duration = Union[int, float, str, timedelta]


def parse_duration(duration: Duration) -> int:
    """Convert ``500``, ``timedelta`` or ``"500ms" | "30s" | "5m" | "2h" | "1d"`` to ms."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, timedelta):
        ms = duration.total_seconds() * 1000
    elif isinstance(duration, (int, float)):
        ms = duration
    elif isinstance(duration, str):
        match = _DURATION_RE.match(duration)
        if not match:
            raise ValueError(f'Invalid duration "{duration}". Use e.g. "500ms", "30s", "5m", "2h" or "1d".')
        ms = float(match.group(1)) * _UNIT_MS[match.group(2)]
    else:
        raise ValueError(f"Invalid duration: {duration!r}")

    if ms < 0:
        raise ValueError(f"Duration must not be negative: {duration!r}")
    return int(ms)


def parse_datetime(when: Union[datetime, str]) -> datetime:
    """Timezone-aware datetime from a datetime or ISO-8601 string (naive means UTC)."""
    if isinstance(when, str):
        try:
            when = datetime.fromisoformat(when.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f'Invalid ISO-8601 timestamp "{when}"') from e
    if not isinstance(when, datetime):
        raise ValueError(f"Invalid timestamp: {when!r}")
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when


@dataclass
class StepCall:
    """One step operation as observed in this run."""
    id: str
    op: str
    status: str
    opts: Dict[str, Any] = field(default_factory=dict)
    data: Any = None
    error: Optional[str] = None

    def to_response(self) -> StepOpResponse:
        return StepOpResponse(
            id=self.id,
            op=self.op,
            status=self.status,
            opts=self.opts,
            data=self.data,
            error=self.error,
        )


class StepInterrupt(BaseException):
    """Unwinds the handler when a step suspends the run.

    Derived from ``BaseException`` so that ``except Exception`` blocks in
    handler code do not swallow it.
    """

    def __init__(self, step: StepCall):
        super().__init__(f"Run suspended at step {step.id} ({step.op})")
        self.step = step


@dataclass
class StepSuspension:
    """Returned by ``execute_function`` when the run is waiting on a step."""
    function_id: str
    run_id: str
    attempt: int
    pending: StepCall
    history: List[StepCall] = field(default_factory=list)

    def to_response(self) -> PendingStepResponse:
        return PendingStepResponse(
            function_id=self.function_id,
            run_id=self.run_id,
            attempt=self.attempt,
            steps=[call.to_response() for call in self.history],
        )


class StepTools:
    """Step operations for a single run; never shared between runs."""

    def __init__(
        self,
        run_id: str,
        state: Optional[Dict[str, Any]] = None,
        event_client: Any = None,
    ):
        self.run_id = run_id
        self._state = dict(state or {})
        self._event_client = event_client
        self._calls: List[StepCall] = []
        self._used_ids: set = set()
        self._sealed = False

    @property
    def history(self) -> List[StepCall]:
        """Steps called in this run, in call order."""
        return list(self._calls)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Refuse every further step; used when the run is abandoned."""
        self._sealed = True

    async def run(self, step_id: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run ``fn`` (sync or async) as a step and return its result."""
        self._begin(step_id)
        found, data, error = self._lookup(step_id)
        if found:
            return self._replay(step_id, "run", data, error)

        try:
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self._calls.append(StepCall(id=step_id, op="run", status="failed", error=str(e)))
            raise

        self._calls.append(StepCall(id=step_id, op="run", status="completed", data=result))
        return result

    async def sleep(self, step_id: str, duration: Duration) -> None:
        """Suspend the run for ``duration``."""
        self._begin(step_id)
        duration_ms = parse_duration(duration)
        found, data, error = self._lookup(step_id)
        if found:
            self._replay(step_id, "sleep", data, error)
            return None

        until = datetime.now(timezone.utc) + timedelta(milliseconds=duration_ms)
        self._suspend(StepCall(
            id=step_id,
            op="sleep",
            status="pending",
            opts={"duration_ms": duration_ms, "until": until.isoformat()},
        ))

    async def sleep_until(self, step_id: str, when: Union[datetime, str]) -> None:
        """Suspend the run until ``when``."""
        self._begin(step_id)
        until = parse_datetime(when)
        found, data, error = self._lookup(step_id)
        if found:
            self._replay(step_id, "sleepUntil", data, error)
            return None

        self._suspend(StepCall(id=step_id, op="sleepUntil", status="pending", opts={"until": until.isoformat()}))

    async def wait_for_event(
        self,
        step_id: str,
        event: str,
        timeout: Duration,
        if_: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Wait for ``event``; returns the matched event, or None if the wait timed out."""
        self._begin(step_id)
        if not event:
            raise ValueError("wait_for_event requires an event name")
        timeout_ms = parse_duration(timeout)
        found, data, error = self._lookup(step_id)
        if found:
            return self._replay(step_id, "waitForEvent", data, error)

        opts: Dict[str, Any] = {"event": event, "timeout_ms": timeout_ms}
        if if_:
            opts["if"] = if_
        self._suspend(StepCall(id=step_id, op="waitForEvent", status="pending", opts=opts))

    async def invoke(
        self,
        step_id: str,
        function: Any,
        data: Optional[Dict[str, Any]] = None,
        timeout: Optional[Duration] = None,
    ) -> Any:
        """Invoke another function through the orchestrator and return its result."""
        self._begin(step_id)
        function_id = self._function_id(function)
        found, stored, error = self._lookup(step_id)
        if found:
            if error is not None:
                self._calls.append(StepCall(id=step_id, op="invoke", status="failed", error=error))
                raise StepError(f"Invoked function {function_id} failed: {error}", step_id)
            return self._replay(step_id, "invoke", stored, None)

        opts: Dict[str, Any] = {"function_id": function_id, "payload": {"data": data or {}}}
        if timeout is not None:
            opts["timeout_ms"] = parse_duration(timeout)
        self._suspend(StepCall(id=step_id, op="invoke", status="pending", opts=opts))

    async def send_event(
        self,
        step_id: str,
        events: Union[InngestEvent, Dict[str, Any], Sequence[Union[InngestEvent, Dict[str, Any]]]],
    ) -> List[str]:
        """Send one or more events; returns the ids assigned by the orchestrator."""
        self._begin(step_id)
        found, data, error = self._lookup(step_id)
        if found:
            result = self._replay(step_id, "sendEvent", data, error)
            return result.get("ids", []) if isinstance(result, dict) else list(result or [])

        if self._event_client is None:
            raise StepError("No event client configured for send_event", step_id)

        try:
            ids = await self._event_client.send(events)
        except Exception as e:
            self._calls.append(StepCall(id=step_id, op="sendEvent", status="failed", error=str(e)))
            raise
        self._calls.append(StepCall(id=step_id, op="sendEvent", status="completed", data={"ids": ids}))
        return ids

    # Helper methods

    def _begin(self, step_id: str) -> None:
        if not isinstance(step_id, str) or not step_id:
            raise StepError("Step id must be a non-empty string", step_id)
        if self._sealed:
            raise StepAbandonedError(step_id, self.run_id)
        if step_id in self._used_ids:
            raise StepIdConflictError(step_id)
        self._used_ids.add(step_id)

    def _lookup(self, step_id: str) -> Tuple[bool, Any, Optional[str]]:
        """(found, data, error) for orchestrator-supplied state."""
        if step_id not in self._state:
            return False, None, None
        stored = self._state[step_id]
        if isinstance(stored, dict) and stored and set(stored) <= _ENVELOPE_KEYS:
            error = stored.get("error")
            if error is not None and not isinstance(error, str):
                error = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            return True, stored.get("data"), error
        return True, stored, None

    def _replay(self, step_id: str, op: str, data: Any, error: Optional[str]) -> Any:
        if error is not None:
            self._calls.append(StepCall(id=step_id, op=op, status="failed", error=error))
            raise StepError(f"Step {step_id} failed: {error}", step_id)
        self._calls.append(StepCall(id=step_id, op=op, status="completed", data=data))
        logger.debug(f"[{self.run_id}] step {step_id} replayed from orchestrator state")
        return data

    def _suspend(self, call: StepCall) -> None:
        self._calls.append(call)
        raise StepInterrupt(call)

    @staticmethod
    def _function_id(function: Any) -> str:
        if isinstance(function, str) and function:
            return function
        config = get_function_config(function)
        if config is not None:
            return config.id
        function_id = getattr(function, "id", None)
        if isinstance(function_id, str) and function_id:
            return function_id
        raise ValueError(f"Cannot determine function id for invoke target {function!r}")
