"""Stream orchestrator: drives one model turn onto an outbound event stream.

Per turn the orchestrator:

- forwards text deltas from the backend as ``text`` events, unbuffered,
- emits a ``tool_call`` for every tool use in the backend's final message
  and launches each execution as its own task,
- emits each ``tool_result`` the moment its execution settles,
- waits for every launched execution (join barrier), then emits ``done``.

A backend failure emits ``error`` and closes the turn without waiting for
tools. Cancellation closes the turn immediately; abandoned executions keep
running in the background and their results are discarded.

State machine::

    IDLE -> STREAMING -> AWAITING_TOOLS -> CLOSING -> CLOSED

Transitions only move forward. ``AWAITING_TOOLS`` is skipped when nothing is
pending; ``CLOSING`` is reachable from every non-terminal state.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, assert_never

from pokechat.core.errors import InvalidTransitionError, ProviderError
from pokechat.providers.base import FinalMessage, GenerationError, TextDelta
from pokechat.routing import AutoToolRouter, ToolChoice
from pokechat.streaming.events import (
    DoneEvent,
    ErrorEvent,
    OutboundEvent,
    TextEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from pokechat.tools.base import ToolResult
from pokechat.tools.registry import UNKNOWN_TOOL_ERROR

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from pokechat.providers.base import ChatMessage, GenerationBackend, ToolUse
    from pokechat.routing import ToolChoiceStrategy
    from pokechat.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class TurnState(enum.Enum):
    """Lifecycle of one streamed turn."""

    IDLE = "idle"
    STREAMING = "streaming"
    AWAITING_TOOLS = "awaiting_tools"
    CLOSING = "closing"
    CLOSED = "closed"


_VALID_TRANSITIONS: dict[TurnState, frozenset[TurnState]] = {
    TurnState.IDLE: frozenset({TurnState.STREAMING, TurnState.CLOSING}),
    TurnState.STREAMING: frozenset({TurnState.AWAITING_TOOLS, TurnState.CLOSING}),
    TurnState.AWAITING_TOOLS: frozenset({TurnState.CLOSING}),
    TurnState.CLOSING: frozenset({TurnState.CLOSED}),
    TurnState.CLOSED: frozenset(),
}


class TurnStateMachine:
    """Forward-only turn state with a transition log."""

    def __init__(self) -> None:
        self._state = TurnState.IDLE
        self.history: list[TurnState] = [TurnState.IDLE]

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is TurnState.CLOSED

    def can_transition(self, to: TurnState) -> bool:
        return to in _VALID_TRANSITIONS[self._state]

    def transition(self, to: TurnState) -> None:
        """Move to *to*.

        Raises:
            InvalidTransitionError: If the move is backwards or not allowed.
        """
        if not self.can_transition(to):
            raise InvalidTransitionError(self._state.value, to.value)
        self._state = to
        self.history.append(to)


class CancellationToken:
    """One-shot cancellation signal threaded from the caller into a turn.

    ``cancel()`` is idempotent.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class OutboundChannel:
    """Single-writer event queue, async-iterable until closed.

    Sending after :meth:`close` is a no-op that returns False.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[OutboundEvent | None] = asyncio.Queue()
        self._closed = False
        self.discarded = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: OutboundEvent) -> bool:
        if self._closed:
            self.discarded += 1
            logger.debug("Discarded %s event sent after close", event.tag)
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[OutboundEvent]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[OutboundEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


# ── Turn data ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TurnRequest:
    """Input to one turn: validated history plus optional instructions."""

    history: Sequence[ChatMessage]
    system_instructions: str | None = None


@dataclass
class ToolInvocation:
    """Ledger entry for one requested tool call; ``result`` is set once."""

    tool_name: str
    input: Any
    call_id: str | None = None
    result: ToolResult | None = None


@dataclass
class Turn:
    """Mutable state of one running turn.

    Owned by the orchestrator; callers read ``channel`` and may trigger
    ``cancel``.
    """

    request: TurnRequest
    cancel: CancellationToken
    turn_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    machine: TurnStateMachine = field(default_factory=TurnStateMachine)
    channel: OutboundChannel = field(default_factory=OutboundChannel)
    invocations: list[ToolInvocation] = field(default_factory=list)
    pending: set[asyncio.Task[None]] = field(default_factory=set)
    error: str | None = None

    @property
    def state(self) -> TurnState:
        return self.machine.state


# ── Orchestrator ──────────────────────────────────────────────


class StreamOrchestrator:
    """Runs turns against one backend and one tool registry."""

    def __init__(
        self,
        backend: GenerationBackend,
        registry: ToolRegistry,
        router: ToolChoiceStrategy | None = None,
        *,
        system_instructions: str | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._router = router or AutoToolRouter()
        self._system_instructions = system_instructions
        # Strong references to turn runners and abandoned tool tasks.
        self._background: set[asyncio.Task[None]] = set()

    @property
    def background_tasks(self) -> int:
        """Number of turn runners and abandoned tool executions still alive."""
        return len(self._background)

    def start(
        self,
        request: TurnRequest,
        cancel: CancellationToken | None = None,
    ) -> Turn:
        """Start a turn in the background and return its handle.

        Must be called from a running event loop.
        """
        turn = Turn(request=request, cancel=cancel or CancellationToken())
        self._keep(asyncio.create_task(self._run(turn)))
        return turn

    async def stream(
        self,
        request: TurnRequest,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[OutboundEvent]:
        """Yield the turn's outbound events; ``done`` is always last.

        Closing the iterator early cancels the turn.
        """
        turn = self.start(request, cancel)
        drained = False
        try:
            async for event in turn.channel:
                yield event
            drained = True
        finally:
            if not drained:
                turn.cancel.cancel()

    # ── Internals ─────────────────────────────────────────────

    def _keep(self, task: asyncio.Task[None]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run(self, turn: Turn) -> None:
        if turn.cancel.cancelled:
            logger.info("Turn %s cancelled before start", turn.turn_id)
            self._close(turn)
            return

        turn.machine.transition(TurnState.STREAMING)
        logger.info(
            "Turn %s started (%d messages)", turn.turn_id, len(turn.request.history)
        )
        driver = asyncio.create_task(self._drive(turn))
        waiter = asyncio.create_task(turn.cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {driver, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
            if driver not in done:
                logger.info(
                    "Turn %s cancelled in state %s", turn.turn_id, turn.state.value
                )
            elif not driver.cancelled() and driver.exception() is not None:
                exc = driver.exception()
                logger.error("Turn %s driver crashed", turn.turn_id, exc_info=exc)
                if not turn.machine.is_closed:
                    self._fail(turn, f"Internal error: {exc}")
        finally:
            waiter.cancel()
            if not driver.done():
                driver.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await driver
            self._abandon_pending(turn)
            self._close(turn)

    async def _drive(self, turn: Turn) -> None:
        request = turn.request
        system = request.system_instructions or self._system_instructions

        try:
            choice = self._resolve_choice(request.history)
            stream = self._backend.stream_turn(
                request.history,
                self._registry.manifest(),
                system=system,
                tool_choice=choice,
            )
            async with contextlib.aclosing(stream) as events:
                async for event in events:
                    if isinstance(event, TextDelta):
                        turn.channel.send(TextEvent(delta=event.text))
                    elif isinstance(event, FinalMessage):
                        for tool_use in event.tool_uses:
                            self._launch_tool(turn, tool_use)
                    elif isinstance(event, GenerationError):
                        self._fail(turn, event.message)
                        return
                    else:
                        assert_never(event)
        except ProviderError as e:
            self._fail(turn, str(e))
            return
        except Exception as e:
            logger.exception("Backend %s failed", self._backend.provider_id)
            self._fail(turn, f"Backend error: {e}")
            return

        if turn.pending:
            turn.machine.transition(TurnState.AWAITING_TOOLS)
            logger.debug(
                "Turn %s awaiting %d tool(s)", turn.turn_id, len(turn.pending)
            )
            await asyncio.wait(set(turn.pending))

    def _resolve_choice(self, history: Sequence[ChatMessage]) -> ToolChoice:
        choice = self._router.choose_tool(history)
        if choice.type == "tool" and choice.name not in self._registry:
            logger.warning("Router chose unregistered tool %s; using auto", choice.name)
            return ToolChoice.auto()
        return choice

    def _launch_tool(self, turn: Turn, tool_use: ToolUse) -> None:
        invocation = ToolInvocation(
            tool_name=tool_use.name, input=tool_use.input, call_id=tool_use.id
        )
        turn.invocations.append(invocation)
        turn.channel.send(
            ToolCallEvent(
                tool_name=invocation.tool_name,
                input=invocation.input,
                call_id=invocation.call_id,
            )
        )

        if invocation.tool_name not in self._registry:
            logger.warning("Backend requested unknown tool %s", invocation.tool_name)
            self._settle(turn, invocation, ToolResult.failure(UNKNOWN_TOOL_ERROR))
            return

        logger.info("Turn %s launching tool %s", turn.turn_id, invocation.tool_name)
        task = asyncio.create_task(self._execute(turn, invocation))
        turn.pending.add(task)
        task.add_done_callback(turn.pending.discard)

    async def _execute(self, turn: Turn, invocation: ToolInvocation) -> None:
        result = await self._registry.execute(invocation.tool_name, invocation.input)
        self._settle(turn, invocation, result)

    def _settle(self, turn: Turn, invocation: ToolInvocation, result: ToolResult) -> None:
        invocation.result = result
        sent = turn.channel.send(
            ToolResultEvent(
                tool_name=invocation.tool_name,
                ok=result.ok,
                data=result.data,
                error=result.error,
                call_id=invocation.call_id,
            )
        )
        if not sent:
            logger.info(
                "Turn %s discarded late result for %s",
                turn.turn_id,
                invocation.tool_name,
            )

    def _fail(self, turn: Turn, message: str) -> None:
        """Emit ``error`` and close the turn at once, abandoning pending tools."""
        logger.warning("Turn %s failed: %s", turn.turn_id, message)
        turn.error = message
        turn.channel.send(ErrorEvent(message=message))
        self._abandon_pending(turn)
        self._close(turn)

    def _abandon_pending(self, turn: Turn) -> None:
        if not turn.pending:
            return
        logger.info(
            "Turn %s abandoning %d pending tool(s)", turn.turn_id, len(turn.pending)
        )
        for task in list(turn.pending):
            self._keep(task)
        turn.pending.clear()

    def _close(self, turn: Turn) -> None:
        if turn.machine.is_closed:
            return
        turn.machine.transition(TurnState.CLOSING)
        turn.channel.send(DoneEvent())
        turn.channel.close()
        turn.machine.transition(TurnState.CLOSED)
        logger.info(
            "Turn %s closed (%d tool call(s), error=%s)",
            turn.turn_id,
            len(turn.invocations),
            turn.error is not None,
        )
