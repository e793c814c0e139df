"""Async finite state machine with guarded transitions and a history stack.

All transitions requested through enter_state() and exit_state() go through a
single FIFO queue drained by one asyncio task, so only one exit/enter sequence
is ever mid-flight. A callback of the running request may call
enter_state() or exit_state() itself: the new request is queued and the call
returns None at once. initial_state() and raise_event() run outside that queue.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .errors import is_error, no_history, state_not_found, undefined_states
from .logger import get_logger, set_correlation_id

if TYPE_CHECKING:
    from .config_loader import MachineConfig

Callback = Callable[..., Awaitable[Any]]

BEFORE_ALL = "beforeAll"
AFTER_ALL = "afterAll"

FORWARD = "forward"
BACKWARD = "backward"


@dataclass
class StateDefinition:
    """Callbacks for one state. Only keys that are present get dispatched."""

    enter: Optional[Callback] = None
    exit: Optional[Callback] = None
    events: Dict[str, Callback] = field(default_factory=dict)

    def handler(self, event_name: str) -> Optional[Callback]:
        return self.events.get(event_name)

    @classmethod
    def coerce(cls, value: Union["StateDefinition", Mapping[str, Any], None]) -> "StateDefinition":
        """Build a definition from None, a definition, or a name -> callback mapping.

        In a mapping, "enter" and "exit" fill the lifecycle slots, an optional
        "events" mapping is merged in, and every other key becomes an event.
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(
                f"State definition must be a StateDefinition or mapping, got {type(value).__name__}"
            )

        callbacks = dict(value)
        enter = callbacks.pop("enter", None)
        exit_ = callbacks.pop("exit", None)
        events = dict(callbacks.pop("events", None) or {})
        events.update(callbacks)
        return cls(enter=enter, exit=exit_, events=events)


@dataclass(frozen=True)
class HistoryEntry:
    name: str
    args: Tuple[Any, ...] = ()


@dataclass
class TransitionRequest:
    target: str
    direction: str
    args: Tuple[Any, ...]
    future: "asyncio.Future[Any]"
    entry: Optional[HistoryEntry] = None  # set when a backward request runs
    committed: bool = False
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])


class FiniteStateMachine:
    """Named states, guarded transitions, serialized async state changes.

    Example:
        fsm = FiniteStateMachine()
        fsm.define_state("idle")
        fsm.define_state("busy", {"enter": start_work, "exit": stop_work})
        fsm.define_transition("idle", "busy", has_capacity)

        await fsm.initial_state("idle")
        result = await fsm.enter_state("busy", job)
        if is_error(result):
            ...  # guard said no, still idle
    """

    def __init__(
        self,
        states: Optional[Mapping[str, Any]] = None,
        *,
        initial: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
        logger: Any = None,
        debug: bool = False,
    ) -> None:
        self.logger = logger or get_logger("fsmflow")
        self._states: Dict[str, StateDefinition] = {}
        self._before_all: Optional[StateDefinition] = None
        self._after_all: Optional[StateDefinition] = None
        self._transitions: Dict[Tuple[str, str], Callback] = {}

        self._initial_state_name = ""
        self._current_state_name = ""
        self._history: List[HistoryEntry] = []

        self._queue: Deque[TransitionRequest] = deque()
        self._drain_task: Optional["asyncio.Task[None]"] = None

        self._data: Dict[str, Any] = dict(data or {})
        self._debug = debug

        for name, definition in (states or {}).items():
            self.define_state(name, definition)

        # Synchronous counterpart of initial_state(); the enter callback is not run.
        if initial is not None:
            if initial not in self._states:
                raise state_not_found(initial, self.state_names())
            self._initial_state_name = initial
            self._current_state_name = initial

    @classmethod
    def from_config(cls, config: "MachineConfig", logger: Any = None) -> "FiniteStateMachine":
        fsm = cls(
            config.states,
            initial=config.initial_state,
            data=config.data,
            logger=logger,
            debug=config.debug,
        )
        for t in config.transitions:
            fsm.define_transition(t.from_state, t.to_state, t.guard)
        return fsm

    # --- registries ---

    def define_state(self, name: str, definition: Any = None) -> "FiniteStateMachine":
        """Register or overwrite a state. The first state defined becomes the initial state."""
        state = StateDefinition.coerce(definition)

        if name == BEFORE_ALL:
            self._before_all = state
            return self
        if name == AFTER_ALL:
            self._after_all = state
            return self

        self._states[name] = state
        if not self._initial_state_name:
            self._initial_state_name = name
        return self

    def define_transition(
        self, from_state: str, to_state: str, guard: Optional[Callback]
    ) -> Union["FiniteStateMachine", bool]:
        """Register a guard for from_state -> to_state.

        The guard is awaited with the transition's arguments. If it returns an
        exception instance the transition is cancelled and that value becomes
        the result of the request.
        """
        if not (from_state and to_state and guard):
            return False

        if from_state not in self._states:
            self.logger.warning('fromState "%s" specified is not defined as a state!', from_state)
        if to_state not in self._states:
            self.logger.warning('toState "%s" specified is not defined as a state!', to_state)

        self._transitions[(from_state, to_state)] = guard
        return self

    def get_state(self, name: str) -> Optional[StateDefinition]:
        if name == BEFORE_ALL:
            return self._before_all
        if name == AFTER_ALL:
            return self._after_all
        return self._states.get(name)

    def state_names(self) -> list[str]:
        return sorted(self._states.keys())

    def transitions(self) -> list[Tuple[str, str]]:
        return list(self._transitions.keys())

    # --- transitions ---

    async def initial_state(self, name: str, *args: Any) -> Any:
        """Jump straight to ``name`` without guards, clearing all history."""
        state = self._states.get(name)
        if state is None:
            raise state_not_found(name, self.state_names())

        self._initial_state_name = name
        self._current_state_name = name
        self._history = []

        self._trace("Entering initial state: %s", name)
        if state.enter is not None:
            self._trace('Calling initial state "%s" enter() function', name)
            return await state.enter(*args)
        return None

    async def enter_state(self, name: str, *args: Any) -> Any:
        self._trace("Asked to enter state: %s", name)
        return await self._submit(name, FORWARD, args)

    async def exit_state(self, *args: Any) -> Any:
        """Go back to the most recent history entry.

        The entry is popped when the request runs, so requests queued ahead
        of this one decide where it goes. The entry's stored arguments are
        reused unless new ones are passed.
        """
        if not self._history:
            raise no_history(self._current_state_name)

        self._trace("Asked to exit to previous state")
        return await self._submit("", BACKWARD, args)

    @property
    def is_transitioning(self) -> bool:
        return self._drain_task is not None

    async def _submit(
        self,
        target: str,
        direction: str,
        args: Tuple[Any, ...],
    ) -> Any:
        loop = asyncio.get_running_loop()
        request = TransitionRequest(
            target=target,
            direction=direction,
            args=tuple(args),
            future=loop.create_future(),
        )
        request.future.add_done_callback(_consume_exception)
        self._queue.append(request)

        if self._drain_task is not None:
            if asyncio.current_task() is self._drain_task:
                # Called from a callback of the running request: it runs next.
                self._trace("%s(%s) queued from inside a transition", direction, target)
                return None
            self._trace("%s(%s) queued behind running drain", direction, target)
            return await asyncio.shield(request.future)

        self._trace("Processing transition queue from %s(%s)", direction, target)
        drain = self._drain_task = loop.create_task(self._drain())
        # The caller that started the drain resolves once the whole queue is empty.
        await asyncio.shield(drain)
        return await asyncio.shield(request.future)

    async def _drain(self) -> None:
        try:
            while self._queue:
                request = self._queue.popleft()
                set_correlation_id(request.request_id)
                self._trace("Calling transition function...")
                try:
                    result = await self._run(request)
                except asyncio.CancelledError:
                    request.future.cancel()
                    while self._queue:
                        self._queue.popleft().future.cancel()
                    raise
                except Exception as e:
                    self._trace("Transition to %s raised: %s", request.target, e)
                    request.future.set_exception(e)
                else:
                    request.future.set_result(result)
                self._trace("Checking for further transitions...")
            self._trace("No further transitions, returning")
        finally:
            self._drain_task = None

    async def _run(self, request: TransitionRequest) -> Any:
        if request.direction == BACKWARD:
            if not self._history:
                raise no_history(self._current_state_name)
            request.entry = self._history.pop()
            request.target = request.entry.name
            request.args = request.args or request.entry.args

        try:
            return await self._check_transition(request)
        finally:
            # A refused backward transition puts its history entry back.
            if request.direction == BACKWARD and not request.committed:
                self._history.append(request.entry)

    async def _check_transition(self, request: TransitionRequest) -> Any:
        current, target = self._current_state_name, request.target

        if target == current:
            self._trace('Already in "%s" state.', target)
            return None

        guard = self._transitions.get((current, target))
        if guard is None:
            self._trace("No check required, transitioning from %s to %s...", current, target)
            return await self._transition_states(request)

        self._trace("Checking transition from %s to %s...", current, target)
        verdict = await guard(*request.args)
        if is_error(verdict):
            self._trace('Cannot transition from "%s" to "%s"', current, target)
            return verdict

        self._trace('Transition allowed from "%s" to "%s"', current, target)
        return await self._transition_states(request)

    async def _transition_states(self, request: TransitionRequest) -> Any:
        current_name, target = self._current_state_name, request.target
        current = self._states.get(current_name)
        new = self._states.get(target)

        if current is None:
            self._trace("No state defined called %s, cannot change states!", current_name)
        if new is None:
            self._trace("No state defined called %s, cannot change states!", target)
        if current is None or new is None:
            return undefined_states(current_name, target)

        if current.exit is not None:
            self._trace("Exiting state: %s", current_name)
            exit_result = await current.exit(*request.args)
            if is_error(exit_result):
                self._trace("Error exiting state: %s", current_name)
                return exit_result
        else:
            self._trace("Current state does not have an exit() function")

        if request.direction == FORWARD:
            self._history.append(HistoryEntry(current_name, request.args))

        self._current_state_name = target
        request.committed = True

        if target == self._initial_state_name:
            self._history = []

        self._trace("Entering state: %s", target)
        if new.enter is not None:
            return await new.enter(*request.args)
        return None

    # --- events ---

    async def raise_event(self, event_name: str, *args: Any) -> Any:
        """Run beforeAll, current state and afterAll handlers for ``event_name``.

        Only the current state's handler result is returned.
        """
        self._trace("Raising event %s in state %s", event_name, self._current_state_name)
        await self._call_hook(self._before_all, event_name, args)

        result = None
        current = self._states.get(self._current_state_name)
        handler = current.handler(event_name) if current is not None else None
        if handler is not None:
            result = await handler(*args)

        await self._call_hook(self._after_all, event_name, args)
        return result

    async def _call_hook(
        self, hook: Optional[StateDefinition], event_name: str, args: Tuple[Any, ...]
    ) -> None:
        if hook is None:
            return
        handler = hook.handler(event_name)
        if handler is not None:
            await handler(*args)

    # --- introspection ---

    def current_state_name(self) -> str:
        return self._current_state_name

    def initial_state_name(self) -> str:
        return self._initial_state_name

    def previous_states(self) -> List[HistoryEntry]:
        return list(self._history)

    def previous_state(self) -> Optional[HistoryEntry]:
        return self._history[-1] if self._history else None

    def previous_state_name(self) -> Optional[str]:
        entry = self.previous_state()
        return entry.name if entry else None

    def get_data(self, key: str) -> Any:
        return self._data.get(key)

    def set_data(self, key: str, value: Any) -> None:
        self._data[key] = value

    def debug(self, flag: Optional[bool] = None) -> Union[bool, "FiniteStateMachine"]:
        """Get the debug flag, or set it and return self for chaining."""
        if flag is None:
            return self._debug
        self._debug = bool(flag)
        return self

    def _trace(self, msg: str, *args: Any) -> None:
        if self._debug:
            self.logger.info(msg, *args)


def _consume_exception(future: "asyncio.Future[Any]") -> None:
    # Callers that were cancelled or chained from a callback never await their future.
    if not future.cancelled():
        future.exception()
