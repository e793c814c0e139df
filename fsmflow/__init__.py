"""fsmflow - An embeddable async finite state machine with guards and history.

Quick Start:
    from fsmflow import FiniteStateMachine, GuardRejection, is_error

    async def unlocked(*args):
        if not door.unlocked:
            return GuardRejection("door is locked")

    fsm = FiniteStateMachine()
    fsm.define_state("closed")
    fsm.define_state("open", {"enter": creak, "knock": answer})
    fsm.define_transition("closed", "open", unlocked)

    await fsm.initial_state("closed")
    result = await fsm.enter_state("open")
    if is_error(result):
        ...  # still closed

    await fsm.raise_event("knock")
    await fsm.exit_state()  # back to "closed"

For config-driven usage:
    from fsmflow import ConfigLoader, FiniteStateMachine

    config = ConfigLoader.load_machine_config("machine.yaml")
    fsm = FiniteStateMachine.from_config(config)
"""

from .config_loader import ConfigLoader, MachineConfig, TransitionConfig
from .errors import (
    ConfigError,
    FsmFlowError,
    GuardRejection,
    ImportError_,
    NoHistoryError,
    StateError,
    StateNotFoundError,
    TransitionRefused,
    UndefinedStateError,
    is_error,
)
from .state_machine import (
    AFTER_ALL,
    BEFORE_ALL,
    FiniteStateMachine,
    HistoryEntry,
    StateDefinition,
)

__all__ = [
    # Core
    "FiniteStateMachine",
    "StateDefinition",
    "HistoryEntry",
    "BEFORE_ALL",
    "AFTER_ALL",
    # Config
    "ConfigLoader",
    "MachineConfig",
    "TransitionConfig",
    # Errors (raised)
    "FsmFlowError",
    "StateError",
    "StateNotFoundError",
    "NoHistoryError",
    "ConfigError",
    "ImportError_",
    # Errors (returned as transition results)
    "TransitionRefused",
    "GuardRejection",
    "UndefinedStateError",
    "is_error",
]

__version__ = "0.1.0"
