"""fsmflow error types with structured, actionable messages.

Error Contract:
Every raised error includes:
- What happened (one sentence, plain English)
- Why (root cause, not stack trace)
- Fix (specific, actionable)
- Context (relevant keys/paths, trimmed)

Two families live here. Subclasses of StateError, ConfigError and
ImportError_ are raised. Subclasses of TransitionRefused are *returned* by
the engine as the result of a refused transition, never raised by it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ErrorContext:
    """Structured context for error messages."""

    items: Dict[str, Any] = field(default_factory=dict)

    def add(self, key: str, value: Any) -> "ErrorContext":
        """Add a context item, returning self for chaining."""
        self.items[key] = value
        return self

    def format(self) -> str:
        """Format context as indented key=value lines."""
        if not self.items:
            return ""
        lines = [f"  {k}={v!r}" for k, v in self.items.items()]
        return "\n".join(lines)


class FsmFlowError(Exception):
    """Base exception for fsmflow with structured error messages.

    Attributes:
        what: One-sentence description of what happened
        why: Root cause explanation
        fix: Actionable fix suggestion
        context: Relevant debugging context
    """

    def __init__(
        self,
        what: str,
        *,
        why: Optional[str] = None,
        fix: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        self.what = what
        self.why = why
        self.fix = fix
        self.context = context or ErrorContext()

        message = self._format_message()
        super().__init__(message)

    def _format_message(self) -> str:
        lines = [self.what]

        if self.why:
            lines.append(f"\nWhy: {self.why}")

        if self.fix:
            lines.append(f"\nFix: {self.fix}")

        ctx = self.context.format()
        if ctx:
            lines.append(f"\nContext:\n{ctx}")

        return "".join(lines)


class StateError(FsmFlowError):
    """The state machine API was used incorrectly."""

    pass


class StateNotFoundError(StateError):
    """A state name was required to be registered but is not."""

    pass


class NoHistoryError(StateError):
    """exit_state() was called with nothing to go back to."""

    pass


class TransitionRefused(FsmFlowError):
    """A transition did not happen. Returned as a value, not raised."""

    pass


class GuardRejection(TransitionRefused):
    """Returned by a guard to cancel its transition."""

    def __init__(self, what: str = "Transition rejected by guard", **kwargs: Any):
        super().__init__(what, **kwargs)


class UndefinedStateError(TransitionRefused):
    """One side of a transition has no registered definition."""

    pass


class ConfigError(FsmFlowError):
    """Error loading or validating configuration."""

    pass


class ImportError_(FsmFlowError):
    """Error importing a dotted path symbol."""

    pass


def is_error(value: Any) -> bool:
    """Return True if a callback result should be treated as a refusal."""
    return isinstance(value, Exception)


# --- Helper constructors for common errors ---


def _valid_names(names: list) -> tuple[list, str]:
    # Show up to 5 names to avoid overwhelming output
    shown = names[:5]
    more = len(names) - 5 if len(names) > 5 else 0

    valid_str = ", ".join(shown) or "(none defined)"
    if more > 0:
        valid_str += f" (+{more} more)"
    return shown, valid_str


def state_not_found(name: str, valid_states: list) -> StateNotFoundError:
    """State name not found in registry."""
    shown, valid_str = _valid_names(valid_states)

    ctx = ErrorContext()
    ctx.add("requested_state", name)
    ctx.add("valid_states", shown)

    return StateNotFoundError(
        f'Cannot set initial state "{name}" because it does not exist!',
        why="The requested state is not registered with this machine.",
        fix=f"Use one of the defined states: {valid_str}\n"
        "Or define it first with fsm.define_state(name, definition)",
        context=ctx,
    )


def no_history(current_state: str) -> NoHistoryError:
    """exit_state() with an empty history stack."""
    ctx = ErrorContext()
    ctx.add("current_state", current_state)

    return NoHistoryError(
        "No previous state to transition to",
        why="The history stack is empty. It is cleared whenever the machine "
        "enters its initial state.",
        fix="Check fsm.previous_states() before calling exit_state(), "
        "or use enter_state(name) to move explicitly.",
        context=ctx,
    )


def undefined_states(current_state: str, target_state: str) -> UndefinedStateError:
    """Either endpoint of a transition is not defined."""
    ctx = ErrorContext()
    ctx.add("from_state", current_state)
    ctx.add("to_state", target_state)

    return UndefinedStateError(
        f'Cannot change states from "{current_state}" to "{target_state}" '
        "states because at least one is not defined.",
        why="Transitions can only run between registered states.",
        fix="Define both states with fsm.define_state() before entering them.",
        context=ctx,
    )


def config_missing_field(field: str, path: Optional[str] = None) -> ConfigError:
    """Config is missing a required field."""
    ctx = ErrorContext()
    if path:
        ctx.add("config_path", path)
    ctx.add("field", field)

    return ConfigError(
        f"Config missing required field: '{field}'",
        why=f"The '{field}' field is required but was not found in the config.",
        fix=f"Add '{field}' to your config file.",
        context=ctx,
    )


def config_wrong_type(
    field: str, expected: str, got: str, path: Optional[str] = None
) -> ConfigError:
    """Config field has wrong type."""
    ctx = ErrorContext()
    if path:
        ctx.add("config_path", path)
    ctx.add("field", field)
    ctx.add("expected", expected)
    ctx.add("got", got)

    return ConfigError(
        f"Config field '{field}' has wrong type",
        why=f"Expected {expected}, but got {got}.",
        fix=f"Change '{field}' to be a {expected}.",
        context=ctx,
    )


def import_invalid_format(dotted_path: str) -> ImportError_:
    """Dotted path has invalid format."""
    ctx = ErrorContext()
    ctx.add("dotted_path", dotted_path)

    return ImportError_(
        f"Invalid dotted path format: '{dotted_path}'",
        why="Dotted paths must be in 'module:function' format.",
        fix="Use the format 'mypackage.module:my_callback' "
        "(colon separates module from function).",
        context=ctx,
    )


def import_module_not_found(module: str, dotted_path: str) -> ImportError_:
    """Module in dotted path not found."""
    ctx = ErrorContext()
    ctx.add("module", module)
    ctx.add("dotted_path", dotted_path)

    return ImportError_(
        f"Module not found: '{module}'",
        why="The module specified in the dotted path could not be imported.",
        fix="Check that the module exists and is on your Python path.\n"
        "You may need to install the package or add its directory to sys.path.",
        context=ctx,
    )


def import_symbol_not_found(module: str, symbol: str, dotted_path: str) -> ImportError_:
    """Symbol not found in module."""
    ctx = ErrorContext()
    ctx.add("module", module)
    ctx.add("symbol", symbol)
    ctx.add("dotted_path", dotted_path)

    return ImportError_(
        f"Symbol '{symbol}' not found in module '{module}'",
        why="The module was imported successfully, but doesn't contain that symbol.",
        fix="Check the spelling of the function name.\n"
        "Make sure it's defined at the top level of the module.",
        context=ctx,
    )


def import_not_callable(dotted_path: str, got_type: str) -> ImportError_:
    """Imported symbol cannot be used as a callback."""
    ctx = ErrorContext()
    ctx.add("dotted_path", dotted_path)
    ctx.add("got_type", got_type)

    return ImportError_(
        f"Not callable: '{dotted_path}'",
        why=f"Expected an async function, but got {got_type}.",
        fix="Point the config at a coroutine function:\n"
        "  async def on_enter(*args): ...",
        context=ctx,
    )
