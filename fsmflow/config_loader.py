from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError, ErrorContext, config_missing_field, config_wrong_type
from .imports import load_callback
from .state_machine import StateDefinition


@dataclass(frozen=True)
class TransitionConfig:
    from_state: str
    to_state: str
    guard: Any


@dataclass(frozen=True)
class MachineConfig:
    name: str
    states: Dict[str, StateDefinition]
    transitions: List[TransitionConfig] = field(default_factory=list)
    initial_state: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    debug: bool = False


class ConfigLoader:
    @staticmethod
    def load_yaml(path: str | Path) -> Dict[str, Any]:
        p = Path(path)
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise config_wrong_type(
                field="(root)",
                expected="mapping/object",
                got=type(data).__name__,
                path=str(p),
            )
        return data

    @staticmethod
    def _load_state(name: str, raw: Any, path_str: str) -> StateDefinition:
        """Resolve one `states:` entry into a StateDefinition."""
        if raw is None:
            return StateDefinition()
        if not isinstance(raw, dict):
            raise config_wrong_type(f"states.{name}", "mapping", type(raw).__name__, path_str)

        events = raw.get("events") or {}
        if not isinstance(events, dict):
            raise config_wrong_type(
                f"states.{name}.events", "mapping", type(events).__name__, path_str
            )

        unknown = set(raw) - {"enter", "exit", "events"}
        if unknown:
            ctx = ErrorContext()
            ctx.add("config_path", path_str)
            ctx.add("state", name)
            ctx.add("unknown_keys", sorted(unknown))
            raise ConfigError(
                f"Unknown keys in states['{name}']: {', '.join(sorted(unknown))}",
                why="A state entry may only contain 'enter', 'exit' and 'events'.",
                fix="Move custom event handlers under 'events:'.",
                context=ctx,
            )

        def resolve(field_name: str, dotted: Any) -> Any:
            if dotted is None:
                return None
            if not isinstance(dotted, str):
                raise config_wrong_type(field_name, "string", type(dotted).__name__, path_str)
            return load_callback(dotted)

        return StateDefinition(
            enter=resolve(f"states.{name}.enter", raw.get("enter")),
            exit=resolve(f"states.{name}.exit", raw.get("exit")),
            events={
                str(evt): resolve(f"states.{name}.events.{evt}", dotted)
                for evt, dotted in events.items()
            },
        )

    @staticmethod
    def _load_transition(index: int, raw: Any, path_str: str) -> TransitionConfig:
        field_name = f"transitions[{index}]"
        if not isinstance(raw, dict):
            raise config_wrong_type(field_name, "mapping", type(raw).__name__, path_str)

        for key in ("from", "to", "guard"):
            value = raw.get(key)
            if not value:
                raise config_missing_field(f"{field_name}.{key}", path_str)
            if not isinstance(value, str):
                raise config_wrong_type(
                    f"{field_name}.{key}", "string", type(value).__name__, path_str
                )

        return TransitionConfig(
            from_state=raw["from"],
            to_state=raw["to"],
            guard=load_callback(raw["guard"]),
        )

    @staticmethod
    def load_machine_config(path: str | Path) -> MachineConfig:
        path_str = str(path)
        data = ConfigLoader.load_yaml(path)

        name = data.get("name")
        if not name or not isinstance(name, str):
            raise config_missing_field("name", path_str)

        raw_states = data.get("states")
        if not raw_states:
            raise config_missing_field("states", path_str)
        if not isinstance(raw_states, dict):
            raise config_wrong_type("states", "mapping", type(raw_states).__name__, path_str)

        # Order is preserved: the first state listed is the default initial state.
        states = {
            str(state_name): ConfigLoader._load_state(str(state_name), raw, path_str)
            for state_name, raw in raw_states.items()
        }

        raw_transitions = data.get("transitions") or []
        if not isinstance(raw_transitions, list):
            raise config_wrong_type(
                "transitions", "list", type(raw_transitions).__name__, path_str
            )
        transitions = [
            ConfigLoader._load_transition(i, raw, path_str)
            for i, raw in enumerate(raw_transitions)
        ]

        initial_state = data.get("initial_state")
        if initial_state is not None and not isinstance(initial_state, str):
            raise config_wrong_type(
                "initial_state", "string", type(initial_state).__name__, path_str
            )

        seed = data.get("data") or {}
        if not isinstance(seed, dict):
            raise config_wrong_type("data", "mapping", type(seed).__name__, path_str)

        debug = data.get("debug", False)
        if not isinstance(debug, bool):
            raise config_wrong_type("debug", "boolean", type(debug).__name__, path_str)

        return MachineConfig(
            name=name,
            states=states,
            transitions=transitions,
            initial_state=initial_state,
            data=seed,
            debug=debug,
        )
