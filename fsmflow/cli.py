from __future__ import annotations

import argparse
import asyncio
import logging
import os

from .config_loader import ConfigLoader, MachineConfig
from .errors import StateError, is_error
from .logger import get_logger
from .state_machine import FiniteStateMachine


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="fsmflow CLI")
    sub = p.add_subparsers(dest="command", required=True)

    chk = sub.add_parser("check", help="Load a machine definition and describe it.")
    chk.add_argument("--config", type=str, default=None, help="Path to machine YAML (or use FSMFLOW_CONFIG).")

    walk = sub.add_parser("walk", help="Run a sequence of transitions and events.")
    walk.add_argument("--config", type=str, default=None, help="Path to machine YAML (or use FSMFLOW_CONFIG).")
    walk.add_argument("--debug", action="store_true", help="Trace every queue/transition step.")
    walk.add_argument(
        "steps",
        nargs="*",
        help="State name to enter, '-' to exit to the previous state, '!event' to raise an event.",
    )

    return p


def _resolve_config_path(cli_value: str | None) -> str:
    path = cli_value or os.getenv("FSMFLOW_CONFIG")
    if not path:
        raise SystemExit("No config provided. Use --config or set FSMFLOW_CONFIG.")
    return path


def _load(cli_value: str | None) -> MachineConfig:
    return ConfigLoader.load_machine_config(_resolve_config_path(cli_value))


async def cmd_check(args) -> None:
    cfg = _load(args.config)
    logger = get_logger("fsmflow")
    fsm = FiniteStateMachine.from_config(cfg, logger=logger)

    print(f"machine: {cfg.name}")
    print(f"initial: {fsm.initial_state_name()}")
    print("states:")
    for name in fsm.state_names():
        print(f"  {name}")
    print("transitions:")
    for from_state, to_state in fsm.transitions():
        print(f"  {from_state} -> {to_state}")


async def cmd_walk(args) -> None:
    cfg = _load(args.config)
    logger = get_logger("fsmflow", logging.INFO)
    fsm = FiniteStateMachine.from_config(cfg, logger=logger)
    if args.debug:
        fsm.debug(True)

    try:
        await fsm.initial_state(fsm.initial_state_name())
        for step in args.steps:
            if step == "-":
                result = await fsm.exit_state()
            elif step.startswith("!"):
                result = await fsm.raise_event(step[1:])
            else:
                result = await fsm.enter_state(step)

            if is_error(result):
                print(f"{step}: refused: {getattr(result, 'what', result)}")
            elif result is not None:
                print(f"{step}: {result!r}")
    except StateError as e:
        raise SystemExit(e.what) from None

    print(f"current: {fsm.current_state_name()}")
    print(f"history: {[entry.name for entry in fsm.previous_states()]}")


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "check":
        asyncio.run(cmd_check(args))
    elif args.command == "walk":
        asyncio.run(cmd_walk(args))
    else:
        raise SystemExit(2)


if __name__ == "__main__":
    main()
