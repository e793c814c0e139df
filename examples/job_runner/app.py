#!/usr/bin/env python
"""
Embedded fsmflow Application Example

Demonstrates:
- Loading a machine definition from YAML with dotted-path callbacks
- Guards refusing a transition (returned as a value, not raised)
- Raising events with a beforeAll hook
- Going back through history with exit_state()

Run: python app.py
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Add the example directory to path so config can find the callbacks module
sys.path.insert(0, str(Path(__file__).parent))

import callbacks  # noqa: E402

from fsmflow import ConfigLoader, FiniteStateMachine, is_error  # noqa: E402


async def main() -> None:
    config = ConfigLoader.load_machine_config(Path(__file__).parent / "machine.yaml")
    fsm = FiniteStateMachine.from_config(config)
    await fsm.initial_state("idle")

    print(await fsm.enter_state("queued", "job-1"))
    print(await fsm.enter_state("running", "job-1"))
    print(await fsm.raise_event("progress"))

    # Step back to queued; the history remembers job-1's arguments.
    await fsm.exit_state()
    print("after exit:", fsm.current_state_name())

    # Pretend another worker grabbed the only slot.
    callbacks.running.append("job-2")
    result = await fsm.enter_state("running", "job-1")
    if is_error(result):
        print("refused:", result.what)

    callbacks.running.remove("job-2")
    await fsm.enter_state("running", "job-1")
    await fsm.enter_state("done", "job-1")
    print("history:", [entry.name for entry in fsm.previous_states()])

    await fsm.enter_state("idle")
    print("back to idle, history:", fsm.previous_states())


if __name__ == "__main__":
    asyncio.run(main())
