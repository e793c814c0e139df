from __future__ import annotations

import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def door_config_yaml(tmp_path: Path) -> Path:
    p = tmp_path / "door.yaml"
    p.write_text(
        textwrap.dedent(
            """\
            name: door
            data:
              colour: red
            states:
              closed:
                events:
                  knock: "fixture_callbacks:knock"
              open:
                enter: "fixture_callbacks:on_enter_open"
                exit: "fixture_callbacks:on_exit_open"
              locked: {}
              beforeAll:
                events:
                  knock: "fixture_callbacks:log_knock"
            transitions:
              - from: closed
                to: open
                guard: "fixture_callbacks:always_allow"
              - from: closed
                to: locked
                guard: "fixture_callbacks:never_allow"
            """
        ),
        encoding="utf-8",
    )
    return p
