"""Callbacks for the job runner example.

A job moves idle -> queued -> running -> done. A guard refuses to start
running while the worker pool is full, and a wizard-style "back" step is
available through exit_state().
"""

from __future__ import annotations

import asyncio

from fsmflow import GuardRejection

MAX_RUNNING = 1
running: list[str] = []
audit: list[str] = []


def reset() -> None:
    running.clear()
    audit.clear()


async def on_queued(job_id: str = "?", *args) -> str:
    audit.append(f"queued {job_id}")
    return f"{job_id} queued"


async def has_capacity(job_id: str = "?", *args):
    if len(running) >= MAX_RUNNING:
        return GuardRejection(
            f"worker pool full, cannot run {job_id}",
            why=f"{len(running)} job(s) already running.",
        )
    return None


async def on_running(job_id: str = "?", *args) -> str:
    running.append(job_id)
    await asyncio.sleep(0.01)
    audit.append(f"running {job_id}")
    return f"{job_id} running"


async def on_leave_running(job_id: str = "?", *args) -> None:
    if job_id in running:
        running.remove(job_id)


async def progress(*args) -> str:
    return f"{len(running)} running"


async def audit_event(*args) -> None:
    audit.append("event")
