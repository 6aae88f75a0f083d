import asyncio
import os
from collections.abc import Coroutine
from collections.abc import Iterator
from contextlib import contextmanager

# The event loop only keeps weak references to tasks.
_background_tasks: set[asyncio.Task] = set()


def name_task(task: asyncio.Task, name: str, client: tuple | None = None) -> None:
    """
    Name a task and attach the client address it serves.
    Under pytest, the name also records the test that spawned the task.
    """
    if test := os.environ.get("PYTEST_CURRENT_TEST"):
        name = f"{name} [created in {test}]"
    task.set_name(name)
    if client:
        task.client = client  # type: ignore


def create_task(
    coro: Coroutine,
    *,
    name: str,
    keep_ref: bool,
    client: tuple | None = None,
) -> asyncio.Task:
    """
    Like `asyncio.create_task`, but named. Pass `keep_ref=True` for tasks
    nobody else holds on to, so that they are not garbage collected
    mid-execution.
    """
    task = asyncio.create_task(coro)
    name_task(task, name, client)
    if keep_ref and not task.done():
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
    return task


def name_current_task(name: str, client: tuple | None = None) -> None:
    task = asyncio.current_task()
    assert task
    name_task(task, name, client)


@contextmanager
def install_exception_handler(handler) -> Iterator[None]:
    """Handle unhandled errors of the running loop with `handler` until the block exits."""
    loop = asyncio.get_running_loop()
    previous = loop.get_exception_handler()
    loop.set_exception_handler(handler)
    try:
        yield
    finally:
        loop.set_exception_handler(previous)
