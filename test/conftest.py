from __future__ import annotations

import asyncio

import pytest


class AsyncLogCaptureFixture:
    """`caplog` for coroutines: wait until a message shows up in the log."""

    def __init__(self, caplog: pytest.LogCaptureFixture):
        self.caplog = caplog

    def set_level(self, level: int | str, logger: str | None = None) -> None:
        self.caplog.set_level(level, logger)

    async def await_log(self, text: str, timeout: float = 2) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        await asyncio.sleep(0)
        while text not in self.caplog.text:
            if loop.time() > deadline:
                raise AssertionError(
                    f"Did not find {text!r} in log:\n{self.caplog.text}"
                )
            await asyncio.sleep(0.01)


@pytest.fixture
def caplog_async(caplog):
    return AsyncLogCaptureFixture(caplog)
