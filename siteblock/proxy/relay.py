"""
Byte relays between a client and a server connection.

A relay is two copy loops, one per direction. Whichever loop finishes first
(EOF or error) ends the relay: both writers are closed, which makes the other
loop read EOF and finish as well.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable

from siteblock.utils import asyncio_utils

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65535


class IdleWatchdog:
    last_activity: float
    timeout: float

    def __init__(self, timeout: float, callback: Callable[[], Awaitable]):
        self.timeout = timeout
        self.callback = callback
        self.last_activity = time.time()

    def register_activity(self):
        self.last_activity = time.time()

    async def watch(self):
        try:
            while True:
                await asyncio.sleep(self.timeout - (time.time() - self.last_activity))
                if self.last_activity + self.timeout < time.time():
                    await self.callback()
                    return
        except asyncio.CancelledError:
            return


def close_writer(writer: asyncio.StreamWriter) -> None:
    try:
        writer.close()
    except OSError:
        pass


async def pipe(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    watchdog: IdleWatchdog | None = None,
) -> int:
    """
    Copy from reader to writer until EOF. Returns the number of bytes copied.

    Errors on either side propagate to the caller.
    """
    total = 0
    while True:
        data = await reader.read(CHUNK_SIZE)
        if not data:
            return total
        if writer.is_closing():
            return total
        writer.write(data)
        await writer.drain()
        total += len(data)
        if watchdog:
            watchdog.register_activity()


async def finish(
    first: asyncio.Task,
    second: asyncio.Task,
    writers: tuple[asyncio.StreamWriter, ...],
    client: tuple | None = None,
) -> None:
    """
    Wait until one of the two tasks is done, then close all writers and wait
    for the other one. Errors of both tasks are logged, not raised.
    """
    await asyncio.wait([first, second], return_when=asyncio.FIRST_COMPLETED)
    for w in writers:
        close_writer(w)
    results = await asyncio.gather(first, second, return_exceptions=True)
    for task, result in zip((first, second), results):
        if isinstance(result, asyncio.CancelledError):
            continue
        if isinstance(result, Exception):
            logger.debug(
                f"{task.get_name()} failed: {result!r}", extra={"client": client}
            )


def start_watchdog(
    idle_timeout: float,
    writers: tuple[asyncio.StreamWriter, ...],
    client: tuple | None = None,
) -> tuple[IdleWatchdog | None, asyncio.Task | None]:
    """Start an idle watchdog that closes all writers. A timeout of 0 disables it."""
    if not idle_timeout:
        return None, None

    async def on_timeout() -> None:
        logger.info("Closing connection due to inactivity.", extra={"client": client})
        for w in writers:
            close_writer(w)

    watchdog = IdleWatchdog(idle_timeout, on_timeout)
    task = asyncio_utils.create_task(
        watchdog.watch(),
        name="idle watchdog",
        keep_ref=False,
        client=client,
    )
    return watchdog, task


async def relay(
    client_reader: asyncio.StreamReader,
    client_writer: asyncio.StreamWriter,
    server_reader: asyncio.StreamReader,
    server_writer: asyncio.StreamWriter,
    *,
    idle_timeout: float = 0,
    client: tuple | None = None,
) -> None:
    """
    Relay bytes in both directions until either side closes or fails.
    Both connections are closed when this returns.
    """
    writers = (client_writer, server_writer)
    watchdog, watch = start_watchdog(idle_timeout, writers, client)
    upstream = asyncio_utils.create_task(
        pipe(client_reader, server_writer, watchdog),
        name="relay client -> server",
        keep_ref=False,
        client=client,
    )
    downstream = asyncio_utils.create_task(
        pipe(server_reader, client_writer, watchdog),
        name="relay server -> client",
        keep_ref=False,
        client=client,
    )
    try:
        await finish(upstream, downstream, writers, client)
    finally:
        if watch:
            watch.cancel()
        upstream.cancel()
        downstream.cancel()
