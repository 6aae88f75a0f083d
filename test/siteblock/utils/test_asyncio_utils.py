import asyncio

import pytest

from siteblock.utils import asyncio_utils


async def ttask():
    asyncio_utils.name_current_task("newname", ("127.0.0.1", 42))
    await asyncio.sleep(999)


async def test_create_task():
    t = asyncio_utils.create_task(
        ttask(),
        name="task",
        keep_ref=True,
        client=("127.0.0.1", 42),
    )
    assert t in asyncio_utils._background_tasks
    assert t.get_name().startswith("task [created in ")
    await asyncio.sleep(0)
    assert t.get_name().startswith("newname")
    assert t.client == ("127.0.0.1", 42)
    t.cancel()
    with pytest.raises(asyncio.CancelledError):
        await t
    await asyncio.sleep(0)
    assert t not in asyncio_utils._background_tasks


async def test_create_task_without_ref():
    t = asyncio_utils.create_task(asyncio.sleep(0), name="sleep", keep_ref=False)
    assert t not in asyncio_utils._background_tasks
    assert t.get_name().startswith("sleep")
    assert not hasattr(t, "client")
    await t


async def test_install_exception_handler():
    loop = asyncio.get_running_loop()

    def handler(loop, context):
        pass

    previous = loop.get_exception_handler()
    with asyncio_utils.install_exception_handler(handler):
        assert loop.get_exception_handler() is handler
    assert loop.get_exception_handler() is previous
