# backend/tests/unit/test_turn_executor.py

import asyncio
import pytest

from djula.models.conversation import InboundMessage
from djula.utils.turn_executor import TurnExecutor


def inbound(customer_id: str, message_id: str) -> InboundMessage:
    return InboundMessage(message_id=message_id, customer_id=customer_id, message_type="text", content=message_id)


@pytest.mark.asyncio
async def test_turns_for_one_customer_run_in_arrival_order():
    events = []

    async def handler(message):
        events.append(("start", message.message_id))
        await asyncio.sleep(0.01)
        events.append(("end", message.message_id))

    executor = TurnExecutor(handler, idle_seconds=1)
    executor.start()
    for message_id in ("m1", "m2", "m3"):
        await executor.submit(inbound("+2250701020304", message_id))
    await executor.drain()
    await executor.stop()

    assert events == [
        ("start", "m1"), ("end", "m1"),
        ("start", "m2"), ("end", "m2"),
        ("start", "m3"), ("end", "m3"),
    ]


@pytest.mark.asyncio
async def test_different_customers_run_concurrently():
    first_started = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def handler(message):
        if message.customer_id == "+2250701020304":
            first_started.set()
            await release.wait()
        finished.append(message.customer_id)
        release.set()

    executor = TurnExecutor(handler, idle_seconds=1)
    executor.start()
    await executor.submit(inbound("+2250701020304", "a"))
    await first_started.wait()
    await executor.submit(inbound("+2210771234567", "b"))
    await asyncio.wait_for(executor.drain(), timeout=1)
    await executor.stop()

    assert finished == ["+2210771234567", "+2250701020304"]


@pytest.mark.asyncio
async def test_handler_failure_does_not_stop_the_worker():
    handled = []

    async def handler(message):
        if message.message_id == "bad":
            raise RuntimeError("boom")
        handled.append(message.message_id)

    executor = TurnExecutor(handler, idle_seconds=1)
    executor.start()
    await executor.submit(inbound("+2250701020304", "bad"))
    await executor.submit(inbound("+2250701020304", "good"))
    await executor.drain()
    await executor.stop()

    assert handled == ["good"]


@pytest.mark.asyncio
async def test_idle_worker_exits_and_is_recreated():
    handled = []

    async def handler(message):
        handled.append(message.message_id)

    executor = TurnExecutor(handler, idle_seconds=0.01)
    executor.start()
    await executor.submit(inbound("+2250701020304", "m1"))
    await executor.drain()
    await asyncio.sleep(0.05)
    assert executor.active_workers == 0

    await executor.submit(inbound("+2250701020304", "m2"))
    await executor.drain()
    await executor.stop()
    assert handled == ["m1", "m2"]


@pytest.mark.asyncio
async def test_submit_requires_a_running_executor():
    executor = TurnExecutor(lambda message: asyncio.sleep(0))
    with pytest.raises(RuntimeError):
        await executor.submit(inbound("+2250701020304", "m1"))
