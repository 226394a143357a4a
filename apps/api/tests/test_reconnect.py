from __future__ import annotations

import asyncio

from babysync.client import ReconnectionController, SyncStatus
from realtime_helpers import FakeTransport


async def settle(rounds: int = 50) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_gives_up_after_five_retries_and_manual_connect_starts_over() -> None:
    calls = []

    async def opener():
        calls.append(len(calls))
        raise ConnectionRefusedError("server down")

    async def scenario():
        controller = ReconnectionController(opener, delay=0, max_attempts=5)
        await controller.connect()
        await settle()
        first_round = (len(calls), controller.status, controller.retry_pending)

        await settle()
        idle_calls = len(calls)

        await controller.connect()
        await settle()
        return first_round, idle_calls, len(calls), controller

    first_round, idle_calls, total_calls, controller = asyncio.run(scenario())

    assert first_round == (6, SyncStatus.DISCONNECTED, False)
    assert idle_calls == 6
    assert total_calls == 12
    assert controller.status is SyncStatus.DISCONNECTED


def test_success_resets_the_retry_budget() -> None:
    outcomes = [False, False, True]
    transports = []

    async def opener():
        if not outcomes.pop(0):
            raise OSError("not yet")
        transport = FakeTransport()
        transports.append(transport)
        return transport

    async def scenario():
        controller = ReconnectionController(opener, delay=0, max_attempts=5)
        await controller.connect()
        await settle()
        return controller

    controller = asyncio.run(scenario())

    assert controller.status is SyncStatus.CONNECTED
    assert controller.attempts == 0
    assert len(transports) == 1


def test_unexpected_drop_schedules_a_retry() -> None:
    transports = []
    statuses = []

    async def opener():
        transport = FakeTransport()
        transports.append(transport)
        return transport

    async def scenario():
        controller = ReconnectionController(opener, on_status=statuses.append, delay=0, max_attempts=5)
        await controller.connect()
        transports[0].drop()
        await settle()
        status = controller.status
        await controller.disconnect()
        return status

    status = asyncio.run(scenario())

    assert status is SyncStatus.CONNECTED
    assert len(transports) == 2
    assert statuses[:4] == [
        SyncStatus.CONNECTING,
        SyncStatus.CONNECTED,
        SyncStatus.DISCONNECTED,
        SyncStatus.CONNECTING,
    ]


def test_transport_error_reports_error_then_retries() -> None:
    transports = []
    statuses = []

    async def opener():
        transport = FakeTransport()
        transports.append(transport)
        return transport

    async def scenario():
        controller = ReconnectionController(opener, on_status=statuses.append, delay=0, max_attempts=5)
        await controller.connect()
        transports[0].drop(RuntimeError("connection reset"))
        await settle()
        await controller.disconnect()

    asyncio.run(scenario())

    assert SyncStatus.ERROR in statuses
    assert len(transports) == 2


def test_disconnect_cancels_pending_retry() -> None:
    calls = []

    async def opener():
        calls.append(1)
        raise OSError("offline")

    async def scenario():
        controller = ReconnectionController(opener, delay=10, max_attempts=5)
        await controller.connect()
        pending = controller.retry_pending
        await controller.disconnect()
        await settle()
        return controller, pending

    controller, pending = asyncio.run(scenario())

    assert pending is True
    assert controller.retry_pending is False
    assert controller.status is SyncStatus.DISCONNECTED
    assert calls == [1]


def test_disconnect_never_triggers_a_retry() -> None:
    transports = []

    async def opener():
        transport = FakeTransport()
        transports.append(transport)
        return transport

    async def scenario():
        controller = ReconnectionController(opener, delay=0, max_attempts=5)
        await controller.connect()
        await controller.disconnect()
        await settle()
        return controller

    controller = asyncio.run(scenario())

    assert controller.status is SyncStatus.DISCONNECTED
    assert len(transports) == 1
    assert transports[0].closed is True


def test_messages_are_dispatched_and_send_needs_a_connection() -> None:
    received = []
    transport_holder = {}

    async def opener():
        transport_holder["t"] = FakeTransport()
        return transport_holder["t"]

    async def scenario():
        controller = ReconnectionController(opener, on_message=received.append, delay=0)
        before = await controller.send({"type": "ping"})
        await controller.connect()
        transport_holder["t"].feed('{"type": "sync", "data": []}')
        await settle()
        after = await controller.send({"type": "ping"})
        already = await controller.connect()
        await controller.disconnect()
        return before, after, already

    before, after, already = asyncio.run(scenario())

    assert before is False
    assert after is True
    assert already is True
    assert received == ['{"type": "sync", "data": []}']
    assert transport_holder["t"].sent == ['{"type": "ping"}']
