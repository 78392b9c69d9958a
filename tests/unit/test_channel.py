"""Tests for the TargetChannel rendezvous semantics."""

from __future__ import annotations

import asyncio

import pytest

from podwatch.collector.channel import ChannelClosedError, TargetChannel
from podwatch.models.targets import Target

_T1 = Target(namespace="default", pod="web-0", container="nginx")
_T2 = Target(namespace="default", pod="web-1", container="nginx")


class TestSendReceive:
    async def test_send_waits_for_receiver(self) -> None:
        channel = TargetChannel("added")
        send = asyncio.create_task(channel.send(_T1))
        await asyncio.sleep(0.01)
        assert not send.done()

        assert await asyncio.wait_for(channel.receive(), timeout=1.0) == _T1
        await asyncio.wait_for(send, timeout=1.0)

    async def test_received_target_is_the_sent_instance(self) -> None:
        channel = TargetChannel("added")
        send = asyncio.create_task(channel.send(_T1))

        received = await asyncio.wait_for(channel.receive(), timeout=1.0)
        await asyncio.wait_for(send, timeout=1.0)

        assert received is _T1
        # The slot is free again: a second send/receive pair goes through.
        send = asyncio.create_task(channel.send(_T2))
        assert await asyncio.wait_for(channel.receive(), timeout=1.0) is _T2
        await asyncio.wait_for(send, timeout=1.0)

    async def test_receive_waits_for_sender(self) -> None:
        channel = TargetChannel("added")
        receive = asyncio.create_task(channel.receive())
        await asyncio.sleep(0.01)
        assert not receive.done()

        await asyncio.wait_for(channel.send(_T1), timeout=1.0)
        assert await asyncio.wait_for(receive, timeout=1.0) == _T1

    async def test_order_preserved(self) -> None:
        channel = TargetChannel()

        async def produce() -> None:
            await channel.send(_T1)
            await channel.send(_T2)
            await channel.close()

        producer = asyncio.create_task(produce())
        received = [t async for t in channel]
        await producer
        assert received == [_T1, _T2]


class TestClose:
    async def test_receive_after_close_raises(self) -> None:
        channel = TargetChannel("removed")
        await channel.close()
        assert channel.closed
        with pytest.raises(ChannelClosedError):
            await channel.receive()

    async def test_send_after_close_raises(self) -> None:
        channel = TargetChannel("removed")
        await channel.close()
        with pytest.raises(ChannelClosedError):
            await channel.send(_T1)

    async def test_close_is_idempotent(self) -> None:
        channel = TargetChannel()
        await channel.close()
        await channel.close()
        assert channel.closed

    async def test_close_wakes_waiting_receiver(self) -> None:
        channel = TargetChannel()
        receive = asyncio.create_task(channel.receive())
        await asyncio.sleep(0.01)
        await channel.close()
        with pytest.raises(ChannelClosedError):
            await asyncio.wait_for(receive, timeout=1.0)

    async def test_iteration_ends_on_close(self) -> None:
        channel = TargetChannel()
        await channel.close()
        assert [t async for t in channel] == []

    async def test_close_while_sending_withdraws_item(self) -> None:
        channel = TargetChannel()
        send = asyncio.create_task(channel.send(_T1))
        await asyncio.sleep(0.01)
        await channel.close()
        with pytest.raises(ChannelClosedError):
            await asyncio.wait_for(send, timeout=1.0)
        with pytest.raises(ChannelClosedError):
            await channel.receive()

    async def test_cancelled_send_is_withdrawn(self) -> None:
        channel = TargetChannel()
        send = asyncio.create_task(channel.send(_T1))
        await asyncio.sleep(0.01)
        send.cancel()
        with pytest.raises(asyncio.CancelledError):
            await send

        # The withdrawn item is not delivered; the next send is.
        next_send = asyncio.create_task(channel.send(_T2))
        assert await asyncio.wait_for(channel.receive(), timeout=1.0) == _T2
        await next_send
