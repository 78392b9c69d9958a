"""Closable rendezvous channel carrying targets from the watcher to consumers.

A send completes only once a receiver has taken the item, so a slow consumer
throttles the producer. Closing the channel is the producer's end-of-stream
signal: receivers drain nothing further and async iteration stops.
"""

from __future__ import annotations

import asyncio

from podwatch.models.targets import Target


class ChannelClosedError(Exception):
    """Raised when sending to, or receiving from, a closed channel."""


class TargetChannel:
    """Unbuffered channel of :class:`Target` with explicit close."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._cond = asyncio.Condition()
        self._slot: Target | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, target: Target) -> None:
        """Hand *target* to a receiver, waiting until one has taken it.

        If the caller is cancelled before a receiver takes the item, the item
        is withdrawn and never delivered.
        """
        async with self._cond:
            await self._cond.wait_for(lambda: self._slot is None or self._closed)
            if self._closed:
                raise ChannelClosedError(f"channel {self.name!r} is closed")
            self._slot = target
            self._cond.notify_all()
            try:
                await self._cond.wait_for(lambda: self._slot is not target or self._closed)
            finally:
                withdrawn = self._slot is target
                if withdrawn:
                    self._slot = None
                    self._cond.notify_all()
            if withdrawn:
                raise ChannelClosedError(f"channel {self.name!r} closed before {target.id} was received")

    async def receive(self) -> Target:
        """Wait for the next target; raise ChannelClosedError once closed."""
        async with self._cond:
            await self._cond.wait_for(lambda: self._slot is not None or self._closed)
            target = self._slot
            if target is None:
                raise ChannelClosedError(f"channel {self.name!r} is closed")
            self._slot = None
            self._cond.notify_all()
            return target

    async def close(self) -> None:
        """Close the channel and wake every waiter. Idempotent."""
        async with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()

    def __aiter__(self) -> TargetChannel:
        return self

    async def __anext__(self) -> Target:
        try:
            return await self.receive()
        except ChannelClosedError:
            raise StopAsyncIteration from None
