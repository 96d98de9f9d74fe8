import asyncio
from typing import Optional


class CycleCancelled(Exception):
    """Raised inside a fetch cycle once its token has been cancelled."""


class CancellationToken:
    """Cooperative cancellation flag shared by every call of one fetch cycle."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CycleCancelled()

    async def wait(self) -> None:
        await self._event.wait()


def is_cancelled(token: Optional[CancellationToken]) -> bool:
    return token is not None and token.cancelled


async def pace(delay_ms: int, token: Optional[CancellationToken] = None) -> None:
    """Sleep for a pacing delay, returning early if the token is cancelled."""
    if delay_ms <= 0:
        return
    if token is None:
        await asyncio.sleep(delay_ms / 1000)
        return
    try:
        await asyncio.wait_for(token.wait(), timeout=delay_ms / 1000)
    except asyncio.TimeoutError:
        pass
