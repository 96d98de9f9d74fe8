import asyncio

import pytest

from tokendash.services.cancellation import CancellationToken, CycleCancelled, is_cancelled, pace


def test_token_flags():
    token = CancellationToken()
    assert not token.cancelled
    assert not is_cancelled(token)
    assert not is_cancelled(None)

    token.cancel()

    assert token.cancelled
    with pytest.raises(CycleCancelled):
        token.raise_if_cancelled()


@pytest.mark.asyncio
async def test_pace_returns_early_on_cancel():
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, token.cancel)

    started = loop.time()
    await pace(10_000, token)

    assert loop.time() - started < 5


@pytest.mark.asyncio
async def test_pace_zero_is_immediate():
    await pace(0)
    await pace(0, CancellationToken())


@pytest.mark.asyncio
@pytest.mark.parametrize("with_token", [False, True])
async def test_pace_waits_full_delay(with_token):
    loop = asyncio.get_running_loop()
    started = loop.time()

    await pace(20, CancellationToken() if with_token else None)

    assert loop.time() - started >= 0.019
