import asyncio

import pytest

from tests.fakes import OWNER, USDC_ADDRESS, FakeBalances, FakePrices, make_settings
from tokendash.services.session import DashboardSession, SessionRegistry
from tokendash.services.valuation import ValuationAggregator
from tokendash.types import CycleStatus, RawBalance


OTHER_OWNER = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"


class GatedBalances(FakeBalances):
    """First batch call hangs until released, then returns stale numbers even if aborted."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.stale_returned = False
        self._gated = True

    async def resolve_batch(self, owner, contracts, cancel=None):
        if not self._gated:
            return await super().resolve_batch(owner, contracts, cancel)
        self._gated = False
        self.calls.append(("batch", tuple(contracts)))
        self.entered.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            # the response was already on its way; it still arrives, late
            await self.release.wait()
        self.stale_returned = True
        return [RawBalance(contract_address=USDC_ADDRESS.lower(), token_balance="999000000")]


class ExplodingPrices(FakePrices):
    async def resolve_price(self, feed_id, cancel=None):
        raise RuntimeError("price table corrupted")


def _session(tokens, balances, prices=None):
    aggregator = ValuationAggregator(
        balances=balances,
        prices=prices or FakePrices({"ethereum": 2000.0, "usd-coin": 1.0}),
        tokens=tokens,
        config=make_settings(),
    )
    return DashboardSession(aggregator)


@pytest.mark.asyncio
async def test_successful_cycle_publishes(eth_usdc_tokens):
    balances = FakeBalances(
        batch=[RawBalance(contract_address=USDC_ADDRESS.lower(), token_balance="5000000")],
        native="1000000000000000000",
    )
    session = _session(eth_usdc_tokens, balances)

    task = session.start(OWNER)
    assert session.state.status == CycleStatus.LOADING
    assert session.state.loading
    await task

    state = session.state
    assert state.status == CycleStatus.SUCCEEDED
    assert state.error is None
    assert state.snapshot.total_usd == 2005.0
    assert [t.symbol for t in state.snapshot.tokens] == ["ETH", "USDC"]


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_network(eth_usdc_tokens):
    balances = FakeBalances(api_key="")
    session = _session(eth_usdc_tokens, balances)

    task = session.start(OWNER)

    assert task is None
    assert session.state.status == CycleStatus.FAILED
    assert "ALCHEMY_API_KEY" in session.state.error
    assert balances.calls == []


@pytest.mark.asyncio
async def test_no_address_resets_to_idle(eth_usdc_tokens):
    session = _session(eth_usdc_tokens, FakeBalances())
    await session.start(OWNER)
    assert session.state.snapshot is not None

    assert session.start(None) is None

    assert session.state.status == CycleStatus.IDLE
    assert session.state.snapshot is None
    assert session.state.error is None


@pytest.mark.asyncio
async def test_unexpected_error_fails_cycle_and_clears_tokens(eth_usdc_tokens):
    balances = FakeBalances(batch=[RawBalance(contract_address=USDC_ADDRESS.lower(), token_balance="5000000")])
    session = _session(eth_usdc_tokens, balances)
    await session.start(OWNER)
    assert session.state.snapshot is not None

    session.aggregator.prices = ExplodingPrices()
    await session.refresh()

    assert session.state.status == CycleStatus.FAILED
    assert session.state.error == "price table corrupted"
    assert session.state.snapshot is None


@pytest.mark.asyncio
async def test_stale_cycle_never_publishes(eth_usdc_tokens):
    balances = GatedBalances(batch=[RawBalance(contract_address=USDC_ADDRESS.lower(), token_balance="5000000")])
    session = _session(eth_usdc_tokens, balances)

    first = session.start(OWNER)
    await balances.entered.wait()

    second = session.start(OWNER)
    state = await session.wait()
    assert state.status == CycleStatus.SUCCEEDED
    assert state.cycle_id == 2
    assert state.snapshot.tokens[1].balance_raw == "5000000"

    # the slow first cycle now completes after its successor published
    balances.release.set()
    assert await first is None
    assert balances.stale_returned
    assert second.done()
    assert session.state.cycle_id == 2
    assert session.state.snapshot.tokens[1].balance_raw == "5000000"


@pytest.mark.asyncio
async def test_address_change_supersedes_previous_wallet(eth_usdc_tokens):
    balances = GatedBalances()
    session = _session(eth_usdc_tokens, balances)

    session.start(OWNER)
    await balances.entered.wait()
    session.start(OTHER_OWNER)
    balances.release.set()
    state = await session.wait()

    assert state.address == OTHER_OWNER
    assert state.snapshot.address == OTHER_OWNER


@pytest.mark.asyncio
async def test_close_cancels_without_publishing(eth_usdc_tokens):
    balances = GatedBalances()
    session = _session(eth_usdc_tokens, balances)

    session.start(OWNER)
    await balances.entered.wait()
    balances.release.set()
    await session.close()

    assert session.state.status == CycleStatus.CANCELLED
    assert session.state.snapshot is None
    assert session.task is None


def _registry(tokens, balances=None, **kwargs):
    aggregator = ValuationAggregator(
        balances=balances or FakeBalances(),
        prices=FakePrices(),
        tokens=tokens,
        config=make_settings(),
    )
    return SessionRegistry(aggregator, **kwargs)


def _wallet(i):
    return f"0x{i:040x}"


@pytest.mark.asyncio
async def test_registry_shares_session_per_address(eth_usdc_tokens):
    registry = _registry(eth_usdc_tokens)

    assert await registry.get(OWNER) is await registry.get(OWNER.lower())
    assert await registry.get(OWNER) is not await registry.get(OTHER_OWNER)
    assert registry.size() == 2


@pytest.mark.asyncio
async def test_close_all_cancels_loading_sessions(eth_usdc_tokens):
    balances = GatedBalances()
    registry = _registry(eth_usdc_tokens, balances)
    session = await registry.get(OWNER)

    session.start(OWNER)
    await balances.entered.wait()
    balances.release.set()
    await registry.close_all()

    assert session.state.status == CycleStatus.CANCELLED
    assert session.state.snapshot is None
    assert registry.size() == 0


@pytest.mark.asyncio
async def test_registry_evicts_least_recently_used(eth_usdc_tokens):
    registry = _registry(eth_usdc_tokens, max_sessions=10)

    first = await registry.get(_wallet(0))
    early = await registry.get(_wallet(1))
    for i in range(2, 5000):
        await registry.get(_wallet(i))
        await registry.get(_wallet(0))

    assert registry.size() == 10
    assert await registry.get(_wallet(0)) is first
    assert await registry.get(_wallet(1)) is not early
    assert registry.size() == 10


@pytest.mark.asyncio
async def test_registry_prefers_evicting_idle_sessions(eth_usdc_tokens):
    balances = GatedBalances()
    registry = _registry(eth_usdc_tokens, balances, max_sessions=2)
    busy = await registry.get(OWNER)
    busy.start(OWNER)
    await balances.entered.wait()
    idle = await registry.get(OTHER_OWNER)

    await registry.get(_wallet(1))

    assert registry.size() == 2
    assert await registry.get(OWNER) is busy
    assert busy.state.status == CycleStatus.LOADING
    assert await registry.get(OTHER_OWNER) is not idle

    balances.release.set()
    await registry.close_all()


@pytest.mark.asyncio
async def test_evicted_loading_session_is_closed(eth_usdc_tokens):
    balances = GatedBalances()
    registry = _registry(eth_usdc_tokens, balances, max_sessions=1)
    session = await registry.get(OWNER)
    session.start(OWNER)
    await balances.entered.wait()
    balances.release.set()

    await registry.get(OTHER_OWNER)

    assert registry.size() == 1
    assert session.task is None
    assert session.state.status == CycleStatus.CANCELLED
    assert session.state.snapshot is None


@pytest.mark.asyncio
async def test_idle_sessions_expire(eth_usdc_tokens, monkeypatch):
    registry = _registry(eth_usdc_tokens, idle_ttl_s=300)
    now = [1000.0]
    monkeypatch.setattr(registry, "_now", lambda: now[0])

    stale = await registry.get(OWNER)
    now[0] += 200
    await registry.get(OTHER_OWNER)
    assert registry.size() == 2

    now[0] += 200
    await registry.get(OTHER_OWNER)

    assert registry.size() == 1
    assert await registry.get(OWNER) is not stale
