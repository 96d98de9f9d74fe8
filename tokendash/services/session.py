"""
Dashboard fetch-cycle session.

Owns the published state for one wallet view. Starting a cycle (address
available, address changed, explicit refresh) cancels the one in flight;
only the latest cycle may publish, so a superseded cycle's results are
dropped even if they arrive after its successor finished.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from ..providers.base import ConfigurationError
from ..types import CycleStatus, PortfolioSnapshot, SessionState
from .cancellation import CancellationToken, CycleCancelled
from .valuation import ValuationAggregator

logger = logging.getLogger(__name__)

DEFAULT_ERROR = "Failed to fetch tokens from Alchemy"


class DashboardSession:
    def __init__(self, aggregator: ValuationAggregator):
        self.aggregator = aggregator
        self.state = SessionState()
        self._task: Optional["asyncio.Task[Optional[PortfolioSnapshot]]"] = None
        self._cancel: Optional[CancellationToken] = None

    @property
    def task(self) -> Optional["asyncio.Task[Optional[PortfolioSnapshot]]"]:
        return self._task

    def _abort_inflight(self) -> None:
        if self._cancel is not None:
            self._cancel.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._cancel = None
        self._task = None

    def start(self, address: Optional[str]) -> Optional["asyncio.Task[Optional[PortfolioSnapshot]]"]:
        """Begin a new cycle for ``address``, superseding any cycle in flight.

        Returns the cycle's task, or None when no network work was started
        (no address, or the balance provider is not configured).
        """
        self._abort_inflight()
        cycle_id = self.state.cycle_id + 1

        if not address:
            self.state = SessionState(cycle_id=cycle_id)
            return None

        try:
            self.aggregator.balances.ensure_ready()
        except ConfigurationError as e:
            logger.error("Cannot start cycle for %s: %s", address, e)
            self.state = SessionState(
                address=address,
                status=CycleStatus.FAILED,
                cycle_id=cycle_id,
                error=str(e),
            )
            return None

        self.state = SessionState(address=address, status=CycleStatus.LOADING, cycle_id=cycle_id)
        token = CancellationToken()
        self._cancel = token
        self._task = asyncio.create_task(self._run(cycle_id, address, token))
        return self._task

    def refresh(self) -> Optional["asyncio.Task[Optional[PortfolioSnapshot]]"]:
        return self.start(self.state.address)

    async def wait(self) -> SessionState:
        """Wait until no cycle is in flight and return the published state."""
        while self._task is not None and not self._task.done():
            task = self._task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self.state

    async def close(self) -> None:
        """Tear down: cancel the in-flight cycle without publishing anything."""
        task = self._task
        self._abort_inflight()
        if self.state.status == CycleStatus.LOADING:
            self.state = self.state.model_copy(update={"status": CycleStatus.CANCELLED})
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _is_current(self, cycle_id: int) -> bool:
        return self.state.cycle_id == cycle_id

    async def _run(self, cycle_id: int, address: str, token: CancellationToken) -> Optional[PortfolioSnapshot]:
        # the task runs in its own context copy, so this binding stays with the cycle
        structlog.contextvars.bind_contextvars(cycle_id=cycle_id, address=address.lower())
        try:
            snapshot = await self.aggregator.run_cycle(address, token)
        except CycleCancelled:
            logger.debug("Cycle %d for %s cancelled", cycle_id, address)
            return None
        except asyncio.CancelledError:
            logger.debug("Cycle %d for %s aborted", cycle_id, address)
            raise
        except Exception as e:
            if token.cancelled or not self._is_current(cycle_id):
                return None
            logger.exception("Fetch cycle %d for %s failed", cycle_id, address)
            self.state = SessionState(
                address=address,
                status=CycleStatus.FAILED,
                cycle_id=cycle_id,
                error=str(e) or DEFAULT_ERROR,
            )
            return None

        if token.cancelled or not self._is_current(cycle_id):
            logger.debug("Dropping stale result of cycle %d for %s", cycle_id, address)
            return None

        self.state = SessionState(
            address=address,
            status=CycleStatus.SUCCEEDED,
            cycle_id=cycle_id,
            snapshot=snapshot,
        )
        logger.info(
            "Cycle %d for %s published %d tokens, total $%.2f",
            cycle_id,
            address,
            len(snapshot.tokens),
            snapshot.total_usd,
        )
        return snapshot


@dataclass
class _SessionEntry:
    session: DashboardSession
    last_used: float


class SessionRegistry:
    """One DashboardSession per wallet address.

    Bounded like an LRU cache: sessions untouched for ``idle_ttl_s`` seconds
    expire, and past ``max_sessions`` the least recently used session is
    evicted. Evicted sessions are closed, so their cycles never publish.
    Sessions with a cycle in flight are only evicted when nothing else is.
    """

    def __init__(self, aggregator: ValuationAggregator, max_sessions: int = 1000, idle_ttl_s: float = 300):
        self.aggregator = aggregator
        self.max_sessions = max_sessions
        self.idle_ttl_s = idle_ttl_s
        self._sessions: Dict[str, _SessionEntry] = {}
        self._access_order: List[str] = []
        self._lock = asyncio.Lock()

    def _now(self) -> float:
        return time.monotonic()

    async def get(self, address: str) -> DashboardSession:
        key = address.lower()
        async with self._lock:
            now = self._now()
            evicted = self._expire(now, keep=key)

            entry = self._sessions.get(key)
            if entry is None:
                entry = _SessionEntry(session=DashboardSession(self.aggregator), last_used=now)
                self._sessions[key] = entry
            entry.last_used = now

            # Update access order for LRU
            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            while len(self._sessions) > self.max_sessions:
                victim = self._pick_victim(keep=key)
                if victim is None:
                    break
                evicted.append(self._pop(victim))

            for session in evicted:
                await session.close()
            return entry.session

    def _expire(self, now: float, keep: str) -> List[DashboardSession]:
        expired = [
            key
            for key in self._access_order
            if key != keep
            and not _in_flight(self._sessions[key].session)
            and now - self._sessions[key].last_used > self.idle_ttl_s
        ]
        if expired:
            logger.debug("Expiring %d idle sessions", len(expired))
        return [self._pop(key) for key in expired]

    def _pick_victim(self, keep: str) -> Optional[str]:
        candidates = [key for key in self._access_order if key != keep]
        for key in candidates:
            if not _in_flight(self._sessions[key].session):
                return key
        return candidates[0] if candidates else None

    def _pop(self, key: str) -> DashboardSession:
        self._access_order.remove(key)
        return self._sessions.pop(key).session

    def size(self) -> int:
        return len(self._sessions)

    async def close_all(self) -> None:
        async with self._lock:
            sessions = [entry.session for entry in self._sessions.values()]
            self._sessions.clear()
            self._access_order.clear()
        for session in sessions:
            await session.close()


def _in_flight(session: DashboardSession) -> bool:
    return session.task is not None and not session.task.done()
