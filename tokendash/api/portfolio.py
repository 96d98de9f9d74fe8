import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from ..services.address import is_valid_evm_address
from ..services.amounts import format_display
from ..services.session import DashboardSession, SessionRegistry
from ..types import (
    CycleStatus,
    PortfolioResponse,
    SessionState,
    TokenDescriptor,
    TokenList,
    TokenRow,
)
from .deps import get_registry, get_token_list

router = APIRouter()
_logger = logging.getLogger(__name__)


def build_response(state: SessionState) -> PortfolioResponse:
    """Shape a session's published state for the dashboard page."""
    snapshot = state.snapshot
    if state.status != CycleStatus.SUCCEEDED or snapshot is None:
        return PortfolioResponse(
            success=False,
            address=state.address,
            status=state.status,
            error=state.error,
        )

    rows = [
        TokenRow(
            token=token,
            amount_display=format_display(token.formatted, 6),
            value_display=format_display(token.usd_value, 6),
        )
        for token in snapshot.tokens
    ]
    return PortfolioResponse(
        success=True,
        address=snapshot.address,
        status=state.status,
        tokens=rows,
        total_usd=snapshot.total_usd,
        total_display=format_display(snapshot.total_usd, 2),
        metrics=snapshot.metrics,
        last_updated=snapshot.last_updated,
    )


async def _session_for(address: str, registry: SessionRegistry) -> DashboardSession:
    if not is_valid_evm_address(address):
        raise HTTPException(status_code=400, detail="Invalid wallet address format")
    return await registry.get(address)


@router.get("/tokens")
async def list_tokens(tokens: TokenList = Depends(get_token_list)) -> List[TokenDescriptor]:
    """Token table valued for every wallet"""
    return list(tokens)


@router.get("/portfolio/{address}")
async def get_portfolio_endpoint(
    address: str,
    refresh: bool = Query(False, description="Start a new fetch cycle even if one was published"),
    registry: SessionRegistry = Depends(get_registry),
) -> PortfolioResponse:
    """Valued token balances for a wallet, fetching them on first use"""
    session = await _session_for(address, registry)

    in_flight = session.task is not None and not session.task.done()
    if refresh or (not in_flight and session.state.status in (CycleStatus.IDLE, CycleStatus.CANCELLED)):
        session.start(address)

    state = await session.wait()
    return build_response(state)


@router.post("/portfolio/{address}/refresh")
async def refresh_portfolio(
    address: str,
    registry: SessionRegistry = Depends(get_registry),
) -> PortfolioResponse:
    """Supersede any in-flight cycle with a fresh one"""
    session = await _session_for(address, registry)
    session.start(address)
    state = await session.wait()
    return build_response(state)
