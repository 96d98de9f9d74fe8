from fastapi import Request

from ..providers.base import BalanceProvider, PriceProvider
from ..services.session import SessionRegistry
from ..types import TokenList


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_token_list(request: Request) -> TokenList:
    return request.app.state.registry.aggregator.tokens


def get_balance_provider(request: Request) -> BalanceProvider:
    return request.app.state.registry.aggregator.balances


def get_price_provider(request: Request) -> PriceProvider:
    return request.app.state.registry.aggregator.prices
