import pytest

from tests.fakes import LINK_ADDRESS, USDC_ADDRESS
from tokendash.types import NATIVE_TOKEN_ADDRESS, TokenDescriptor


@pytest.fixture
def eth_usdc_tokens():
    return (
        TokenDescriptor(
            name="Ethereum",
            symbol="ETH",
            address=NATIVE_TOKEN_ADDRESS,
            decimals=18,
            coingecko_id="ethereum",
        ),
        TokenDescriptor(
            name="USD Coin",
            symbol="USDC",
            address=USDC_ADDRESS,
            decimals=6,
            coingecko_id="usd-coin",
        ),
    )


@pytest.fixture
def three_tokens(eth_usdc_tokens):
    link = TokenDescriptor(
        name="Chainlink",
        symbol="LINK",
        address=LINK_ADDRESS,
        decimals=18,
        coingecko_id="chainlink",
    )
    return eth_usdc_tokens + (link,)
