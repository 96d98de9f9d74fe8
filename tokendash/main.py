from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import health, portfolio
from .config import Settings, settings
from .logging_config import setup_logging
from .middleware import RequestContextMiddleware
from .providers import AlchemyProvider, CoingeckoProvider
from .services.session import SessionRegistry
from .services.valuation import ValuationAggregator
from .tokens import configured_token_list


def build_registry(config: Optional[Settings] = None) -> SessionRegistry:
    """Wire providers, token table and aggregator from settings."""
    config = config or settings
    aggregator = ValuationAggregator(
        balances=AlchemyProvider(config),
        prices=CoingeckoProvider(config),
        tokens=configured_token_list(config),
        config=config,
    )
    return SessionRegistry(
        aggregator,
        max_sessions=config.max_sessions,
        idle_ttl_s=config.session_ttl_seconds,
    )


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()
        app.state.registry = registry or build_registry()
        try:
            yield
        finally:
            await app.state.registry.close_all()

    app = FastAPI(
        title="Token Balance Dashboard API",
        description="Wallet token balances valued in USD, batch vs individual fetch metrics",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(portfolio.router, tags=["Portfolio"])

    @app.get("/")
    async def root(request: Request):
        """Root endpoint with basic info"""
        config = request.app.state.registry.aggregator.config
        return {
            "name": "Token Balance Dashboard API",
            "version": __version__,
            "network": config.alchemy_network,
            "docs": "/docs",
            "health": "/healthz"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tokendash.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
