from .request_context import RequestContextMiddleware, wallet_from_path

__all__ = [
    "RequestContextMiddleware",
    "wallet_from_path",
]
