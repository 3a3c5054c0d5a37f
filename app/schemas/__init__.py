"""Public schema exports."""

from .auth import AuthorizationUrlResponse, ExchangeCodeResponse

__all__ = ["AuthorizationUrlResponse", "ExchangeCodeResponse"]
