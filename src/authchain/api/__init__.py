"""API layer - Authentication chain middleware and routing"""

from .middleware import AuthChain, AuthChainMiddleware
from .routes import router

__all__ = ["AuthChain", "AuthChainMiddleware", "router"]
