"""Infrastructure layer - token provider implementations"""

from .jwks_provider import JwksAuthProvider

__all__ = ["JwksAuthProvider"]
