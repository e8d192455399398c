"""Token validation interface for pluggable auth backends"""

from abc import ABC, abstractmethod

from .principal import UserPrincipal


class IAuthProvider(ABC):
    """
    Interface for bearer token validators.

    Implementations must:
    1. Verify the token against their issuer
    2. Build a UserPrincipal from the validated claims
    3. Report expired or malformed tokens as ValueError
    """

    @abstractmethod
    async def validate_token(self, token: str) -> UserPrincipal:
        """
        Validate a token and resolve the caller.

        Args:
            token: Token string (without "Bearer " prefix)

        Returns:
            UserPrincipal for the token subject

        Raises:
            ValueError: If token is invalid, expired, or signature verification fails
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the name of this authentication provider"""
        pass
