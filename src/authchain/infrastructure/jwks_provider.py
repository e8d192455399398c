"""JWKS-backed bearer token provider"""

import time
import logging
from typing import Any, Dict, List, Optional
import httpx
from jose import jwt, jwk
from jose.exceptions import ExpiredSignatureError, JOSEError, JWTError

from ..core.auth_provider import IAuthProvider
from ..core.principal import UserPrincipal

logger = logging.getLogger(__name__)


class JwksAuthProvider(IAuthProvider):
    """
    Validates RS256 JWTs against the signing key published at a JWKS URL.

    Features:
    - RS256 JWT signature validation using JWK
    - JWK caching (default 5 minute TTL)
    - Token expiration validation
    - Issuer and audience validation (when configured)
    """

    def __init__(
        self,
        jwks_url: str,
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
        cache_ttl: int = 300,
    ):
        """
        Args:
            jwks_url: URL of the JWKS document (e.g., https://idp/.well-known/jwks.json)
            audience: Expected "aud" claim, skipped when None
            issuer: Expected "iss" claim, skipped when None
            cache_ttl: JWK cache TTL in seconds (default: 300 = 5 minutes)
        """
        if not jwks_url:
            raise ValueError("jwks_url is required")

        self.jwks_url = jwks_url
        self.audience = audience
        self.issuer = issuer
        self.cache_ttl = cache_ttl
        self._cached_key: Optional[str] = None
        self._cache_time = 0.0

        logger.info(
            f"Initialized JwksAuthProvider with JWKS URL: {self.jwks_url} "
            f"(cache TTL: {cache_ttl}s)"
        )

    async def validate_token(self, token: str) -> UserPrincipal:
        """
        Validate JWT and build the caller principal.

        Steps:
        1. Fetch JWK (cached)
        2. Verify RS256 signature
        3. Validate expiration, issuer, audience
        4. Map claims to a UserPrincipal

        Raises:
            ValueError: If token is invalid, expired, or signature verification fails
        """
        public_key = await self._get_public_key()

        try:
            claims = jwt.decode(
                token,
                public_key,
                algorithms=["RS256"],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except ExpiredSignatureError:
            logger.warning("Token validation failed: Token has expired")
            raise ValueError("Token has expired")
        except JWTError as e:
            logger.warning(f"Token validation failed: {str(e)}")
            raise ValueError(f"Invalid token: {str(e)}")

        principal = self._principal_from_claims(claims)
        logger.debug(f"Validated token for user {principal.user_id}")
        return principal

    def get_provider_name(self) -> str:
        """Return the name of this authentication provider"""
        return "jwks"

    @staticmethod
    def _principal_from_claims(claims: Dict[str, Any]) -> UserPrincipal:
        if not claims.get("sub"):
            raise ValueError("Invalid token: missing subject")

        return UserPrincipal(
            user_id=claims["sub"],
            email=claims.get("email", ""),
            roles=_roles_from_claim(claims.get("roles")),
            email_verified=claims.get("email_verified", False),
            scheme="Bearer",
        )

    async def _get_public_key(self) -> str:
        """
        Fetch public key from the JWKS endpoint with caching.

        Returns:
            Public key in PEM format

        Raises:
            ValueError: If JWKS endpoint is unreachable or invalid
        """
        current_time = time.time()
        if self._cached_key and (current_time - self._cache_time) < self.cache_ttl:
            return self._cached_key

        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(self.jwks_url)
                response.raise_for_status()
                jwks_data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch JWKS from {self.jwks_url}: {str(e)}")
            raise ValueError(f"Cannot fetch JWKS: {str(e)}")

        keys = jwks_data.get("keys") if isinstance(jwks_data, dict) else None
        if not keys:
            raise ValueError("No signing keys found in JWKS endpoint")

        try:
            key_obj = jwk.construct(keys[0], algorithm="RS256")
            public_key_pem = key_obj.to_pem().decode("utf-8")
        except (JOSEError, TypeError, AttributeError, KeyError, ValueError) as e:
            logger.error(f"Error processing JWKS: {str(e)}")
            raise ValueError(f"Invalid JWKS format: {str(e)}")

        self._cached_key = public_key_pem
        self._cache_time = current_time

        logger.debug(f"Fetched and cached public key from {self.jwks_url}")

        return public_key_pem


def _roles_from_claim(value: Any) -> List[str]:
    """Normalize the "roles" claim; some issuers send a single string."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(role) for role in value]
