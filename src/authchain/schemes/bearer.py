"""Bearer token authentication link"""

import logging
from typing import Optional

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from ..core.auth_provider import IAuthProvider
from ..core.chain_link import AuthChainLink, get_originating_request
from .challenge import add_challenge

logger = logging.getLogger(__name__)


class BearerAuthLink(AuthChainLink):
    """
    Authenticates ``Authorization: Bearer <token>`` requests.

    Flow:
    1. Skip when the caller is already authenticated or SSL mode is unmet
    2. Skip when no bearer credentials are present (other schemes may apply)
    3. Validate the token via the configured IAuthProvider
    4. Set the current principal, or answer 401 for a rejected token
    """

    def __init__(
        self,
        auth_provider: IAuthProvider,
        include_by_default: bool = True,
        force_ssl: bool = False,
    ):
        super().__init__(include_by_default=include_by_default, force_ssl=force_ssl)
        self.auth_provider = auth_provider

        logger.info(
            f"Initialized BearerAuthLink with provider: {auth_provider.get_provider_name()}, "
            f"force_ssl={force_ssl}"
        )

    @property
    def auth_scheme(self) -> str:
        return "Bearer"

    async def on_inbound_request(self, request: Request) -> Optional[Response]:
        if not self.needs_authentication(request):
            return None

        token = self._extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            return None

        try:
            principal = await self.auth_provider.validate_token(token)
        except ValueError as e:
            logger.warning(f"Token validation failed for {request.url.path}: {str(e)}")
            response = JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "error": "invalid_token",
                    "message": str(e),
                },
            )
            return add_challenge(response, request, self.auth_scheme)

        self.set_current_principal(principal, request)
        logger.info(
            f"Authenticated user {principal.name} for {request.method} {request.url.path}"
        )
        return None

    async def on_outbound_response(self, response: Response) -> Response:
        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            return add_challenge(response, get_originating_request(response), self.auth_scheme)
        return response

    def _extract_bearer_token(self, auth_header: Optional[str]) -> Optional[str]:
        """
        Extract token from an Authorization header.

        Returns:
            Token string, or None if the header is absent or uses another scheme
        """
        if not auth_header:
            return None

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != self.auth_scheme.lower():
            return None

        return parts[1]
