"""HTTP Basic authentication link"""

import base64
import binascii
import logging
from typing import Awaitable, Callable, Optional, Tuple

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from ..core.chain_link import AuthChainLink, get_originating_request
from ..core.principal import Principal
from .challenge import add_challenge

logger = logging.getLogger(__name__)

# Resolves (username, password) to a principal, or None when rejected
CredentialVerifier = Callable[[str, str], Awaitable[Optional[Principal]]]


class BasicAuthLink(AuthChainLink):
    """
    Authenticates ``Authorization: Basic <base64(user:password)>`` requests.

    Credentials travel in clear text, so the link enforces HTTPS unless told
    otherwise. A 401 leaving the chain carries a ``WWW-Authenticate: Basic``
    challenge, except for XmlHttpRequest callers where the browser login
    prompt is unwanted.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        realm: str = "authchain",
        include_by_default: bool = False,
        force_ssl: bool = True,
    ):
        super().__init__(include_by_default=include_by_default, force_ssl=force_ssl)
        self.verifier = verifier
        self.realm = realm

        logger.info(f"Initialized BasicAuthLink for realm {realm!r}, force_ssl={force_ssl}")

    @property
    def auth_scheme(self) -> str:
        return "Basic"

    async def on_inbound_request(self, request: Request) -> Optional[Response]:
        if not self.needs_authentication(request):
            return None

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return None

        scheme, _, encoded = auth_header.partition(" ")
        if scheme.lower() != self.auth_scheme.lower():
            return None

        try:
            username, password = self._decode_credentials(encoded.strip())
        except ValueError as e:
            logger.warning(f"Malformed Basic credentials for {request.url.path}: {str(e)}")
            return self._unauthorized(request, str(e))

        principal = await self.verifier(username, password)
        if principal is None or not principal.is_authenticated:
            logger.warning(f"Rejected Basic credentials for user {username!r}")
            return self._unauthorized(request, "Invalid username or password")

        self.set_current_principal(principal, request)
        logger.info(
            f"Authenticated user {principal.name} for {request.method} {request.url.path}"
        )
        return None

    async def on_outbound_response(self, response: Response) -> Response:
        if response.status_code == status.HTTP_401_UNAUTHORIZED:
            return add_challenge(response, get_originating_request(response), self.challenge)
        return response

    @property
    def challenge(self) -> str:
        return f'{self.auth_scheme} realm="{self.realm}"'

    @staticmethod
    def _decode_credentials(encoded: str) -> Tuple[str, str]:
        """
        Decode the base64 ``user:password`` pair.

        Raises:
            ValueError: If the value is not valid base64 or lacks a colon
        """
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise ValueError("Credentials are not valid base64")

        username, sep, password = decoded.partition(":")
        if not sep or not username:
            raise ValueError("Credentials must be 'username:password'")

        return username, password

    def _unauthorized(self, request: Request, message: str) -> Response:
        response = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "invalid_credentials", "message": message},
        )
        return add_challenge(response, request, self.challenge)
