"""
Shared pytest fixtures for authchain tests.

Provides:
- make_request(): build a Starlette Request from a minimal ASGI scope
- StaticAuthProvider: IAuthProvider double with a fixed token table
- RecordingLink: AuthChainLink double that records hook calls
"""

from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from starlette.requests import Request
from starlette.responses import Response

from authchain.core.auth_provider import IAuthProvider
from authchain.core.chain_link import AuthChainLink
from authchain.core.principal import UserPrincipal
from authchain.core.principal_context import principal_scope


def make_request(
    scheme: str = "http",
    headers: Optional[Sequence[Tuple[str, str]]] = None,
    path: str = "/api/v1/me",
    method: str = "GET",
) -> Request:
    """Build a request; headers is a list of pairs so names may repeat."""
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or [])
    ]
    port = 443 if scheme.lower() == "https" else 80
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "server": ("testserver", port),
        "client": ("127.0.0.1", 50000),
    }
    return Request(scope)


class StaticAuthProvider(IAuthProvider):
    """Accepts only the tokens it was given."""

    def __init__(self, tokens: Dict[str, UserPrincipal]):
        self.tokens = tokens
        self.calls: List[str] = []

    async def validate_token(self, token: str) -> UserPrincipal:
        self.calls.append(token)
        if token not in self.tokens:
            raise ValueError("Invalid token: unknown token")
        return self.tokens[token]

    def get_provider_name(self) -> str:
        return "static"


class RecordingLink(AuthChainLink):
    """Link double: optionally answers requests, records every hook call."""

    def __init__(
        self,
        scheme: str,
        events: List[str],
        inbound_response: Optional[Response] = None,
        include_by_default: bool = True,
        force_ssl: bool = False,
    ):
        self._scheme = scheme
        super().__init__(include_by_default=include_by_default, force_ssl=force_ssl)
        self.events = events
        self.inbound_response = inbound_response

    @property
    def auth_scheme(self) -> str:
        return self._scheme

    async def on_inbound_request(self, request):
        self.events.append(f"{self._scheme}:inbound")
        return self.inbound_response

    async def on_outbound_response(self, response):
        self.events.append(f"{self._scheme}:outbound")
        response.headers.append("X-Chain", self._scheme)
        return response


@pytest.fixture
def alice() -> UserPrincipal:
    return UserPrincipal(
        user_id="alice",
        email="alice@example.com",
        roles=["admin"],
        email_verified=True,
        scheme="Bearer",
    )


@pytest.fixture
def auth_provider(alice) -> StaticAuthProvider:
    return StaticAuthProvider({"good-token": alice})


@pytest.fixture(autouse=True)
def _clean_principal():
    """Start every test with an empty ambient principal."""
    with principal_scope(None):
        yield
