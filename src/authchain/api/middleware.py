"""Authentication chain runner and its Starlette middleware"""

import asyncio
import functools
import logging
from typing import Iterable, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.chain_link import AuthChainLink, CallNext, get_originating_request
from ..core.principal_context import principal_scope

logger = logging.getLogger(__name__)


class AuthChain:
    """
    Ordered sequence of authentication links.

    Inbound hooks run in declaration order; the first link that answers the
    request stops inbound processing and its response travels back through
    the links before it. Otherwise the terminal handler runs and its response
    passes through every outbound hook in reverse order.
    """

    def __init__(self, links: Iterable[AuthChainLink], opt_in_schemes: Iterable[str] = ()):
        """
        Args:
            links: Links in chain order
            opt_in_schemes: Schemes to apply even if their link is not included by default

        Raises:
            ValueError: If two links share an auth scheme
        """
        all_links = list(links)
        seen = set()
        for link in all_links:
            key = link.auth_scheme.lower()
            if key in seen:
                raise ValueError(f"Duplicate auth scheme in chain: {link.auth_scheme}")
            seen.add(key)

        opt_in = {scheme.lower() for scheme in opt_in_schemes}
        self._links: List[AuthChainLink] = [
            link
            for link in all_links
            if link.include_by_default or link.auth_scheme.lower() in opt_in
        ]

        skipped = [link.auth_scheme for link in all_links if link not in self._links]
        if skipped:
            logger.info(f"Auth schemes not enabled (no opt-in): {skipped}")

    @property
    def links(self) -> List[AuthChainLink]:
        return list(self._links)

    @property
    def schemes(self) -> List[str]:
        return [link.auth_scheme for link in self._links]

    def anti_forgery_exempt_schemes(self) -> List[str]:
        """Schemes whose requests skip anti-forgery token validation"""
        return [link.auth_scheme for link in self._links if link.bypass_anti_forgery_token]

    async def run(
        self,
        request: Request,
        terminal: CallNext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Response:
        """
        Pass a request through the chain.

        Args:
            request: Incoming HTTP request
            terminal: Handler invoked when no link answers the request
            cancel_event: Optional signal that aborts processing when set

        Returns:
            Final response after all applicable outbound hooks
        """

        async def call_terminal(req: Request) -> Response:
            response = await terminal(req)
            if get_originating_request(response) is None:
                response.request = req
            return response

        return await self._dispatch(0, request, terminal=call_terminal, cancel_event=cancel_event)

    async def _dispatch(
        self,
        index: int,
        request: Request,
        terminal: CallNext,
        cancel_event: Optional[asyncio.Event],
    ) -> Response:
        if index == len(self._links):
            return await terminal(request)

        call_next = functools.partial(
            self._dispatch, index + 1, terminal=terminal, cancel_event=cancel_event
        )
        return await self._links[index].process(request, call_next, cancel_event)

    def __len__(self) -> int:
        return len(self._links)


class AuthChainMiddleware(BaseHTTPMiddleware):
    """
    Runs the authentication chain in front of the application.

    Each request gets a fresh ambient principal slot, so identities set by
    links never leak between requests. Exceptions raised by links propagate
    to the framework's error handling.
    """

    def __init__(self, app, chain: AuthChain):
        """
        Args:
            app: ASGI application
            chain: Assembled authentication chain
        """
        super().__init__(app)
        self.chain = chain

        logger.info(f"Initialized AuthChainMiddleware with schemes: {chain.schemes}")

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        """
        Process request through the authentication chain.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            Response from downstream handler or from a link that answered
        """
        with principal_scope(None):
            return await self.chain.run(request, call_next)
