"""Base class for authentication-scheme chain links"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from starlette.requests import Request
from starlette.responses import Response

from .principal import Principal
from .principal_context import get_current_principal
from .principal_context import set_current_principal as _set_ambient_principal

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

XML_HTTP_REQUEST_HEADER = "X-REQUESTED-WITH"
XML_HTTP_REQUEST_VALUE = "XmlHttpRequest"


def get_originating_request(response: Response) -> Optional[Request]:
    """Return the request a response was produced for, if it was recorded"""
    return getattr(response, "request", None)


class AuthChainLink(ABC):
    """
    One authentication scheme in an ordered request-processing chain.

    Each link sees the inbound request before application logic does and may
    answer it directly (short-circuiting the rest of the chain), or let it
    proceed and post-process the response on the way back.

    Links are created once when the chain is assembled and shared by all
    requests, so subclasses must not keep per-request state on ``self``.
    Per-request data lives on the request, the response and the ambient
    principal context.
    """

    def __init__(self, include_by_default: bool = False, force_ssl: bool = False):
        """
        Args:
            include_by_default: Apply this link without an explicit opt-in
            force_ssl: Only authenticate requests made over HTTPS
        """
        if not self.auth_scheme:
            raise ValueError(f"{type(self).__name__} must define a non-empty auth_scheme")

        self._include_by_default = include_by_default
        self._force_ssl = force_ssl

    @property
    @abstractmethod
    def auth_scheme(self) -> str:
        """Identifier of the scheme, unique within a chain"""

    @property
    def bypass_anti_forgery_token(self) -> bool:
        """Whether requests authenticated by this scheme skip CSRF validation"""
        return False

    @property
    def include_by_default(self) -> bool:
        return self._include_by_default

    @property
    def force_ssl(self) -> bool:
        return self._force_ssl

    async def process(
        self,
        request: Request,
        call_next: CallNext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Response:
        """
        Run this link for one request.

        Args:
            request: Incoming HTTP request
            call_next: Rest of the chain plus the terminal handler
            cancel_event: Optional signal that aborts processing when set

        Returns:
            Response from on_inbound_request() if it produced one, otherwise
            the downstream response after on_outbound_response()

        Raises:
            asyncio.CancelledError: If cancel_event fires before completion
        """
        _raise_if_cancelled(cancel_event)
        response = await self.on_inbound_request(request)
        _raise_if_cancelled(cancel_event)

        if response is not None:
            # Outbound hooks of earlier links read the originating request
            if get_originating_request(response) is None:
                response.request = request
            return response

        raw_response = await _call_downstream(call_next, request, cancel_event)
        response = await self.on_outbound_response(raw_response)
        _raise_if_cancelled(cancel_event)
        return response

    async def on_inbound_request(self, request: Request) -> Optional[Response]:
        """
        Inspect an inbound request.

        Returns:
            None to let the request proceed, or a response that terminates
            inbound processing and is returned as-is
        """
        return None

    async def on_outbound_response(self, response: Response) -> Response:
        """Post-process the downstream response"""
        return response

    def needs_authentication(self, request: Request) -> bool:
        """
        Whether this link should authenticate the request.

        False when the request is not allowed to carry credentials under the
        SSL policy, or when the caller is already authenticated.
        """
        if self._satisfies_ssl_policy(request):
            principal = get_current_principal()
            return principal is None or not principal.is_authenticated

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"{self.auth_scheme}: request over {_request_scheme(request)!r} does not meet "
                f"SSL mode (force_ssl={self.force_ssl}); skipping authentication"
            )

        return False

    @staticmethod
    def is_xml_http_request(request: Optional[Request]) -> bool:
        """Whether the request was issued by browser script (X-Requested-With)"""
        if request is None:
            return False

        values = request.headers.getlist(XML_HTTP_REQUEST_HEADER)
        if not values or not values[0]:
            return False

        return values[0].lower() == XML_HTTP_REQUEST_VALUE.lower()

    @staticmethod
    def set_current_principal(principal: Principal, request: Request) -> None:
        """
        Make ``principal`` the caller for this request.

        Sets both the ambient slot of the executing request and the
        principal attached to the request object so they cannot disagree.
        """
        _set_ambient_principal(principal)
        request.state.principal = principal

    def _satisfies_ssl_policy(self, request: Request) -> bool:
        return not self.force_ssl or _request_scheme(request) == "https"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(auth_scheme={self.auth_scheme!r}, "
            f"include_by_default={self.include_by_default}, force_ssl={self.force_ssl})"
        )


def _raise_if_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError("request processing was cancelled")


async def _call_downstream(
    call_next: CallNext,
    request: Request,
    cancel_event: Optional[asyncio.Event],
) -> Response:
    """Await call_next, aborting it if cancel_event fires first."""
    if cancel_event is None:
        return await call_next(request)

    _raise_if_cancelled(cancel_event)

    # call_next runs in this task so principals set downstream stay visible
    # to outbound hooks; the watcher cancels this task when the event fires.
    task = asyncio.current_task()
    fired = False

    async def watch() -> None:
        nonlocal fired
        await cancel_event.wait()
        fired = True
        task.cancel()

    watcher = asyncio.ensure_future(watch())
    try:
        response = await call_next(request)
    finally:
        watcher.cancel()
        if fired and hasattr(task, "uncancel"):
            task.uncancel()

    _raise_if_cancelled(cancel_event)
    return response


def _request_scheme(request: Request) -> str:
    # Read from the scope: building request.url fails for upper-case schemes
    return request.scope.get("scheme", "http").lower()
