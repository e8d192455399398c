"""Ambient "current caller" slot, scoped to the executing request.

The slot is a ``ContextVar``: every asyncio task (and therefore every request
handled by Starlette) sees its own copy, so a principal set while processing
one request is never visible to a concurrently running one.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

from starlette.requests import Request

from .principal import Principal

_current_principal: ContextVar[Optional[Principal]] = ContextVar(
    "authchain_current_principal", default=None
)


def get_current_principal() -> Optional[Principal]:
    """Return the caller identity for the current unit of work, if any"""
    return _current_principal.get()


def set_current_principal(principal: Optional[Principal]) -> Token:
    """
    Set the caller identity for the current unit of work.

    Returns:
        Token that restores the previous value via reset_current_principal()
    """
    return _current_principal.set(principal)


def reset_current_principal(token: Token) -> None:
    _current_principal.reset(token)


@contextmanager
def principal_scope(principal: Optional[Principal] = None) -> Iterator[None]:
    """
    Bind ``principal`` as the ambient caller for the duration of the block.

    Used by the chain middleware to give each request a clean slot.
    """
    token = _current_principal.set(principal)
    try:
        yield
    finally:
        _current_principal.reset(token)


def get_request_principal(request: Request) -> Optional[Principal]:
    """Return the principal attached to a specific request object"""
    return getattr(request.state, "principal", None)
