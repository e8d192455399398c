"""Core chain-link contract, principals and the ambient caller context"""

from .auth_provider import IAuthProvider
from .chain_link import AuthChainLink, CallNext, get_originating_request
from .principal import AnonymousPrincipal, Principal, UserPrincipal
from .principal_context import (
    get_current_principal,
    get_request_principal,
    principal_scope,
)

__all__ = [
    "IAuthProvider",
    "AuthChainLink",
    "CallNext",
    "get_originating_request",
    "Principal",
    "UserPrincipal",
    "AnonymousPrincipal",
    "get_current_principal",
    "get_request_principal",
    "principal_scope",
]
