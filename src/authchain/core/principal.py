"""Caller identities resolved by authentication schemes"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List


class Principal(ABC):
    """
    Resolved identity of the caller.

    Concrete schemes return whichever representation suits them; the chain
    only relies on ``is_authenticated`` and ``name``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier of the caller"""

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        """Whether the identity was established by an authentication scheme"""

    @property
    def auth_type(self) -> str:
        return ""

    def is_in_role(self, role: str) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "authenticated": self.is_authenticated,
            "auth_type": self.auth_type,
        }


@dataclass
class UserPrincipal(Principal):
    """Authenticated user extracted from validated credentials"""

    user_id: str
    email: str = ""
    roles: List[str] = field(default_factory=list)
    email_verified: bool = False
    scheme: str = ""

    @property
    def name(self) -> str:
        return self.user_id

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def auth_type(self) -> str:
        return self.scheme

    def is_in_role(self, role: str) -> bool:
        return role in self.roles

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "email": self.email,
                "roles": list(self.roles),
                "email_verified": self.email_verified,
            }
        )
        return data


class AnonymousPrincipal(Principal):
    """Placeholder identity for callers that did not authenticate"""

    @property
    def name(self) -> str:
        return ""

    @property
    def is_authenticated(self) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AnonymousPrincipal)

    def __hash__(self) -> int:
        return hash(AnonymousPrincipal)

    def __repr__(self) -> str:
        return "AnonymousPrincipal()"
