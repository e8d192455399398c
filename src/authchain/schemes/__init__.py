"""Concrete authentication scheme links"""

from .basic import BasicAuthLink, CredentialVerifier
from .bearer import BearerAuthLink

__all__ = ["BasicAuthLink", "BearerAuthLink", "CredentialVerifier"]
