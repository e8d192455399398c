"""WWW-Authenticate challenge handling shared by scheme links"""

from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from ..core.chain_link import AuthChainLink


def add_challenge(response: Response, request: Optional[Request], challenge: str) -> Response:
    """
    Append a ``WWW-Authenticate`` challenge to a 401 response.

    Skipped when the originating request is unknown or came from browser
    script, and when the response already challenges with the same scheme.
    """
    if request is None or AuthChainLink.is_xml_http_request(request):
        return response

    scheme = challenge.split(" ", 1)[0].lower()
    for existing in response.headers.getlist("WWW-Authenticate"):
        if existing.split(" ", 1)[0].lower() == scheme:
            return response

    response.headers.append("WWW-Authenticate", challenge)
    return response
