"""API routes for health checks and caller identity"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from ..core.principal_context import get_current_principal, get_request_principal

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Does not require credentials: links only act on requests that carry
    them, so an anonymous health check passes through the chain untouched.

    Example Response:
        {
            "status": "healthy",
            "service": "authchain",
            "version": "1.0.0"
        }
    """
    return {
        "status": "healthy",
        "service": "authchain",
        "version": "1.0.0",
    }


@router.get("/api/v1/me")
async def current_user(request: Request) -> Response:
    """
    Return the caller resolved by the authentication chain.

    Reports both the ambient principal of this request and the principal
    attached to the request object; a link sets them together.

    Returns:
        200 with the principal, or 401 when the caller is anonymous
    """
    principal = get_current_principal()
    if principal is None or not principal.is_authenticated:
        logger.debug(f"Anonymous caller on {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "error": "not_authenticated",
                "message": "Authentication is required",
            },
        )

    request_principal = get_request_principal(request)
    return JSONResponse(
        content={
            "principal": principal.to_dict(),
            "request_principal": request_principal.to_dict() if request_principal else None,
        }
    )
