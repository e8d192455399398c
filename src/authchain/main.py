"""
authchain - Application factory

Wires the authentication chain in front of a FastAPI application:
- One chain link per configured auth scheme (Bearer, Basic)
- Per-request ambient principal, propagated to route handlers
- Challenge headers on 401 responses
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .core.auth_provider import IAuthProvider
from .core.chain_link import AuthChainLink
from .infrastructure import JwksAuthProvider
from .schemes import BasicAuthLink, BearerAuthLink, CredentialVerifier
from .api.middleware import AuthChain, AuthChainMiddleware
from .api.routes import router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager for startup/shutdown events"""
    # Startup
    settings = app.state.settings
    logger.info("Starting authchain v1.0.0")
    logger.info(f"Auth chain: {app.state.auth_chain.schemes}")
    logger.info(f"Listening on {settings.gateway_host}:{settings.gateway_port}")

    yield

    # Shutdown
    logger.info("Shutting down authchain")


def create_app(
    settings: Optional[Settings] = None,
    auth_provider: Optional[IAuthProvider] = None,
    credential_verifier: Optional[CredentialVerifier] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings (default: environment)
        auth_provider: Token validator for the Bearer scheme (default: JWKS from settings)
        credential_verifier: Username/password check for the Basic scheme

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    chain = _create_auth_chain(settings, auth_provider, credential_verifier)

    app = FastAPI(
        title="authchain",
        description="Authentication chain in front of application routes",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.auth_chain = chain

    app.add_middleware(AuthChainMiddleware, chain=chain)
    # Added last: outermost, so preflight requests never reach the chain
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


def _create_auth_chain(
    settings: Settings,
    auth_provider: Optional[IAuthProvider],
    credential_verifier: Optional[CredentialVerifier],
) -> AuthChain:
    """
    Build one link per configured scheme, in configured order.

    Raises:
        ValueError: If a scheme is not supported or lacks its configuration
    """
    links: List[AuthChainLink] = []

    for scheme in settings.auth_schemes_list:
        name = scheme.lower()
        if name == "bearer":
            provider = auth_provider or _create_auth_provider(settings)
            links.append(BearerAuthLink(provider, force_ssl=settings.force_ssl))
        elif name == "basic":
            if credential_verifier is None:
                logger.warning("Basic scheme configured without a credential verifier, skipping")
                continue
            links.append(
                BasicAuthLink(
                    credential_verifier,
                    realm=settings.basic_realm,
                    force_ssl=settings.force_ssl,
                )
            )
        else:
            raise ValueError(f"Unsupported auth scheme: {scheme}")

    return AuthChain(links, opt_in_schemes=settings.opt_in_schemes_list)


def _create_auth_provider(settings: Settings) -> IAuthProvider:
    if not settings.jwks_url:
        raise ValueError("Bearer scheme requires JWKS_URL (or an explicit auth provider)")

    logger.info("Using JWKS token provider")
    return JwksAuthProvider(
        jwks_url=settings.jwks_url,
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        cache_ttl=settings.jwk_cache_ttl,
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "authchain.main:create_app",
        factory=True,
        host=settings.gateway_host,
        port=settings.gateway_port,
        log_level=settings.log_level.lower(),
    )
