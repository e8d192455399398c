"""Tests for JwksAuthProvider with a locally generated RSA key"""

import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from authchain.infrastructure import jwks_provider
from authchain.infrastructure.jwks_provider import JwksAuthProvider

JWKS_URL = "https://idp.example.com/.well-known/jwks.json"


@pytest.fixture(scope="module")
def rsa_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def jwks_server(monkeypatch, rsa_keys):
    """Serve the public key through an httpx MockTransport; returns request log."""
    _, public_pem = rsa_keys
    public_jwk = jwk.construct(public_pem, algorithm="RS256").to_dict()
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        return httpx.Response(200, json={"keys": [public_jwk]})

    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(jwks_provider.httpx, "AsyncClient", client_factory)
    return requests


def _token(private_pem, **overrides):
    claims = {
        "sub": "user-1",
        "email": "user1@example.com",
        "roles": ["viewer"],
        "email_verified": True,
        "aud": "authchain-api",
        "iss": "https://idp.example.com",
        "exp": int(time.time()) + 300,
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS256")


def _provider(**kwargs):
    kwargs.setdefault("audience", "authchain-api")
    kwargs.setdefault("issuer", "https://idp.example.com")
    return JwksAuthProvider(JWKS_URL, **kwargs)


def test_jwks_url_is_required():
    with pytest.raises(ValueError):
        JwksAuthProvider("")


@pytest.mark.asyncio
async def test_valid_token_yields_user_principal(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys
    provider = _provider()

    principal = await provider.validate_token(_token(private_pem))

    assert principal.user_id == "user-1"
    assert principal.email == "user1@example.com"
    assert principal.roles == ["viewer"]
    assert principal.email_verified is True
    assert principal.auth_type == "Bearer"
    assert principal.is_authenticated
    assert jwks_server == [JWKS_URL]


@pytest.mark.asyncio
async def test_signing_key_is_cached(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys
    provider = _provider()

    await provider.validate_token(_token(private_pem))
    await provider.validate_token(_token(private_pem, sub="user-2"))

    assert len(jwks_server) == 1


@pytest.mark.asyncio
async def test_expired_token_is_rejected(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys

    with pytest.raises(ValueError, match="expired"):
        await _provider().validate_token(_token(private_pem, exp=int(time.time()) - 60))


@pytest.mark.asyncio
async def test_wrong_audience_is_rejected(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys

    with pytest.raises(ValueError, match="Invalid token"):
        await _provider().validate_token(_token(private_pem, aud="someone-else"))


@pytest.mark.asyncio
async def test_garbage_token_is_rejected(jwks_server):
    with pytest.raises(ValueError, match="Invalid token"):
        await _provider().validate_token("not-a-jwt")


@pytest.mark.asyncio
async def test_missing_subject_is_rejected(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys

    with pytest.raises(ValueError, match="missing subject"):
        await _provider().validate_token(_token(private_pem, sub=""))


@pytest.mark.asyncio
async def test_unreachable_jwks_endpoint(monkeypatch):
    real_client = httpx.AsyncClient

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(
        jwks_provider.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    with pytest.raises(ValueError, match="Cannot fetch JWKS"):
        await _provider().validate_token("whatever")


@pytest.mark.asyncio
async def test_empty_jwks_document(monkeypatch):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        jwks_provider.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"keys": []})),
            **kwargs,
        ),
    )

    with pytest.raises(ValueError, match="No signing keys"):
        await _provider().validate_token("whatever")


def _serve_jwks(monkeypatch, document):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        jwks_provider.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=document)),
            **kwargs,
        ),
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "document",
    [
        {"keys": [{"kty": "RSA", "e": "AQAB"}]},
        {"keys": ["not-a-key"]},
        {"keys": [{"kty": "RSA"}]},
    ],
)
async def test_malformed_jwks_entry_is_a_value_error(monkeypatch, document):
    _serve_jwks(monkeypatch, document)

    with pytest.raises(ValueError, match="Invalid JWKS format"):
        await _provider().validate_token("whatever")


@pytest.mark.asyncio
async def test_string_roles_claim_is_a_single_role(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys

    principal = await _provider().validate_token(_token(private_pem, roles="admin"))

    assert principal.roles == ["admin"]
    assert principal.is_in_role("admin")
    assert not principal.is_in_role("a")


@pytest.mark.asyncio
async def test_missing_roles_claim_means_no_roles(jwks_server, rsa_keys):
    private_pem, _ = rsa_keys

    principal = await _provider().validate_token(_token(private_pem, roles=None))

    assert principal.roles == []
