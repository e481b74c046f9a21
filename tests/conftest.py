"""
Shared test fixtures.

- `provider_api`: routed fake for every outbound provider call
  (`httpx.MockTransport`); unknown routes answer 404.
- `rsa_signer` / `ec_key_file`: real keys generated with `cryptography`.
- `db_session`: SQLAlchemy async session on a temporary SQLite file.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jose import jwk, jwt

from headless_oauth.core.database import create_all, create_engine, create_session_factory
from headless_oauth.core.security import TokenIssuer

# ---------------------------------------------------------------------------
# Fake provider HTTP API
# ---------------------------------------------------------------------------

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeProviderApi:
    """Route table keyed by (METHOD, scheme://host/path); query strings are ignored."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Responder]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        json: Any = None,
        status: int = 200,
        text: Optional[str] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        """Queue a response; the last queued response for a route repeats."""
        responder: Responder
        if handler is not None:
            responder = handler
        elif text is not None:
            responder = httpx.Response(status, text=text)
        else:
            responder = httpx.Response(status, json=json)
        self.routes.setdefault((method.upper(), url), []).append(responder)

    def calls(self, method: str, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and _route_url(r) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, _route_url(request)))
        if not queue:
            return httpx.Response(404, json={"message": "not found"})
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(responder) and not isinstance(responder, httpx.Response):
            return responder(request)
        return responder


def _route_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


def form_data(request: httpx.Request) -> Dict[str, str]:
    """Decode an application/x-www-form-urlencoded request body."""
    return dict(httpx.QueryParams(request.content.decode("utf-8")))


@pytest.fixture
def provider_api() -> FakeProviderApi:
    return FakeProviderApi()


@pytest_asyncio.fixture
async def http_client(provider_api: FakeProviderApi):
    client = httpx.AsyncClient(transport=httpx.MockTransport(provider_api), timeout=10.0)
    yield client
    await client.aclose()


# ---------------------------------------------------------------------------
# Keys and tokens
# ---------------------------------------------------------------------------


class RsaSigner:
    """RSA key pair publishing itself as a JWKS entry."""

    def __init__(self, kid: str = "test-key-1"):
        self.kid = kid
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.private_pem = private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("utf-8")
        public_pem = private_key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")
        self.public_jwk = {**jwk.construct(public_pem, "RS256").to_dict(), "kid": kid, "use": "sig"}

    def jwks(self) -> Dict[str, Any]:
        return {"keys": [self.public_jwk]}

    def sign(self, claims: Dict[str, Any], kid: Optional[str] = None) -> str:
        return jwt.encode(claims, self.private_pem, algorithm="RS256", headers={"kid": kid or self.kid})


def id_token_claims(issuer: str, audience: Any, **overrides: Any) -> Dict[str, Any]:
    now = int(time.time())
    claims: Dict[str, Any] = {
        "iss": issuer,
        "aud": audience,
        "sub": "subject-123",
        "email": "jane@example.com",
        "iat": now,
        "exp": now + 600,
    }
    claims.update(overrides)
    return claims


@pytest.fixture(scope="session")
def rsa_signer() -> RsaSigner:
    return RsaSigner()


@pytest.fixture(scope="session")
def ec_private_pem() -> str:
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def ec_key_file(tmp_path, ec_private_pem: str) -> str:
    """Apple-style AuthKey_XXXX.p8 file."""
    path = tmp_path / "AuthKey_TESTKEY123.p8"
    path.write_text(ec_private_pem, encoding="utf-8")
    return str(path)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(secret_key="test-secret-" + uuid.uuid4().hex, algorithm="HS256", expire_minutes=60)
