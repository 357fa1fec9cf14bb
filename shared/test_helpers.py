"""
Test helper functions and in-memory fakes for the Homi journal gateway.
"""

import json
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
from bson import ObjectId
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

TEST_PROJECT_ID = "homi-test"
TEST_JWKS_URL = "https://keys.test/securetoken"
TEST_COMPLETION_URL = "https://oracle.test/v1/chat/completions"


@dataclass
class SigningKey:
    """RSA key pair standing in for the identity provider's signing key."""

    kid: str
    private_pem: str
    public_jwk: Dict[str, Any]


def create_signing_key(kid: Optional[str] = None) -> SigningKey:
    kid = kid or uuid.uuid4().hex
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return SigningKey(kid=kid, private_pem=private_pem, public_jwk=public_jwk)


def create_id_token(
    key: SigningKey,
    uid: str = "user-123",
    project_id: str = TEST_PROJECT_ID,
    expires_in: int = 3600,
    **overrides: Any,
) -> str:
    """Sign a token shaped like a Firebase ID token."""
    now = int(time.time())
    claims = {
        "iss": f"https://securetoken.google.com/{project_id}",
        "aud": project_id,
        "sub": uid,
        "user_id": uid,
        "auth_time": now,
        "iat": now,
        "exp": now + expires_in,
    }
    claims.update(overrides)
    return jwt.encode(claims, key.private_pem, algorithm="RS256", headers={"kid": key.kid})


def jwks_transport(keys: List[SigningKey], calls: Optional[List[httpx.Request]] = None) -> httpx.MockTransport:
    """Mock transport serving ``keys`` as a JWKS document."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(200, json={"keys": [key.public_jwk for key in keys]})

    return httpx.MockTransport(handler)


def completion_transport(
    text: Optional[str] = None,
    status_code: int = 200,
    body: Optional[str] = None,
    calls: Optional[List[httpx.Request]] = None,
) -> httpx.MockTransport:
    """Mock transport answering like a chat-completion endpoint."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if body is not None:
            return httpx.Response(status_code, text=body)
        payload = {"choices": [{"message": {"role": "assistant", "content": text}}]}
        return httpx.Response(status_code, content=json.dumps(payload).encode())

    return httpx.MockTransport(handler)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the fixed-window limiter."""

    def __init__(self):
        self.values: Dict[str, int] = {}
        self.expiries: Dict[str, int] = {}
        self.calls: List[str] = []

    async def incr(self, key: str) -> int:
        self.calls.append("incr")
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.calls.append("expire")
        self.expiries[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        self.calls.append("ttl")
        if key not in self.values:
            return -2
        return self.expiries.get(key, -1)

    def end_window(self, key: str) -> None:
        self.values.pop(key, None)
        self.expiries.pop(key, None)

    async def aclose(self) -> None:
        return None


@dataclass
class _InsertResult:
    inserted_id: ObjectId


@dataclass
class _UpdateResult:
    matched_count: int


@dataclass
class _DeleteResult:
    deleted_count: int


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs
        self._limit: Optional[int] = None

    def sort(self, field: str, direction: int) -> "FakeCursor":
        self._docs = sorted(self._docs, key=lambda doc: doc[field], reverse=direction < 0)
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._limit = count
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        docs = self._docs if self._limit is None else self._docs[: self._limit]
        return [dict(doc) for doc in docs]


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(doc.get(field) == value for field, value in query.items())


class FakeCollection:
    """In-memory stand-in for a pymongo async collection (equality filters only)."""

    def __init__(self, fail_with: Optional[Callable[[], Exception]] = None):
        self.docs: List[Dict[str, Any]] = []
        self.fail_with = fail_with

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with()

    async def insert_one(self, document: Dict[str, Any]) -> _InsertResult:
        self._maybe_fail()
        doc = dict(document)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return _InsertResult(inserted_id=doc["_id"])

    def find(self, query: Dict[str, Any]) -> FakeCursor:
        self._maybe_fail()
        return FakeCursor([doc for doc in self.docs if _matches(doc, query)])

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any]) -> _UpdateResult:
        self._maybe_fail()
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return _UpdateResult(matched_count=1)
        return _UpdateResult(matched_count=0)

    async def delete_one(self, query: Dict[str, Any]) -> _DeleteResult:
        self._maybe_fail()
        for index, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[index]
                return _DeleteResult(deleted_count=1)
        return _DeleteResult(deleted_count=0)

    def find_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        return [doc for doc in self.docs if doc.get("userId") == owner_id]
