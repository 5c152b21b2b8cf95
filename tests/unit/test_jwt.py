"""Token verification, expiry reading and fingerprinting."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timezone

import jwt
import pytest

from finquest.auth.errors import MalformedToken
from finquest.auth.jwt import TokenVerifier, hash_token, read_expiry
from finquest.config import Settings
from tests.conftest import TEST_JWT_SECRET, make_token


def _verifier(**overrides) -> TokenVerifier:
    values = {"jwt_algorithm": "HS256", "jwt_secret": TEST_JWT_SECRET, "jwt_issuer": None, **overrides}
    return TokenVerifier(Settings(_env_file=None, **values))


def _unsigned(payload: dict) -> str:
    """A structurally valid JWT with an arbitrary payload and a junk signature."""
    def part(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    return f"{part({'alg': 'HS256', 'typ': 'JWT'})}.{part(payload)}.c2ln"


class TestTokenVerifier:
    def test_valid_token(self):
        payload = _verifier().verify(make_token("alice", role="admin"))
        assert payload["sub"] == "alice"
        assert payload["role"] == "admin"

    def test_expired_token_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            _verifier().verify(make_token(expires_in=-60))

    def test_wrong_secret_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            _verifier().verify(make_token(secret="another-secret-that-is-long-enough!"))

    def test_missing_subject_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            _verifier().verify(make_token(sub=None))

    def test_issuer_enforced_when_configured(self):
        verifier = _verifier(jwt_issuer="finquest-auth")
        assert verifier.verify(make_token(iss="finquest-auth"))["sub"] == "user-1"
        with pytest.raises(jwt.InvalidTokenError):
            verifier.verify(make_token(iss="someone-else"))
        with pytest.raises(jwt.InvalidTokenError):
            verifier.verify(make_token())

    def test_garbage_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            _verifier().verify("not-a-jwt")


class TestReadExpiry:
    def test_reads_exp_without_verifying(self):
        token = make_token(secret="unrelated-secret-unrelated-secret!!")
        expires_at = read_expiry(token)
        assert expires_at.tzinfo is not None
        assert expires_at > datetime.now(timezone.utc)

    def test_expired_token_still_readable(self):
        assert read_expiry(make_token(expires_in=-3600)) < datetime.now(timezone.utc)

    def test_exact_value(self):
        token = _unsigned({"sub": "u", "exp": 1_900_000_000})
        assert read_expiry(token) == datetime.fromtimestamp(1_900_000_000, tz=timezone.utc)

    @pytest.mark.parametrize(
        "token",
        [
            "not-a-jwt",
            "",
            _unsigned({"sub": "u"}),
            _unsigned({"sub": "u", "exp": "tomorrow"}),
            _unsigned({"sub": "u", "exp": True}),
            _unsigned({"sub": "u", "exp": 10**20}),
        ],
    )
    def test_malformed(self, token):
        with pytest.raises(MalformedToken):
            read_expiry(token)


class TestHashToken:
    def test_sha256_hex(self):
        digest = hash_token("abc")
        assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_distinct_tokens_distinct_hashes(self):
        assert hash_token(make_token("a")) != hash_token(make_token("b"))
