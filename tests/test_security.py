from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from conftest import cheap_hasher
from utils.security import (
    InvalidToken,
    TokenIssuer,
    hash_password,
    make_hasher,
    verify_password,
)


@pytest.fixture
def hasher():
    return cheap_hasher()


def test_hash_then_verify(hasher) -> None:
    digest = hash_password("Abc12345!", hasher)

    assert digest != "Abc12345!"
    assert digest.startswith("$argon2id$")
    assert verify_password("Abc12345!", digest, hasher) is True
    assert verify_password("Abc12345?", digest, hasher) is False


def test_hash_is_salted(hasher) -> None:
    assert hash_password("Abc12345!", hasher) != hash_password("Abc12345!", hasher)


def test_verify_returns_false_for_garbage_digest(hasher) -> None:
    assert verify_password("Abc12345!", "not-a-hash", hasher) is False


def test_hashers_keep_their_own_work_factor() -> None:
    fast, slow = make_hasher(1, 1024, 1), make_hasher(2, 2048, 1)

    digest = hash_password("Abc12345!", fast)

    assert "t=1" in digest and "m=1024" in digest
    assert "t=2" in hash_password("Abc12345!", slow)
    assert fast.time_cost == 1
    assert verify_password("Abc12345!", digest, slow) is True


def test_mint_validate_round_trip(issuer: TokenIssuer) -> None:
    claims = {"sub": "user-1", "email": "a@b.com", "role": "visitor"}

    token = issuer.mint(claims, timedelta(minutes=5))
    decoded = issuer.validate(token, expected_type="access")

    assert {k: decoded[k] for k in claims} == claims
    assert decoded["type"] == "access"
    assert decoded["exp"] > decoded["iat"]


def test_tokens_are_unique_even_for_identical_claims(issuer: TokenIssuer) -> None:
    claims = {"sub": "user-1"}
    assert issuer.mint(claims, timedelta(minutes=5)) != issuer.mint(claims, timedelta(minutes=5))


def test_expired_token_is_invalid(issuer: TokenIssuer) -> None:
    token = issuer.mint({"sub": "user-1"}, timedelta(seconds=-10))

    with pytest.raises(InvalidToken, match="expired"):
        issuer.validate(token)


def test_tampered_token_is_invalid(issuer: TokenIssuer) -> None:
    token = issuer.mint({"sub": "user-1", "role": "visitor"}, timedelta(minutes=5))
    forged = jwt.encode(
        {**jwt.decode(token, options={"verify_signature": False}), "role": "admin"},
        "some-other-secret",
        algorithm="HS256",
    )

    with pytest.raises(InvalidToken):
        issuer.validate(forged)


def test_wrong_issuer_is_invalid(issuer: TokenIssuer) -> None:
    other = TokenIssuer(secret=issuer.secret, issuer="someone-else")
    token = other.mint({"sub": "user-1"}, timedelta(minutes=5))

    with pytest.raises(InvalidToken):
        issuer.validate(token)


def test_refresh_token_is_not_an_access_token(issuer: TokenIssuer) -> None:
    token = issuer.mint({"sub": "user-1"}, timedelta(minutes=5), token_type="refresh")

    with pytest.raises(InvalidToken, match="Wrong token type"):
        issuer.validate(token, expected_type="access")


@pytest.mark.parametrize("token", ["", "abc", "a.b.c"])
def test_malformed_tokens_are_invalid(issuer: TokenIssuer, token: str) -> None:
    with pytest.raises(InvalidToken):
        issuer.validate(token)


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ValueError):
        TokenIssuer(secret="")
