"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

# Library defaults; apps build their own hasher from config with make_hasher()
default_hasher = PasswordHasher()


def make_hasher(time_cost: int, memory_cost: int, parallelism: int) -> PasswordHasher:
    """Build an argon2id hasher with the given work factor."""
    return PasswordHasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)


def hash_password(password: str, hasher: PasswordHasher | None = None) -> str:
    """Hash a plaintext password using Argon2 (random salt per call)
    """
    return (hasher or default_hasher).hash(password)


def verify_password(password: str, password_hash: str, hasher: PasswordHasher | None = None) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return (hasher or default_hasher).verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InvalidToken(Exception):
    """Token is expired, tampered with, malformed or of the wrong type."""


class TokenIssuer:
    """
    Mints and validates signed, expiring JWTs.

    Validation is stateless (signature + expiry + issuer + type); revocation
    is handled separately by utils.revocation.TokenRevocationRegistry.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        issuer: str = "campus-app-api",
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def mint(self, claims: Dict[str, Any], ttl: timedelta, token_type: str = "access") -> str:
        now = _now()
        payload = dict(claims)
        payload.update(
            {
                "iss": self.issuer,
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "jti": generate_jti(),
                "type": token_type,
            }
        )
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def mint_access(self, user) -> str:
        return self.mint(
            {"sub": str(user.id), "email": user.email, "role": user.role},
            self.access_ttl,
            token_type="access",
        )

    def mint_refresh(self, user) -> str:
        return self.mint({"sub": str(user.id)}, self.refresh_ttl, token_type="refresh")

    def validate(
        self, token: str, expected_type: Optional[str] = None, verify_exp: bool = True
    ) -> Dict[str, Any]:
        """
        Decode and validate a JWT. Raises InvalidToken on invalid signature,
        expiry, issuer or (when expected_type is given) token type.
        verify_exp=False still checks the signature; use it only to learn who
        a token belongs to, never to authenticate.
        """
        if not token or not isinstance(token, str):
            raise InvalidToken("Missing token")
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "type"], "verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidToken("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(f"Invalid token: {exc}") from exc

        if expected_type and decoded.get("type") != expected_type:
            raise InvalidToken("Wrong token type")
        return decoded
