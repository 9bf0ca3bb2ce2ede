"""Authentication service: register, login, logout, refresh and password reset."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Dict, List, Optional

from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from argon2 import PasswordHasher

from models.user import User
from models.schemas.user import (
    UserCreateSchema,
    UserOutSchema,
    UserLoginSchema,
    RefreshSchema,
    EmailSchema,
    OtpVerifySchema,
    PasswordResetSchema,
)
from services.exceptions import Conflict, DependencyFailure, NotFound, Unauthorized
from utils.mailer import Mailer, redact_email
from utils.otp import OtpManager, OtpStatus
from utils.revocation import TokenRevocationRegistry
from utils.security import InvalidToken, TokenIssuer, hash_password, verify_password

logger = logging.getLogger(__name__)

user_create_schema = UserCreateSchema()
user_login_schema = UserLoginSchema()
refresh_schema = RefreshSchema()
email_schema = EmailSchema()
otp_verify_schema = OtpVerifySchema()
password_reset_schema = PasswordResetSchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


def role_for_email(email: str, institution_domain: str) -> str:
    """Students register with an institutional address; everyone else is a visitor."""
    suffix = "@" + institution_domain.lstrip("@").lower()
    return "student" if email.strip().lower().endswith(suffix) else "visitor"


def _store_call(fn):
    """Turn storage failures into DependencyFailure."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Credential store failure in %s", fn.__name__)
            raise DependencyFailure() from exc
    return wrapper


class AuthService:
    """
    Orchestrates the credential store, password hasher, token issuer,
    revocation registry and OTP manager.

    The password hasher, revocation registry and OTP manager are owned by
    the instance, so every app (and every test) gets its own work factor and
    in-memory state.
    """

    def __init__(
        self,
        storage,
        issuer: TokenIssuer,
        revocations: Optional[TokenRevocationRegistry] = None,
        otp: Optional[OtpManager] = None,
        institution_domain: str = "northeastern.edu",
        rotate_refresh_tokens: bool = False,
        hasher: Optional[PasswordHasher] = None,
    ):
        self.storage = storage
        self.issuer = issuer
        self.revocations = revocations or TokenRevocationRegistry()
        # Without a configured mailer every OTP send fails as a dependency failure
        self.otp = otp or OtpManager(Mailer())
        self.hasher = hasher or PasswordHasher()
        self.institution_domain = institution_domain
        self.rotate_refresh_tokens = rotate_refresh_tokens

    # ---- helpers --------------------------------------------------------

    def _expires_in(self) -> int:
        return int(self.issuer.access_ttl.total_seconds())

    def _issue_session(self, user: User) -> Dict[str, Any]:
        """Mint an access/refresh pair and store the refresh token on the user."""
        access_token = self.issuer.mint_access(user)
        refresh_token = self.issuer.mint_refresh(user)
        self.storage.update_by_id(user.id, {"refresh_token": refresh_token})
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": self._expires_in(),
            "user": user_out_schema.dump(user),
        }

    def _retire_access_token(self, token: str, user: User) -> None:
        """Revoke a superseded access token, but only one that belongs to this user."""
        try:
            owner = self.issuer.validate(token, verify_exp=False).get("sub")
        except InvalidToken:
            owner = None
        if owner != str(user.id):
            logger.warning("Refresh for %s presented an access token it does not own; not revoked", user.id)
            return
        self.revocations.revoke(token)

    def _require_user_by_email(self, email: str) -> User:
        user = self.storage.find_by_email(email)
        if user is None:
            raise NotFound("User with this email does not exist.")
        return user

    # ---- flows ----------------------------------------------------------

    @_store_call
    def register(self, first_name: str, last_name: str, email: str, password: str) -> Dict[str, Any]:
        data = user_create_schema.load(
            {"firstName": first_name, "lastName": last_name, "email": email, "password": password}
        )
        email = data["email"]
        if self.storage.find_by_email(email) is not None:
            raise Conflict(
                f"A user with the email address {email} is already registered. "
                "Please try logging in instead."
            )

        user = User(
            first_name=data["first_name"].strip(),
            last_name=data["last_name"].strip(),
            email=email,
            password_hash=hash_password(data["password"], self.hasher),
            role=role_for_email(email, self.institution_domain),
        )
        try:
            self.storage.insert(user)
        except IntegrityError as exc:
            # Lost a race with a concurrent registration of the same email
            raise Conflict(f"A user with the email address {email} is already registered.") from exc
        logger.info("Registered %s as %s", redact_email(email), user.role)
        return self._issue_session(user)

    @_store_call
    def create_admin(self, first_name: str, last_name: str, email: str, password: str) -> Dict[str, Any]:
        data = user_create_schema.load(
            {"firstName": first_name, "lastName": last_name, "email": email, "password": password}
        )
        if self.storage.find_by_email(data["email"]) is not None:
            raise Conflict(f"A user with the email address {data['email']} is already registered.")
        user = User(
            first_name=data["first_name"].strip(),
            last_name=data["last_name"].strip(),
            email=data["email"],
            password_hash=hash_password(data["password"], self.hasher),
            role="admin",
        )
        self.storage.insert(user)
        logger.info("Created admin %s", redact_email(user.email))
        return user_out_schema.dump(user)

    @_store_call
    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = user_login_schema.load({"email": email, "password": password})
        user = self.storage.find_by_email(data["email"])
        if user is None or not verify_password(data["password"], user.password_hash, self.hasher):
            logger.warning("Failed login for %s", redact_email(data["email"]))
            raise Unauthorized("Invalid credentials")
        logger.info("Login for %s", redact_email(user.email))
        return self._issue_session(user)

    def authenticate(self, access_token: str) -> Dict[str, Any]:
        """Return the claims of a live access token or raise Unauthorized."""
        if not access_token:
            raise Unauthorized("Missing Authorization header")
        if self.revocations.is_revoked(access_token):
            raise Unauthorized("Token is invalid (logged out)")
        try:
            return self.issuer.validate(access_token, expected_type="access")
        except InvalidToken as exc:
            raise Unauthorized(str(exc)) from exc

    @_store_call
    def logout(self, access_token: str, claims: Optional[Dict[str, Any]] = None) -> None:
        """
        Revoke the access token unconditionally. When the caller's identity
        is known, also clear the stored refresh token.
        """
        if not access_token or not access_token.strip():
            raise ValidationError({"Authorization": ["Access token is required."]})
        if claims is None:
            try:
                claims = self.authenticate(access_token)
            except Unauthorized:
                claims = None
        self.revocations.revoke(access_token)
        if claims and claims.get("sub"):
            self.storage.update_by_id(claims["sub"], {"refresh_token": None})
        logger.info("Logout (identity known: %s)", bool(claims))

    @_store_call
    def refresh(self, refresh_token: str, old_access_token: Optional[str] = None) -> Dict[str, Any]:
        data = refresh_schema.load({"refreshToken": refresh_token})
        refresh_token = data["refresh_token"]
        try:
            claims = self.issuer.validate(refresh_token, expected_type="refresh")
        except InvalidToken as exc:
            raise Unauthorized(str(exc)) from exc

        user = self.storage.find_by_id(claims.get("sub"))
        if user is None or user.refresh_token != refresh_token:
            logger.warning("Rejected refresh token for subject %s", claims.get("sub"))
            raise Unauthorized("Invalid refresh token")

        result: Dict[str, Any] = {
            "access_token": self.issuer.mint_access(user),
            "token_type": "bearer",
            "expires_in": self._expires_in(),
        }
        if self.rotate_refresh_tokens:
            new_refresh = self.issuer.mint_refresh(user)
            self.storage.update_by_id(user.id, {"refresh_token": new_refresh})
            result["refresh_token"] = new_refresh
        if old_access_token:
            self._retire_access_token(old_access_token, user)
        return result

    @_store_call
    def forgot_password(self, email: str) -> None:
        data = email_schema.load({"email": email})
        self._require_user_by_email(data["email"])
        self.otp.issue(data["email"])

    def verify_otp(self, email: str, code: str) -> OtpStatus:
        data = otp_verify_schema.load({"email": email, "otp": code})
        return self.otp.verify(data["email"], data["otp"])

    def resend_otp(self, email: str) -> None:
        data = email_schema.load({"email": email})
        self.otp.resend(data["email"])

    @_store_call
    def reset_password(self, email: str, new_password: str) -> None:
        """
        Set a new password. Not bound to a prior successful verify_otp call:
        knowing the email is enough.
        """
        data = password_reset_schema.load({"email": email, "newPassword": new_password})
        user = self._require_user_by_email(data["email"])
        self.storage.update_by_id(user.id, {"password_hash": hash_password(data["new_password"], self.hasher)})
        logger.info("Password reset for %s", redact_email(user.email))

    @_store_call
    def get_user(self, user_id: str) -> Dict[str, Any]:
        user = self.storage.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user_out_schema.dump(user)

    @_store_call
    def list_users(self) -> List[Dict[str, Any]]:
        users = sorted(self.storage.all(User).values(), key=lambda u: u.email)
        return user_list_out_schema.dump(users)
