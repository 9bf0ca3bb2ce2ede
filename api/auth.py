"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/logout
- POST /auth/refresh
- POST /auth/forgot_password
- POST /auth/verify_otp
- POST /auth/resend_otp
- POST /auth/reset_password
- GET  /auth/protected

The handlers only parse the request and shape the response; the flows live
in services.auth_service.AuthService (argon2 hashing, HS256 JWTs, in-memory
blacklist and OTP store).
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from utils.decorators import get_auth_service, get_presented_token, jwt_required
from utils.otp import OtpStatus

bp = Blueprint("auth", __name__)

# OtpStatus -> (status, error code, message)
OTP_RESPONSES = {
    OtpStatus.OK: (200, None, "OTP verified. You can now reset your password."),
    OtpStatus.NOT_FOUND: (404, "OTP_NOT_FOUND", "No OTP found for this email. Request a new one."),
    OtpStatus.EXPIRED: (400, "OTP_EXPIRED", "OTP has expired. Request a new one."),
    OtpStatus.MISMATCH: (400, "OTP_MISMATCH", "Invalid OTP."),
}


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.post("/register")
def register():
    """
    Register a new user. Role is student for institutional emails, visitor otherwise.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            firstName: { type: string }
            lastName: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created (returns tokens and user)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = _payload()
    session = get_auth_service().register(
        payload.get("firstName"),
        payload.get("lastName"),
        payload.get("email"),
        payload.get("password"),
    )
    return jsonify({"message": "Account created successfully!", **session}), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = _payload()
    session = get_auth_service().login(payload.get("email"), payload.get("password"))
    return jsonify({"message": "Login successful", **session}), 200


@bp.post("/logout")
def logout():
    """
    Logout: blacklist the presented access token and clear the stored refresh token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out (also for already invalid tokens)
      422:
        description: Missing Authorization header
    """
    get_auth_service().logout(get_presented_token())
    return jsonify({"message": "Logged out successfully"}), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange the stored refresh token for a new access token.
    The old access token, if sent in the Authorization header, is blacklisted.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns a new access token)
      401:
        description: Invalid, expired or superseded refresh token
    """
    payload = _payload()
    result = get_auth_service().refresh(payload.get("refreshToken"), get_presented_token() or None)
    return jsonify(result), 200


@bp.post("/forgot_password")
def forgot_password():
    """
    Email a one-time password for resetting the password
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: OTP sent
      404:
        description: Unknown email
      500:
        description: Email could not be sent
    """
    get_auth_service().forgot_password(_payload().get("email"))
    return jsonify({"message": "OTP sent to your email."}), 200


@bp.post("/verify_otp")
def verify_otp():
    """
    Verify (and consume) a one-time password
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             otp: { type: string, description: "Digits; a JSON number is also accepted" }
    responses:
      200:
        description: OTP verified
      400:
        description: OTP expired or incorrect
      404:
        description: No OTP for this email
    """
    payload = _payload()
    status = get_auth_service().verify_otp(payload.get("email"), payload.get("otp"))
    code, error, message = OTP_RESPONSES[status]
    if error is None:
        return jsonify({"message": message}), code
    return jsonify({"error": error, "message": message, "status": code}), code


@bp.post("/resend_otp")
def resend_otp():
    """
    Send a fresh one-time password for an email that already requested one
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: OTP re-sent
      404:
        description: No earlier OTP request for this email
    """
    get_auth_service().resend_otp(_payload().get("email"))
    return jsonify({"message": "A new OTP has been sent to your email."}), 200


@bp.post("/reset_password")
def reset_password():
    """
    Set a new password
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             newPassword: { type: string }
    responses:
      200:
        description: Password updated
      404:
        description: Unknown email
      422:
        description: Password does not meet the policy
    """
    payload = _payload()
    get_auth_service().reset_password(payload.get("email"), payload.get("newPassword"))
    return jsonify({"message": "Password has been reset successfully."}), 200


@bp.get("/protected")
@jwt_required()
def protected():
    """
    Example protected route: echoes the token claims
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Missing, invalid, expired or logged-out token
    """
    return jsonify({"message": "You have access!", "user": g.current_claims}), 200
