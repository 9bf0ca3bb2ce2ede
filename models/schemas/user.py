import re

from marshmallow import Schema, fields, pre_load, validates, ValidationError, validate

PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'
_PASSWORD_RE = re.compile(
    r"^(?=.*[A-Za-z])(?=.*\d)(?=.*[" + re.escape(PASSWORD_SYMBOLS) + r"]).{8,}$"
)
PASSWORD_POLICY_MESSAGE = (
    "Password must be at least 8 characters long, contain at least one letter, "
    "one number, and one special character."
)


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def check_password_policy(value: str) -> None:
    if not isinstance(value, str) or not _PASSWORD_RE.match(value):
        raise ValidationError(PASSWORD_POLICY_MESSAGE)


def _not_blank(value):
    if not value or not value.strip():
        raise ValidationError("Field cannot be empty.")


class OtpCode(fields.Field):
    """A numeric code sent as a digit string or a JSON number."""

    default_error_messages = {"invalid": "OTP must be a string of digits."}

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool):
            raise self.make_error("invalid")
        if isinstance(value, int) and value >= 0:
            return str(value)
        if isinstance(value, str) and re.fullmatch(r"[0-9]+", value.strip()):
            return value.strip()
        raise self.make_error("invalid")


class _EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class UserCreateSchema(_EmailNormalizingSchema):
    first_name = fields.String(required=True, data_key="firstName", validate=_not_blank)
    last_name = fields.String(required=True, data_key="lastName", validate=_not_blank)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        check_password_policy(value)


class UserLoginSchema(_EmailNormalizingSchema):
    email = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, validate=validate.Length(min=1))


class RefreshSchema(Schema):
    refresh_token = fields.String(required=True, data_key="refreshToken", validate=validate.Length(min=1))


class EmailSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)


class OtpVerifySchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    otp = OtpCode(required=True)


class PasswordResetSchema(_EmailNormalizingSchema):
    email = fields.Email(required=True)
    new_password = fields.String(required=True, load_only=True, data_key="newPassword")

    @validates("new_password")
    def validate_password(self, value, **kwargs):
        check_password_policy(value)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    first_name = fields.String(data_key="firstName")
    last_name = fields.String(data_key="lastName")
    email = fields.String()
    role = fields.String()
