from marshmallow import Schema, fields, pre_load, validates, validate

from models.schemas.common import (
    BodySchema,
    norm_email,
    norm_text,
    validate_password_strength,
    validate_username,
)


class RegisterSchema(BodySchema):
    username = fields.String(required=True)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    display_name = fields.String(data_key="displayName", allow_none=True, validate=validate.Length(max=100))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = norm_email(data["email"])
            for key in ("username", "displayName"):
                if key in data:
                    data[key] = norm_text(data[key])
        return data

    @validates("username")
    def _validate_username(self, value, **kwargs):
        validate_username(value)

    @validates("password")
    def _validate_password(self, value, **kwargs):
        validate_password_strength(value)


class LoginSchema(BodySchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = norm_email(data["email"])
        return data


class RefreshSchema(BodySchema):
    refresh_token = fields.String(
        data_key="refreshToken",
        required=True,
        validate=validate.Length(min=1),
        error_messages={"required": "Refresh token is required"},
    )


class UserOutSchema(Schema):
    user_id = fields.String(attribute="id", data_key="userId")
    username = fields.String()
    email = fields.String()
    display_name = fields.String(data_key="displayName", allow_none=True)
    avatar_url = fields.String(data_key="avatarUrl", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
    last_login = fields.DateTime(data_key="lastLogin", allow_none=True)
