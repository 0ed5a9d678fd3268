import re

from marshmallow import Schema, ValidationError, EXCLUDE

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


class BodySchema(Schema):
    """Request bodies ignore keys they do not know about."""

    class Meta:
        unknown = EXCLUDE


def norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def norm_text(v):
    return v.strip() if isinstance(v, str) else v


def validate_username(value: str) -> None:
    if not 3 <= len(value) <= 50:
        raise ValidationError("Username must be between 3 and 50 characters")
    if not USERNAME_RE.match(value):
        raise ValidationError("Username can only contain letters, numbers, underscores, and hyphens")


def validate_password_strength(value: str) -> None:
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if not (any(c.islower() for c in value) and any(c.isupper() for c in value) and any(c.isdigit() for c in value)):
        raise ValidationError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )


def validate_uuid(value: str) -> None:
    if value is not None and not UUID_RE.match(value):
        raise ValidationError("Invalid ID")
