from marshmallow import Schema, fields, pre_load, validate

from models.collaboration import INVITABLE_ROLES
from models.schemas.common import BodySchema, norm_email, validate_uuid

ROLE_ERROR = "Role must be editor or viewer"


class InviteSchema(BodySchema):
    project_id = fields.String(data_key="projectId", required=True, validate=validate_uuid)
    email = fields.Email(required=True)
    role = fields.String(required=True, validate=validate.OneOf(INVITABLE_ROLES, error=ROLE_ERROR))
    permissions = fields.Dict(load_default=dict)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = norm_email(data["email"])
        return data


class CollaborationUpdateSchema(BodySchema):
    role = fields.String(validate=validate.OneOf(INVITABLE_ROLES, error=ROLE_ERROR))
    permissions = fields.Dict()


class CollaborationOutSchema(Schema):
    collaboration_id = fields.String(attribute="id", data_key="collaborationId")
    project_id = fields.String(data_key="projectId")
    user_id = fields.String(data_key="userId")
    role = fields.String()
    permissions = fields.Dict(allow_none=True)
    invited_at = fields.DateTime(data_key="invitedAt")
    accepted_at = fields.DateTime(data_key="acceptedAt", allow_none=True)
    username = fields.Function(lambda obj: obj.user.username if obj.user else None)
    email = fields.Function(lambda obj: obj.user.email if obj.user else None)
    display_name = fields.Function(
        lambda obj: obj.user.display_name if obj.user else None, data_key="displayName"
    )
