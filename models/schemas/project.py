from marshmallow import Schema, fields, validate

from models.project import ProjectStatus, ProjectVisibility
from models.schemas.common import BodySchema

STATUSES = [s.value for s in ProjectStatus]
VISIBILITIES = [v.value for v in ProjectVisibility]


class ProjectCreateSchema(BodySchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    description = fields.String(allow_none=True)
    status = fields.String(load_default=ProjectStatus.ACTIVE.value, validate=validate.OneOf(STATUSES))
    visibility = fields.String(load_default=ProjectVisibility.PRIVATE.value, validate=validate.OneOf(VISIBILITIES))
    meta = fields.Dict(data_key="metadata", load_default=dict)


class ProjectUpdateSchema(BodySchema):
    # All optional, but validate if present
    name = fields.String(validate=validate.Length(min=1, max=255))
    description = fields.String(allow_none=True)
    status = fields.String(validate=validate.OneOf(STATUSES))
    visibility = fields.String(validate=validate.OneOf(VISIBILITIES))
    meta = fields.Dict(data_key="metadata")


class ProjectOutSchema(Schema):
    project_id = fields.String(attribute="id", data_key="projectId")
    name = fields.String()
    description = fields.String(allow_none=True)
    owner_id = fields.String(data_key="ownerId")
    status = fields.String()
    visibility = fields.String()
    meta = fields.Dict(data_key="metadata", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
