from marshmallow import Schema, fields, validate, pre_load

from models.note import CONTENT_FORMATS
from models.schemas.common import BodySchema, norm_text, validate_uuid

FORMAT_ERROR = "Content format must be markdown, html, or plain"


def _tag_field():
    return fields.String(validate=validate.Length(min=1, max=50))


class NoteCreateSchema(BodySchema):
    title = fields.String(required=True, validate=validate.Length(min=1, max=500))
    content = fields.String(allow_none=True, validate=validate.Length(max=100000))
    content_format = fields.String(
        data_key="contentFormat",
        load_default="markdown",
        validate=validate.OneOf(CONTENT_FORMATS, error=FORMAT_ERROR),
    )
    parent_note_id = fields.String(data_key="parentNoteId", allow_none=True, validate=validate_uuid)
    tags = fields.List(_tag_field(), load_default=list)
    meta = fields.Dict(data_key="metadata", load_default=dict)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "title" in data:
                data["title"] = norm_text(data["title"])
            if isinstance(data.get("tags"), list):
                data["tags"] = [norm_text(t) for t in data["tags"]]
        return data


class NoteUpdateSchema(NoteCreateSchema):
    # no load defaults: absent keys stay untouched
    title = fields.String(validate=validate.Length(min=1, max=500))
    content_format = fields.String(
        data_key="contentFormat",
        validate=validate.OneOf(CONTENT_FORMATS, error=FORMAT_ERROR),
    )
    tags = fields.List(_tag_field())
    meta = fields.Dict(data_key="metadata")


class NoteOutSchema(Schema):
    note_id = fields.String(attribute="id", data_key="noteId")
    project_id = fields.String(data_key="projectId")
    title = fields.String()
    content = fields.String(allow_none=True)
    content_format = fields.String(data_key="contentFormat")
    author_id = fields.String(data_key="authorId", allow_none=True)
    parent_note_id = fields.String(data_key="parentNoteId", allow_none=True)
    tags = fields.List(fields.String(), allow_none=True)
    meta = fields.Dict(data_key="metadata", allow_none=True)
    version = fields.Integer()
    created_at = fields.DateTime(data_key="createdAt")
    updated_at = fields.DateTime(data_key="updatedAt")
