from __future__ import annotations

import logging
from typing import Tuple

from flask import Blueprint, request, g, abort
from sqlalchemy import func, select

from models import get_storage
from models.note import Note
from models.schemas.note import NoteCreateSchema, NoteUpdateSchema, NoteOutSchema

from .errors import success_response
from utils.decorators import jwt_required, project_role_required, rate_limit
from utils.results import ApiError, ErrorKind
from utils.roles import READ_ROLES, WRITE_ROLES, authorize_project

logger = logging.getLogger(__name__)

bp = Blueprint("notes", __name__)

note_create_schema = NoteCreateSchema()
note_update_schema = NoteUpdateSchema()
note_out_schema = NoteOutSchema()
notes_out_schema = NoteOutSchema(many=True)

MAX_LIMIT = 100


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "50"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def _load_note_for(note_id: str, allowed_roles, denied_message: str) -> Note:
    """Fetch the note and check the caller's role on the note's project."""
    storage = get_storage()
    note = storage.get(Note, note_id)
    if note is None:
        raise ApiError(ErrorKind.NOT_FOUND, "Note not found")
    outcome = authorize_project(storage, g.current_user.user_id, note.project_id, allowed_roles)
    if outcome.error is ErrorKind.FORBIDDEN:
        raise ApiError(ErrorKind.FORBIDDEN, denied_message)
    outcome.unwrap()
    return note


def _check_parent(project_id: str, parent_note_id: str | None, note_id: str | None = None) -> None:
    """
    The parent must exist in the same project and, when re-parenting
    ``note_id``, must not be the note itself or one of its descendants.
    """
    if not parent_note_id:
        return
    if note_id is not None and parent_note_id == note_id:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "A note cannot be its own parent")
    storage = get_storage()
    parent = storage.get(Note, parent_note_id)
    if parent is None or parent.project_id != project_id:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "Parent note not found or belongs to different project")
    if note_id is None:
        return

    seen = set()
    ancestor = parent
    while ancestor is not None and ancestor.id not in seen:
        if ancestor.id == note_id:
            raise ApiError(ErrorKind.VALIDATION_FAILED, "A note cannot be moved under one of its descendants")
        seen.add(ancestor.id)
        ancestor = storage.get(Note, ancestor.parent_note_id) if ancestor.parent_note_id else None


def _child_counts(note_ids) -> dict:
    if not note_ids:
        return {}
    rows = get_storage().get_session().execute(
        select(Note.parent_note_id, func.count(Note.id))
        .where(Note.parent_note_id.in_(note_ids))
        .group_by(Note.parent_note_id)
    ).all()
    return {parent_id: count for parent_id, count in rows}


@bp.get("/projects/<project_id>/notes")
@project_role_required(READ_ROLES)
def list_notes(project_id: str):
    """
    List notes of a project
    ---
    tags:
      - Notes
    security:
      - Bearer: []
    parameters:
      - { in: path, name: project_id, type: string, required: true }
      - { in: query, name: parentNoteId, type: string, description: "empty or 'null' for top-level notes" }
      - { in: query, name: search, type: string }
      - { in: query, name: page, type: integer }
      - { in: query, name: limit, type: integer }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Project not found }
    """
    page, limit = parse_pagination()
    stmt = select(Note).where(Note.project_id == project_id)

    parent_note_id = request.args.get("parentNoteId")
    if parent_note_id is not None:
        if parent_note_id in ("", "null"):
            stmt = stmt.where(Note.parent_note_id.is_(None))
        else:
            stmt = stmt.where(Note.parent_note_id == parent_note_id)

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search.lower()}%"
        stmt = stmt.where(func.lower(Note.title).like(like) | func.lower(Note.content).like(like))

    session = get_storage().get_session()
    total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = session.execute(
        stmt.order_by(Note.updated_at.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    counts = _child_counts([n.id for n in rows])
    notes = notes_out_schema.dump(rows)
    for body in notes:
        body["childCount"] = counts.get(body["noteId"], 0)
    return success_response(
        {
            "notes": notes,
            "pagination": {"page": page, "limit": limit, "total": total},
        }
    )


@bp.post("/projects/<project_id>/notes")
@project_role_required(WRITE_ROLES)
@rate_limit("create")
def create_note(project_id: str):
    """
    Create a note in a project (owner or editor)
    ---
    tags:
      - Notes
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - { in: path, name: project_id, type: string, required: true }
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [title]
          properties:
            title: { type: string, maxLength: 500 }
            content: { type: string }
            contentFormat: { type: string, enum: [markdown, html, plain] }
            parentNoteId: { type: string }
            tags: { type: array, items: { type: string } }
            metadata: { type: object }
    responses:
      201: { description: Created }
      400: { description: Validation error }
      403: { description: Forbidden }
      404: { description: Project not found }
    """
    payload = request.get_json(silent=True) or {}
    data = note_create_schema.load(payload)
    _check_parent(project_id, data.get("parent_note_id"))

    storage = get_storage()
    note = Note(project_id=project_id, author_id=g.current_user.user_id, version=1, **data)
    storage.new(note)
    storage.save()
    logger.info("Note created: %s in project %s", note.id, project_id)
    return success_response(
        {"note": note_out_schema.dump(note)},
        message="Note created successfully",
        status=201,
    )


@bp.get("/notes/<note_id>")
@jwt_required()
def get_note(note_id: str):
    """
    Get a note with the ids and titles of its direct children
    ---
    tags:
      - Notes
    security:
      - Bearer: []
    parameters:
      - { in: path, name: note_id, type: string, required: true }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Note not found }
    """
    note = _load_note_for(note_id, READ_ROLES, "Access denied to this project")
    children = sorted(note.children, key=lambda child: child.title)
    body = note_out_schema.dump(note)
    body["children"] = [{"noteId": c.id, "title": c.title} for c in children]
    body["childCount"] = len(children)
    return success_response({"note": body})


@bp.put("/notes/<note_id>")
@jwt_required()
def update_note(note_id: str):
    """
    Update a note (owner or editor). Every update bumps the version.
    ---
    tags:
      - Notes
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - { in: path, name: note_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          properties:
            title: { type: string }
            content: { type: string }
            contentFormat: { type: string }
            parentNoteId: { type: string }
            tags: { type: array, items: { type: string } }
            metadata: { type: object }
    responses:
      200: { description: Updated }
      400: { description: Validation error }
      403: { description: Forbidden }
      404: { description: Note not found }
    """
    payload = request.get_json(silent=True) or {}
    data = note_update_schema.load(payload)
    note = _load_note_for(note_id, WRITE_ROLES, "Insufficient permissions to update this note")
    if not data:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "No fields to update")
    if "parent_note_id" in data:
        _check_parent(note.project_id, data["parent_note_id"], note_id=note.id)

    # every accepted update is a new version
    note.version = (note.version or 1) + 1
    for key, value in data.items():
        setattr(note, key, value)

    storage = get_storage()
    storage.new(note)
    storage.save()
    return success_response(
        {"note": note_out_schema.dump(note)},
        message="Note updated successfully",
    )


@bp.delete("/notes/<note_id>")
@jwt_required()
def delete_note(note_id: str):
    """
    Delete a note and its children (owner or editor)
    ---
    tags:
      - Notes
    security:
      - Bearer: []
    parameters:
      - { in: path, name: note_id, type: string, required: true }
    responses:
      200: { description: Deleted }
      403: { description: Forbidden }
      404: { description: Note not found }
    """
    note = _load_note_for(note_id, WRITE_ROLES, "Insufficient permissions to delete this note")
    storage = get_storage()
    storage.delete(note)
    storage.save()
    logger.info("Note deleted: %s by %s", note_id, g.current_user.user_id)
    return success_response(None, message="Note deleted successfully")
