from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, request, g
from sqlalchemy import select

from models import get_storage
from models.collaboration import Collaboration, Role
from models.schemas.collaboration import InviteSchema, CollaborationUpdateSchema, CollaborationOutSchema

from .errors import success_response
from utils.decorators import jwt_required, project_role_required, rate_limit
from utils.results import ApiError, ErrorKind
from utils.roles import READ_ROLES, WRITE_ROLES, authorize_project, resolve_role

logger = logging.getLogger(__name__)

bp = Blueprint("collaborators", __name__)

invite_schema = InviteSchema()
collab_update_schema = CollaborationUpdateSchema()
collab_out_schema = CollaborationOutSchema()
collabs_out_schema = CollaborationOutSchema(many=True)


def _get_collaboration_or_404(collaboration_id: str) -> Collaboration:
    collab = get_storage().get(Collaboration, collaboration_id)
    if collab is None:
        raise ApiError(ErrorKind.NOT_FOUND, "Collaboration not found")
    return collab


@bp.get("/projects/<project_id>/collaborators")
@project_role_required(READ_ROLES)
def list_collaborators(project_id: str):
    """
    List collaborators of a project, pending invites included
    ---
    tags:
      - Collaborators
    security:
      - Bearer: []
    parameters:
      - { in: path, name: project_id, type: string, required: true }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Project not found }
    """
    session = get_storage().get_session()
    rows = session.execute(
        select(Collaboration)
        .where(Collaboration.project_id == project_id)
        .order_by(Collaboration.invited_at.desc())
    ).scalars().all()
    return success_response({"collaborators": collabs_out_schema.dump(rows)})


@bp.post("/collaborators/invite")
@jwt_required()
@rate_limit("create")
def invite_collaborator():
    """
    Invite a user (by email) to a project as editor or viewer
    ---
    tags:
      - Collaborators
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [projectId, email, role]
          properties:
            projectId: { type: string }
            email: { type: string }
            role: { type: string, enum: [editor, viewer] }
            permissions: { type: object }
    responses:
      201: { description: Invitation created }
      400: { description: Validation error or invitee owns the project }
      403: { description: Only owners and editors can invite }
      404: { description: Project or user not found }
      409: { description: Already a collaborator }
    """
    payload = request.get_json(silent=True) or {}
    data = invite_schema.load(payload)
    project_id = data["project_id"]

    storage = get_storage()
    outcome = authorize_project(storage, g.current_user.user_id, project_id, WRITE_ROLES)
    if outcome.error is ErrorKind.FORBIDDEN:
        raise ApiError(ErrorKind.FORBIDDEN, "Only project owners and editors can invite collaborators")
    outcome.unwrap()

    invitee = storage.find_user_by_email(data["email"])
    if invitee is None:
        raise ApiError(ErrorKind.NOT_FOUND, "User with this email not found")
    if storage.find_collaboration(project_id, invitee.id) is not None:
        raise ApiError(ErrorKind.CONFLICT, "User is already a collaborator on this project")
    _, owner_id = storage.get_project_owner(project_id)
    if invitee.id == owner_id:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "Project owner is automatically a collaborator")

    collab = Collaboration(
        project_id=project_id,
        user_id=invitee.id,
        role=data["role"],
        permissions=data["permissions"],
        invited_at=datetime.now(timezone.utc),
    )
    storage.new(collab)
    storage.save()
    logger.info("Collaborator invited: %s to project %s as %s", invitee.id, project_id, data["role"])
    return success_response(
        {"collaboration": collab_out_schema.dump(collab)},
        message="Collaborator invited successfully",
        status=201,
    )


@bp.post("/collaborators/<collaboration_id>/accept")
@jwt_required()
def accept_invitation(collaboration_id: str):
    """
    Accept a pending invitation addressed to the caller
    ---
    tags:
      - Collaborators
    security:
      - Bearer: []
    parameters:
      - { in: path, name: collaboration_id, type: string, required: true }
    responses:
      200: { description: Accepted }
      400: { description: Invitation already accepted }
      404: { description: Invitation not found }
    """
    storage = get_storage()
    collab = storage.get(Collaboration, collaboration_id)
    # someone else's invitation is reported exactly like a missing one
    if collab is None or collab.user_id != g.current_user.user_id:
        raise ApiError(ErrorKind.NOT_FOUND, "Collaboration invitation not found")
    if not collab.is_pending:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "Invitation already accepted")

    collab.accepted_at = datetime.now(timezone.utc)
    storage.new(collab)
    storage.save()
    logger.info("Collaboration accepted: %s by %s", collaboration_id, g.current_user.user_id)
    return success_response(
        {"collaboration": collab_out_schema.dump(collab)},
        message="Collaboration invitation accepted",
    )


@bp.put("/collaborators/<collaboration_id>")
@jwt_required()
def update_collaborator(collaboration_id: str):
    """
    Change a collaborator's role or permissions (project owner or editor)
    ---
    tags:
      - Collaborators
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - { in: path, name: collaboration_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          properties:
            role: { type: string, enum: [editor, viewer] }
            permissions: { type: object }
    responses:
      200: { description: Updated }
      400: { description: Validation error }
      403: { description: Forbidden }
      404: { description: Collaboration not found }
    """
    payload = request.get_json(silent=True) or {}
    data = collab_update_schema.load(payload)

    storage = get_storage()
    collab = _get_collaboration_or_404(collaboration_id)
    outcome = authorize_project(storage, g.current_user.user_id, collab.project_id, WRITE_ROLES)
    if not outcome.ok:
        raise ApiError(ErrorKind.FORBIDDEN, "Only project owners and editors can update collaborators")
    if not data:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "No fields to update")

    for key, value in data.items():
        setattr(collab, key, value)
    storage.new(collab)
    storage.save()
    return success_response(
        {"collaboration": collab_out_schema.dump(collab)},
        message="Collaborator updated successfully",
    )


@bp.delete("/collaborators/<collaboration_id>")
@jwt_required()
@rate_limit("strict")
def remove_collaborator(collaboration_id: str):
    """
    Remove a collaborator. Users may remove themselves; owners and editors may remove anyone.
    ---
    tags:
      - Collaborators
    security:
      - Bearer: []
    parameters:
      - { in: path, name: collaboration_id, type: string, required: true }
    responses:
      200: { description: Removed }
      403: { description: Insufficient permissions }
      404: { description: Collaboration not found }
    """
    storage = get_storage()
    collab = _get_collaboration_or_404(collaboration_id)
    user_id = g.current_user.user_id

    if collab.user_id != user_id:
        role = resolve_role(storage, user_id, collab.project_id)
        if not role.ok or role.value not in (Role.OWNER, Role.EDITOR):
            raise ApiError(ErrorKind.FORBIDDEN, "Insufficient permissions to remove collaborator")

    storage.delete(collab)
    storage.save()
    logger.info("Collaborator removed: %s by %s", collaboration_id, user_id)
    return success_response(None, message="Collaborator removed successfully")
