from __future__ import annotations

import logging
from typing import Tuple

from flask import Blueprint, request, g, abort
from sqlalchemy import or_, select

from models import get_storage
from models.collaboration import Collaboration, Role
from models.project import Project, ProjectVisibility
from models.schemas.project import ProjectCreateSchema, ProjectUpdateSchema, ProjectOutSchema

from .errors import success_response
from utils.decorators import jwt_required, optional_auth, project_role_required, rate_limit
from utils.results import ApiError, ErrorKind
from utils.roles import READ_ROLES, WRITE_ROLES, OWNER_ONLY, authorize_project

logger = logging.getLogger(__name__)

bp = Blueprint("projects", __name__)

project_create_schema = ProjectCreateSchema()
project_update_schema = ProjectUpdateSchema()
project_out_schema = ProjectOutSchema()
projects_out_schema = ProjectOutSchema(many=True)

MAX_LIMIT = 100

# Sorting allowlist: API field -> SQLAlchemy column
SORT_COLUMNS = {
    "name": Project.name,
    "created_at": Project.created_at,
    "updated_at": Project.updated_at,
}


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def parse_sort(default: str = "-updated_at"):
    sort_param = request.args.get("sort", default)
    order_by = []
    for f in [s.strip() for s in sort_param.split(",") if s.strip()]:
        desc = f.startswith("-")
        key = f[1:] if desc else f
        col = SORT_COLUMNS.get(key)
        if col is None:
            abort(400, description=f"Unsupported sort field: {key}")
        order_by.append(col.desc() if desc else col.asc())
    return order_by or [Project.updated_at.desc()]


@bp.get("/projects")
@jwt_required()
def list_projects():
    """
    List projects the caller owns or collaborates on (accepted invites only)
    ---
    tags:
      - Projects
    security:
      - Bearer: []
    parameters:
      - { in: query, name: page, type: integer }
      - { in: query, name: limit, type: integer }
      - { in: query, name: sort, type: string, description: "name, created_at, updated_at; prefix - for desc" }
      - { in: query, name: status, type: string }
    responses:
      200: { description: OK }
    """
    page, limit = parse_pagination()
    order_by = parse_sort()
    user_id = g.current_user.user_id

    accepted = select(Collaboration.project_id).where(
        Collaboration.user_id == user_id,
        Collaboration.accepted_at.is_not(None),
    )
    session = get_storage().get_session()
    query = session.query(Project).filter(or_(Project.owner_id == user_id, Project.id.in_(accepted)))
    status = request.args.get("status")
    if status:
        query = query.filter(Project.status == status)

    total = query.count()
    rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {
            "projects": projects_out_schema.dump(rows),
            "pagination": {"page": page, "limit": limit, "total": total},
        }
    )


@bp.post("/projects")
@jwt_required()
@rate_limit("create")
def create_project():
    """
    Create a project; the caller becomes its owner
    ---
    tags:
      - Projects
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
          required: [name]
          properties:
            name: { type: string, maxLength: 255 }
            description: { type: string }
            status: { type: string, enum: [active, archived, wip] }
            visibility: { type: string, enum: [private, shared, public] }
            metadata: { type: object }
    responses:
      201:
        description: Created
      400:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = project_create_schema.load(payload)

    storage = get_storage()
    project = Project(owner_id=g.current_user.user_id, **data)
    storage.new(project)
    storage.save()
    logger.info("Project created: %s by %s", project.id, g.current_user.user_id)
    return success_response(
        {"project": project_out_schema.dump(project)},
        message="Project created successfully",
        status=201,
    )


@bp.get("/projects/<project_id>")
@optional_auth()
def get_project(project_id: str):
    """
    Get one project. Public projects are readable without a token.
    ---
    tags:
      - Projects
    security:
      - Bearer: []
    parameters:
      - { in: path, name: project_id, type: string, required: true }
    responses:
      200: { description: OK }
      401: { description: Token required for non-public projects }
      403: { description: No role on this project }
      404: { description: Project not found }
    """
    storage = get_storage()
    project = storage.get(Project, project_id)
    if project is None:
        raise ApiError(ErrorKind.NOT_FOUND, "Project not found")

    user = g.current_user
    role = None
    if user is not None:
        role = authorize_project(storage, user.user_id, project_id, READ_ROLES)
    if project.visibility != ProjectVisibility.PUBLIC.value:
        if user is None:
            # no header, or a token that failed (expired, forged, user gone)
            g.auth_error.unwrap()
        role.unwrap()

    return success_response(
        {
            "project": project_out_schema.dump(project),
            "role": role.value.value if role is not None and role.ok else None,
        }
    )


@bp.put("/projects/<project_id>")
@project_role_required(WRITE_ROLES)
def update_project(project_id: str):
    """
    Update a project (owner or editor)
    ---
    tags:
      - Projects
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - { in: path, name: project_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            description: { type: string }
            status: { type: string }
            visibility: { type: string }
            metadata: { type: object }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Not found }
    """
    payload = request.get_json(silent=True) or {}
    data = project_update_schema.load(payload)
    if not data:
        raise ApiError(ErrorKind.VALIDATION_FAILED, "No fields to update")
    if "visibility" in data and g.project_role is not Role.OWNER:
        raise ApiError(ErrorKind.FORBIDDEN, "Only the project owner can change visibility")

    storage = get_storage()
    project = storage.get(Project, project_id)
    for key, value in data.items():
        setattr(project, key, value)
    storage.new(project)
    storage.save()
    return success_response(
        {"project": project_out_schema.dump(project)},
        message="Project updated successfully",
    )


@bp.delete("/projects/<project_id>")
@project_role_required(OWNER_ONLY)
def delete_project(project_id: str):
    """
    Delete a project with its notes and collaborators (owner only)
    ---
    tags:
      - Projects
    security:
      - Bearer: []
    parameters:
      - { in: path, name: project_id, type: string, required: true }
    responses:
      200: { description: Deleted }
      403: { description: Forbidden }
      404: { description: Not found }
    """
    storage = get_storage()
    project = storage.get(Project, project_id)
    storage.delete(project)
    storage.save()
    logger.info("Project deleted: %s by %s", project_id, g.current_user.user_id)
    return success_response(None, message="Project deleted successfully")
