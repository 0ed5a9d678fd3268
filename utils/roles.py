"""
Project role resolution.

Ownership is checked first and always wins, then an accepted collaboration
row. Pending invites (accepted_at IS NULL) never grant a role.
"""
from __future__ import annotations

from typing import Iterable

from models.collaboration import Role
from utils.results import ErrorKind, Outcome

READ_ROLES = (Role.OWNER, Role.EDITOR, Role.VIEWER)
WRITE_ROLES = (Role.OWNER, Role.EDITOR)
OWNER_ONLY = (Role.OWNER,)


def resolve_role(storage, user_id: str, project_id: str) -> Outcome[Role]:
    exists, owner_id = storage.get_project_owner(project_id)
    if not exists:
        return Outcome.failure(ErrorKind.NOT_FOUND, "Project not found")
    if user_id and owner_id == user_id:
        return Outcome.success(Role.OWNER)

    collab = storage.find_accepted_collaboration(project_id, user_id)
    if collab is None:
        return Outcome.success(Role.NONE)
    try:
        return Outcome.success(Role(collab.role))
    except ValueError:
        return Outcome.success(Role.NONE)


def authorize_project(storage, user_id: str, project_id: str, allowed_roles: Iterable) -> Outcome[Role]:
    """
    Resolve the caller's role and check it against ``allowed_roles``.

    A missing project is NOT_FOUND before any role check, so callers can tell
    a missing project (404) from a forbidden one (403).
    """
    allowed = {Role(r) for r in allowed_roles}
    resolved = resolve_role(storage, user_id, project_id)
    if not resolved.ok:
        return resolved
    role = resolved.value
    if role is Role.NONE or role not in allowed:
        return Outcome.failure(ErrorKind.FORBIDDEN, "Insufficient permissions for this project")
    return Outcome.success(role)
