"""
Collaboration model: a user's role on a project.
Fields:
- project_id, user_id (unique together; one row per user per project)
- role: editor | viewer (owner is implied by Project.owner_id, never stored here)
- permissions (JSON)
- invited_at, accepted_at (NULL while the invite is pending)
"""
from enum import Enum

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from models.base_model import BaseModel, Base


class Role(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
    NONE = "none"


INVITABLE_ROLES = (Role.EDITOR.value, Role.VIEWER.value)


class Collaboration(BaseModel, Base):
    __tablename__ = "project_collaborators"

    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(50), nullable=False)
    permissions = Column(JSON, nullable=True, default=dict)
    invited_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    project = relationship("Project", back_populates="collaborations")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_collaborators_project_user"),
        CheckConstraint("role IN ('owner', 'editor', 'viewer')", name="ck_collaborators_role"),
    )

    @property
    def is_pending(self) -> bool:
        return self.accepted_at is None
