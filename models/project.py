from enum import Enum

from sqlalchemy import Column, String, Text, ForeignKey, JSON, CheckConstraint, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    WIP = "wip"


class ProjectVisibility(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class Project(BaseModel, Base):
    __tablename__ = "projects"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # ownership is resolved from this column, never from project_collaborators
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default=ProjectStatus.ACTIVE.value)
    visibility = Column(String(50), nullable=False, default=ProjectVisibility.PRIVATE.value)
    meta = Column("metadata", JSON, nullable=True, default=dict)

    owner = relationship("User", back_populates="projects")
    collaborations = relationship(
        "Collaboration",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    notes = relationship(
        "Note",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'archived', 'wip')", name="ck_projects_status"),
        CheckConstraint("visibility IN ('private', 'shared', 'public')", name="ck_projects_visibility"),
        Index("ix_projects_name", "name"),
    )
