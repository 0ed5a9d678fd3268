from sqlalchemy import Column, String, Text, Integer, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

CONTENT_FORMATS = ("markdown", "html", "plain")


class Note(BaseModel, Base):
    __tablename__ = "notes"

    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=True)
    content_format = Column(String(20), nullable=False, default="markdown")
    author_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    parent_note_id = Column(String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=True, index=True)
    version = Column(Integer, nullable=False, default=1)
    tags = Column(JSON, nullable=True, default=list)
    meta = Column("metadata", JSON, nullable=True, default=dict)

    project = relationship("Project", back_populates="notes")
    author = relationship("User")
    # adjacency list: a note may nest under another note of the same project
    parent = relationship("Note", back_populates="children", remote_side="Note.id")
    children = relationship(
        "Note",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("content_format IN ('markdown', 'html', 'plain')", name="ck_notes_content_format"),
        CheckConstraint("version >= 1", name="ck_notes_version_positive"),
    )
