"""Note model."""

from __future__ import annotations

import builtins
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    or_,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from prdpad.db import Base
from prdpad.utils import to_utc_iso

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from prdpad.models.project import Project


#: Columns that may be changed through :meth:`Note.apply_changes`.
EDITABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "title",
        "content",
        "tags",
        "project_id",
        "status",
        "priority",
        "target_release",
        "due_date",
        "stakeholders",
        "generated_features",
        "generated_tasks",
        "canvas_data",
    }
)
#: Columns a note listing may be sorted on.
SORT_FIELDS: Final[frozenset[str]] = frozenset({"created_at", "updated_at", "title"})


class Note(Base):
    """
    Represents a note (usually a PRD) with its rich content, metadata,
    AI-generated items and embedded canvases.

    ``content`` holds the serialized rich-document tree and ``canvas_data``
    the serialized canvas collection; both are opaque text at this level.
    """

    __tablename__ = "notes"

    #: The note ID.
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    #: The note title.
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    #: The serialized rich-document tree.
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    #: The note tags.
    tags: Mapped[builtins.list[str]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    #: The project the note belongs to.
    project_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    #: Workflow status (draft, in review, ...).
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    #: Priority label.
    priority: Mapped[str | None] = mapped_column(String, nullable=True)
    #: The release this note targets.
    target_release: Mapped[str | None] = mapped_column(String, nullable=True)
    #: Due date.
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    #: Stakeholder names.
    stakeholders: Mapped[builtins.list[str]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    #: AI-generated features stored with the note.
    generated_features: Mapped[builtins.list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    #: AI-generated tasks stored with the note.
    generated_tasks: Mapped[builtins.list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    #: The serialized canvas collection.
    canvas_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    #: Whether the note has been deleted.
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    #: The date and time the note was created.
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, nullable=False
    )
    #: The date and time the note was last updated.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    # Relationships
    project: Mapped[Project | None] = relationship("Project", back_populates="notes")

    @classmethod
    def get(cls, session: Session, note_id: str) -> Note | None:
        """
        Get a note by ID.

        Args:
            session: SQLAlchemy session
            note_id: Note ID

        Returns:
            The note, or ``None`` if it does not exist or has been deleted

        """
        note = session.get(cls, note_id)
        if note is None or note.is_deleted:
            return None
        return note

    @classmethod
    def create(cls, session: Session, title: str = "Untitled", **fields: Any) -> Note:
        """
        Create a new note.

        Args:
            session: SQLAlchemy session

        Keyword Args:
            title: Note title
            **fields: Any other column in :data:`EDITABLE_FIELDS`

        Returns:
            The new :class:`~prdpad.models.note.Note` object

        """
        note = cls(id=str(uuid.uuid4()), title=title)
        note.apply_changes(fields)
        session.add(note)
        session.commit()
        return note

    @classmethod
    def list(  # noqa: PLR0913
        cls,
        session: Session,
        tags: Iterable[str] | None = None,
        search: str | None = None,
        project_id: int | None = None,
        include_all_projects: bool = False,  # noqa: FBT001, FBT002
        sort_field: str = "updated_at",
        ascending: bool = False,  # noqa: FBT001, FBT002
    ) -> builtins.list[Note]:
        """
        List live notes.

        Keyword Args:
            tags: Only notes sharing at least one of these tags
            search: Case-insensitive substring of the title or content
            project_id: Only notes in this project
            include_all_projects: If ``project_id`` is not given, include notes
                from every project instead of only unassigned notes
            sort_field: One of :data:`SORT_FIELDS`
            ascending: Sort direction

        Raises:
            ValueError: If ``sort_field`` is not sortable

        Returns:
            The matching notes

        """
        if sort_field not in SORT_FIELDS:
            msg = f"Cannot sort notes by {sort_field!r}"
            raise ValueError(msg)
        stmt = select(cls).where(cls.is_deleted.is_(False))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(cls.title.ilike(pattern), cls.content.ilike(pattern)))
        if project_id is not None:
            stmt = stmt.where(cls.project_id == project_id)
        elif not include_all_projects:
            stmt = stmt.where(cls.project_id.is_(None))
        column = getattr(cls, sort_field)
        stmt = stmt.order_by(column.asc() if ascending else column.desc())
        notes = builtins.list(session.scalars(stmt).all())
        if tags:
            # Tags are a JSON column, so overlap is checked here rather than in SQL
            wanted = set(tags)
            notes = [note for note in notes if wanted.intersection(note.tags or [])]
        return notes

    def apply_changes(self, fields: Mapping[str, Any]) -> None:
        """
        Apply a partial update.  Fields not present in ``fields`` are left
        unchanged.  The ``id`` key, if present, identifies the note and is
        ignored.

        Args:
            fields: Column name to new value

        Raises:
            ValueError: If a key is not an editable column

        """
        unknown = set(fields) - EDITABLE_FIELDS - {"id"}
        if unknown:
            msg = f"Unknown note fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        for name, value in fields.items():
            if name == "id":
                continue
            if name == "due_date" and isinstance(value, str):
                value = date.fromisoformat(value) if value else None  # noqa: PLW2901
            setattr(self, name, value)

    def to_json(self) -> dict:
        """
        Serialize note to JSON-compatible dictionary.

        Returns:
            Dictionary containing note data

        """
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "tags": builtins.list(self.tags or []),
            "project_id": self.project_id,
            "status": self.status,
            "priority": self.priority,
            "target_release": self.target_release,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "stakeholders": builtins.list(self.stakeholders or []),
            "generated_features": builtins.list(self.generated_features or []),
            "generated_tasks": builtins.list(self.generated_tasks or []),
            "canvas_data": self.canvas_data,
            "created_at": to_utc_iso(self.created_at),
            "updated_at": to_utc_iso(self.updated_at),
        }
