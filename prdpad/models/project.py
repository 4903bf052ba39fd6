"""Project model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from prdpad.db import Base
from prdpad.exc import AlreadyExists

if TYPE_CHECKING:
    from prdpad.models.note import Note


class Project(Base):
    """
    Represents a project that groups notes (PRDs).
    """

    __tablename__ = "projects"

    #: The project ID.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    #: The project name.
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    #: A short description of the project.
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    #: Default AI instructions for documents generated in this project.
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    #: The date and time the project was created.
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, nullable=False
    )
    #: The date and time the project was last updated.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    # Relationships
    notes: Mapped[list[Note]] = relationship(
        "Note", back_populates="project"
    )

    @classmethod
    def exists(cls, session: Session, name: str) -> bool:
        """
        Check whether a project with this name exists.
        """
        return session.scalar(select(cls).where(cls.name == name)) is not None

    @classmethod
    def get(cls, session: Session, project_id: int) -> Project | None:
        """
        Get a project by ID.
        """
        return session.get(cls, project_id)

    @classmethod
    def create(
        cls,
        session: Session,
        name: str = "Untitled Project",
        description: str | None = None,
        instructions: str | None = None,
    ) -> Project:
        """
        Create a new project.

        Args:
            session: SQLAlchemy session

        Keyword Args:
            name: Project name
            description: Project description
            instructions: Default AI instructions

        Raises:
            AlreadyExists: If a project with this name already exists

        Returns:
            The new :class:`~prdpad.models.project.Project` object

        """
        if cls.exists(session, name):
            raise AlreadyExists("Project", name)  # noqa: EM101
        project = cls(name=name, description=description, instructions=instructions)
        session.add(project)
        session.commit()
        return project
