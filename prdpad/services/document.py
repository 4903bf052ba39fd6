"""In-memory editable state of the open note."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Final

from PySide6.QtCore import QObject, Signal

from prdpad.exc import NoteNotLoaded
from prdpad.services.canvas import Canvas, parse_canvases
from prdpad.services.content import parse_content
from prdpad.services.logs import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date

    from prdpad.models.note import Note

log = get_logger(__name__)

#: Every field tracked for autosave, in payload order.
TRACKED_FIELDS: Final[tuple[str, ...]] = (
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
    "canvases",
)


@dataclass
class NoteValues:
    """
    The editable values of a note.
    """

    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    project_id: int | None = None
    status: str | None = None
    priority: str | None = None
    target_release: str | None = None
    due_date: date | None = None
    stakeholders: list[str] = field(default_factory=list)
    generated_features: list[dict[str, Any]] = field(default_factory=list)
    generated_tasks: list[dict[str, Any]] = field(default_factory=list)
    canvases: list[Canvas] = field(default_factory=list)

    @classmethod
    def from_note(cls, note: Note) -> NoteValues:
        """
        Read the editable values of a stored note.

        Args:
            note: The stored note

        Returns:
            The note's values; the canvas collection is parsed (and migrated
            from the legacy format if needed)

        """
        return cls(
            title=note.title or "",
            content=note.content or "",
            tags=list(note.tags or []),
            project_id=note.project_id,
            status=note.status,
            priority=note.priority,
            target_release=note.target_release,
            due_date=note.due_date,
            stakeholders=list(note.stakeholders or []),
            generated_features=copy.deepcopy(list(note.generated_features or [])),
            generated_tasks=copy.deepcopy(list(note.generated_tasks or [])),
            canvases=parse_canvases(note.canvas_data),
        )


class EditableDocument(QObject):
    """
    Holds the editable state of the open note.

    The setters are the only way to change a field.  Each setter updates
    :attr:`current` before :attr:`field_changed` is emitted, so code that runs
    outside the signal path (for example the flush on close) always sees the
    latest values.

    Keyword Args:
        parent: Parent QObject

    """

    #: Signal emitted with ``(field name, new value)`` after a field changes.
    field_changed = Signal(str, object)
    #: Signal emitted with the note ID after a note has been loaded.
    loaded = Signal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        #: ID of the loaded note; ``None`` until :meth:`load` is called.
        self._note_id: str | None = None
        #: The latest values.
        self._current = NoteValues()

    @property
    def note_id(self) -> str | None:
        """ID of the loaded note."""
        return self._note_id

    @property
    def is_loaded(self) -> bool:
        """Whether a note has been loaded."""
        return self._note_id is not None

    @property
    def current(self) -> NoteValues:
        """The latest values.  Treat as read-only; use the setters."""
        return self._current

    def load(self, note: Note) -> bool:
        """
        Populate the document from a stored note.

        This happens once per note: loading the same note again does nothing,
        loading a different note replaces everything.  No
        :attr:`field_changed` signals are emitted.

        Args:
            note: The stored note

        Returns:
            Whether the document was (re)populated

        """
        if self._note_id == note.id:
            return False
        self._current = NoteValues.from_note(note)
        self._note_id = note.id
        log.debug("document.loaded", note_id=note.id)
        self.loaded.emit(note.id)
        return True

    def reset(self) -> None:
        """Forget the loaded note."""
        self._note_id = None
        self._current = NoteValues()

    def parsed_content(self) -> dict[str, Any] | None:
        """The parsed content tree, or ``None``."""
        return parse_content(self._current.content)

    # -------------------------------------------------------------------------
    # Setters
    # -------------------------------------------------------------------------

    def set_title(self, title: str) -> bool:
        return self._set("title", title)

    def set_content(self, content: str) -> bool:
        return self._set("content", content)

    def set_tags(self, tags: Iterable[str]) -> bool:
        return self._set("tags", list(tags))

    def add_tag(self, tag: str) -> bool:
        """Add a tag unless it is already present."""
        tag = tag.strip()
        if not tag or tag in self._current.tags:
            return False
        return self.set_tags([*self._current.tags, tag])

    def remove_tag(self, tag: str) -> bool:
        return self.set_tags(t for t in self._current.tags if t != tag)

    def set_project_id(self, project_id: int | None) -> bool:
        return self._set("project_id", project_id)

    def set_status(self, status: str | None) -> bool:
        return self._set("status", status)

    def set_priority(self, priority: str | None) -> bool:
        return self._set("priority", priority)

    def set_target_release(self, target_release: str | None) -> bool:
        return self._set("target_release", target_release)

    def set_due_date(self, due_date: date | None) -> bool:
        return self._set("due_date", due_date)

    def set_stakeholders(self, stakeholders: Iterable[str]) -> bool:
        return self._set("stakeholders", list(stakeholders))

    def set_generated_features(self, features: Iterable[dict[str, Any]]) -> bool:
        return self._set("generated_features", copy.deepcopy(list(features)))

    def set_generated_tasks(self, tasks: Iterable[dict[str, Any]]) -> bool:
        return self._set("generated_tasks", copy.deepcopy(list(tasks)))

    def set_canvases(self, canvases: Iterable[Canvas]) -> bool:
        return self._set("canvases", copy.deepcopy(list(canvases)))

    def _set(self, name: str, value: Any) -> bool:
        """
        Change one field.

        Raises:
            NoteNotLoaded: If no note is loaded

        Returns:
            Whether the value changed

        """
        if self._note_id is None:
            raise NoteNotLoaded(name)
        if getattr(self._current, name) == value:
            return False
        self._current = replace(self._current, **{name: value})
        self.field_changed.emit(name, value)
        return True
