"""Persistence of note changes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError

from prdpad.models.note import Note
from prdpad.services.logs import get_logger
from prdpad.state import ApplicationState

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session

log = get_logger(__name__)


@runtime_checkable
class NoteGateway(Protocol):
    """
    Where notes are loaded from and saved to.
    """

    def get(self, note_id: str) -> Note | None:
        """The live note with this ID, or ``None``."""

    def save(self, note_id: str, fields: Mapping[str, Any]) -> bool:
        """
        Apply a partial update; fields not in ``fields`` stay unchanged.

        Returns:
            Whether the update was stored

        """

    def delete(self, note_id: str) -> bool:
        """
        Delete a note.

        Returns:
            Whether the note was deleted

        """


class SQLNoteGateway:
    """
    :class:`NoteGateway` backed by the SQLAlchemy session.

    Failures are logged and reported as ``False``; nothing is retried.

    Keyword Args:
        session: SQLAlchemy session (default: the session of the
            :class:`~prdpad.state.ApplicationState`)

    """

    def __init__(self, session: Session | None = None) -> None:
        #: The SQLAlchemy session.
        self.session = session if session is not None else ApplicationState().session

    def get(self, note_id: str) -> Note | None:
        return Note.get(self.session, note_id)

    def save(self, note_id: str, fields: Mapping[str, Any]) -> bool:
        note = Note.get(self.session, note_id)
        if note is None:
            log.warning("note.save_missing", note_id=note_id)
            return False
        try:
            note.apply_changes(fields)
            self.session.commit()
        except (SQLAlchemyError, ValueError):
            self.session.rollback()
            log.exception("note.save_failed", note_id=note_id, fields=sorted(fields))
            return False
        log.info("note.saved", note_id=note_id, fields=sorted(fields))
        return True

    def delete(self, note_id: str) -> bool:
        note = Note.get(self.session, note_id)
        if note is None:
            log.warning("note.delete_missing", note_id=note_id)
            return False
        try:
            note.is_deleted = True
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            log.exception("note.delete_failed", note_id=note_id)
            return False
        log.info("note.deleted", note_id=note_id)
        return True
