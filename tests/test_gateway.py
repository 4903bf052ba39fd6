"""Tests for the SQLAlchemy note gateway."""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from prdpad.models.note import Note
from prdpad.services.gateway import NoteGateway, SQLNoteGateway


class TestSQLNoteGateway:
    """Test cases for persisting note changes."""

    def test_is_a_note_gateway(self, db_session):
        assert isinstance(SQLNoteGateway(db_session), NoteGateway)

    def test_defaults_to_application_session(self, db_session):
        assert SQLNoteGateway().session is db_session

    def test_get(self, db_session, sample_note):
        gateway = SQLNoteGateway(db_session)

        assert gateway.get(sample_note.id) is sample_note
        assert gateway.get("missing") is None

    def test_save_partial_update(self, db_session, sample_note):
        gateway = SQLNoteGateway(db_session)

        assert gateway.save(
            sample_note.id,
            {"id": sample_note.id, "title": "Renamed", "canvas_data": "[]"},
        )

        db_session.expire_all()
        note = Note.get(db_session, sample_note.id)
        assert note.title == "Renamed"
        assert note.canvas_data == "[]"
        assert note.tags == ["payments"]
        assert note.content == "{}"

    def test_save_missing_note(self, db_session):
        assert SQLNoteGateway(db_session).save("missing", {"title": "X"}) is False

    def test_save_unknown_field_rolls_back(self, db_session, sample_note):
        gateway = SQLNoteGateway(db_session)

        assert gateway.save(sample_note.id, {"title": "X", "color": "red"}) is False

        db_session.expire_all()
        assert Note.get(db_session, sample_note.id).title == "Checkout PRD"

    def test_save_database_error(self, db_session, sample_note):
        gateway = SQLNoteGateway(db_session)
        error = OperationalError("UPDATE notes", {}, Exception("database is locked"))

        with patch.object(db_session, "commit", side_effect=error):
            assert gateway.save(sample_note.id, {"title": "X"}) is False

        assert Note.get(db_session, sample_note.id).title == "Checkout PRD"

    def test_delete_is_soft(self, db_session, sample_note):
        gateway = SQLNoteGateway(db_session)

        assert gateway.delete(sample_note.id) is True

        assert gateway.get(sample_note.id) is None
        assert db_session.get(Note, sample_note.id).is_deleted is True

    def test_delete_missing_note(self, db_session):
        assert SQLNoteGateway(db_session).delete("missing") is False
