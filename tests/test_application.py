"""Tests for engine startup."""

from unittest.mock import MagicMock, patch

from PySide6.QtCore import QCoreApplication

from prdpad.application import create_editor_session, initialize
from prdpad.models.note import Note
from prdpad.services.gateway import SQLNoteGateway
from prdpad.state import ApplicationState


class TestInitialize:
    """Test cases for preparing the engine."""

    def test_configures_logging_and_migrates(self, qapp, app_state):
        with (
            patch("prdpad.application.configure_logging") as configure,
            patch("prdpad.application.apply_migrations") as migrate,
        ):
            state = initialize()

        configure.assert_called_once_with()
        migrate.assert_called_once_with()
        assert state is ApplicationState()
        assert QCoreApplication.organizationName() == "prdpad"
        assert QCoreApplication.applicationName() == "prdpad"

    def test_registers_main_window(self, qapp, app_state):
        window = MagicMock()
        with (
            patch("prdpad.application.configure_logging"),
            patch("prdpad.application.apply_migrations"),
        ):
            state = initialize(window)

        assert state.main_window is window


class TestCreateEditorSession:
    """Test cases for building an editor session from the application state."""

    def test_uses_application_session(self, qapp, db_session, sample_note):
        editor = create_editor_session()

        assert isinstance(editor.gateway, SQLNoteGateway)
        assert editor.gateway.session is db_session
        assert editor.state is ApplicationState()

        editor.open(sample_note.id)
        editor.document.set_title("Checkout PRD v2")
        assert editor.close() is True

        db_session.expire_all()
        assert Note.get(db_session, sample_note.id).title == "Checkout PRD v2"
