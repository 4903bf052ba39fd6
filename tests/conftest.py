"""Shared pytest fixtures and test helpers for prdpad tests."""

import os
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

# Set a temporary database path for tests before any other imports
# This prevents prdpad.db from creating a database in the user's home
if "PRDPAD_DB_PATH" not in os.environ:
    _temp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    _temp_db.close()
    os.environ["PRDPAD_DB_PATH"] = _temp_db.name
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from sqlalchemy.orm import sessionmaker

from prdpad.db import Base, create_engine_with_path
from prdpad.models.note import Note
from prdpad.models.project import Project
from prdpad.services.document import TRACKED_FIELDS
from prdpad.services.editor import NoteEditorSession
from prdpad.services.logs import clear_note_context
from prdpad.state import ApplicationState

#: Fixed timestamp used for canvas changes in tests.
FIXED_NOW = "2026-01-01T00:00:00.000+00:00"


def make_note(note_id="note-1", **fields):
    """Build a transient note with every column filled in."""
    values = {
        "title": "Checkout PRD",
        "content": "",
        "tags": [],
        "project_id": None,
        "status": "draft",
        "priority": None,
        "target_release": None,
        "due_date": None,
        "stakeholders": [],
        "generated_features": [],
        "generated_tasks": [],
        "canvas_data": None,
        "is_deleted": False,
    }
    values.update(fields)
    return Note(id=note_id, **values)


def doc(*nodes):
    """Build a content tree from top-level nodes."""
    return {"type": "doc", "content": list(nodes)}


def paragraph(text):
    return {"type": "paragraph", "content": [{"type": "text", "text": text}]}


def inline_canvas(canvas_id=None, name=None, elements=None):
    """Build an inline canvas node."""
    attrs = {"data": {"elements": elements or [], "appState": {}, "files": {}}}
    if canvas_id is not None:
        attrs["canvasId"] = canvas_id
    if name is not None:
        attrs["name"] = name
    return {"type": "excalidraw", "attrs": attrs}


class FakeGateway:
    """In-memory note gateway that records every save and delete."""

    def __init__(self, *notes):
        self.notes = {note.id: note for note in notes}
        self.saves = []
        self.deletes = []
        #: Set to make every save fail.
        self.fail_saves = False
        #: Set to make every delete fail.
        self.fail_deletes = False

    def get(self, note_id):
        note = self.notes.get(note_id)
        if note is None or note.is_deleted:
            return None
        return note

    def save(self, note_id, fields):
        self.saves.append(dict(fields))
        if self.fail_saves:
            return False
        self.notes[note_id].apply_changes(fields)
        return True

    def delete(self, note_id):
        self.deletes.append(note_id)
        if self.fail_deletes:
            return False
        self.notes[note_id].is_deleted = True
        return True


@pytest.fixture(scope="session")
def qapp():
    """Create QApplication instance for testing Qt timers and signals."""
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def db_session():
    """Create a temporary database and session for testing."""
    temp_db = tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".db")
    temp_db.close()
    db_path = Path(temp_db.name)

    engine = create_engine_with_path(db_path)
    Base.metadata.create_all(engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    state = ApplicationState()
    state.reset()
    state.session = SessionFactory()
    state.session.info["db_path"] = db_path

    yield state.session

    state.session.close()
    engine.dispose()
    os.unlink(temp_db.name)
    state._instance = None


@pytest.fixture
def sample_project(db_session):
    """Create a sample project."""
    return Project.create(db_session, name="Checkout")


@pytest.fixture
def sample_note(db_session, sample_project):
    """Create a stored note in the sample project."""
    return Note.create(
        db_session,
        title="Checkout PRD",
        content="{}",
        tags=["payments"],
        project_id=sample_project.id,
    )


@pytest.fixture
def app_state():
    """Application state with a mock main window for notifications."""
    state = ApplicationState()
    state.reset()
    state.set_main_window(MagicMock())
    yield state
    state.reset()


@pytest.fixture
def fast_delays():
    """Short debounce delays so timer-driven tests run quickly."""
    return {name: 30 for name in TRACKED_FIELDS}


@pytest.fixture
def gateway():
    """In-memory gateway holding one note."""
    return FakeGateway(make_note())


@pytest.fixture
def editor(qapp, gateway, fast_delays, app_state):
    """An editor session on the in-memory gateway."""
    session = NoteEditorSession(
        gateway, delays=fast_delays, state=app_state, clock=lambda: FIXED_NOW
    )
    yield session
    session.scheduler.cancel_all()
    clear_note_context()
