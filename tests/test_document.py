"""Tests for the editable document store."""

import json
from datetime import date

import pytest

from conftest import make_note
from prdpad.exc import NoteNotLoaded
from prdpad.services.document import EditableDocument, NoteValues


@pytest.fixture
def document(qapp):
    document = EditableDocument()
    document.load(make_note(tags=["payments"]))
    return document


@pytest.fixture
def changes(document):
    received = []
    document.field_changed.connect(lambda name, value: received.append((name, value)))
    return received


class TestNoteValues:
    """Test cases for reading values from a stored note."""

    def test_from_note(self):
        note = make_note(
            tags=["a"],
            due_date=date(2026, 3, 1),
            canvas_data=json.dumps([{"id": "c1", "name": "Flow"}]),
        )

        values = NoteValues.from_note(note)

        assert values.title == "Checkout PRD"
        assert values.tags == ["a"]
        assert values.due_date == date(2026, 3, 1)
        assert [c.id for c in values.canvases] == ["c1"]

    def test_missing_columns_become_empty(self):
        note = make_note(tags=None, stakeholders=None, content=None, title=None)

        values = NoteValues.from_note(note)

        assert values.title == ""
        assert values.content == ""
        assert values.tags == []
        assert values.stakeholders == []

    def test_lists_are_copied(self):
        note = make_note(tags=["a"])
        values = NoteValues.from_note(note)
        values.tags.append("b")
        assert note.tags == ["a"]


class TestEditableDocument:
    """Test cases for loading and setters."""

    def test_setter_before_load_raises(self, qapp):
        document = EditableDocument()
        with pytest.raises(NoteNotLoaded):
            document.set_title("Title")

    def test_load_does_not_emit_field_changes(self, qapp):
        document = EditableDocument()
        received = []
        document.field_changed.connect(lambda name, value: received.append(name))
        loaded = []
        document.loaded.connect(lambda note_id: loaded.append(note_id))

        assert document.load(make_note()) is True

        assert received == []
        assert loaded == ["note-1"]
        assert document.is_loaded is True
        assert document.note_id == "note-1"

    def test_load_same_note_again_does_nothing(self, document):
        document.set_title("Edited")

        assert document.load(make_note()) is False
        assert document.current.title == "Edited"

    def test_load_other_note_replaces_values(self, document):
        assert document.load(make_note("note-2", title="Other")) is True
        assert document.current.title == "Other"

    def test_reset(self, document):
        document.reset()

        assert document.is_loaded is False
        assert document.current == NoteValues()

    def test_setter_emits_after_update(self, document):
        seen = []
        document.field_changed.connect(
            lambda name, value: seen.append(document.current.title)
        )

        assert document.set_title("Renamed") is True

        assert seen == ["Renamed"]

    def test_equal_value_does_not_emit(self, document, changes):
        assert document.set_title("Checkout PRD") is False
        assert changes == []

    def test_tags(self, document, changes):
        assert document.add_tag(" mobile ") is True
        assert document.add_tag("payments") is False
        assert document.add_tag("  ") is False
        assert document.remove_tag("payments") is True

        assert document.current.tags == ["mobile"]
        assert changes == [
            ("tags", ["payments", "mobile"]),
            ("tags", ["mobile"]),
        ]

    def test_metadata_setters(self, document, changes):
        document.set_project_id(3)
        document.set_status("review")
        document.set_priority("high")
        document.set_target_release("2026.1")
        document.set_due_date(date(2026, 3, 1))
        document.set_stakeholders(["Ana"])

        assert [name for name, _ in changes] == [
            "project_id",
            "status",
            "priority",
            "target_release",
            "due_date",
            "stakeholders",
        ]
        assert document.current.project_id == 3
        assert document.current.stakeholders == ["Ana"]

    def test_generated_items_are_copied(self, document):
        features = [{"id": "f1", "title": "Guest checkout"}]

        document.set_generated_features(features)
        features[0]["title"] = "Changed"

        assert document.current.generated_features[0]["title"] == "Guest checkout"

    def test_parsed_content(self, document):
        assert document.parsed_content() is None
        document.set_content(json.dumps({"type": "doc", "content": []}))
        assert document.parsed_content() == {"type": "doc", "content": []}
