"""
Editing session of one note: autosave and canvas reconciliation.

Control flow::

    setter on EditableDocument
        -> DebounceScheduler (per-field quiet period)
        -> ChangeDetector (anything different from the snapshot?)
        -> NoteGateway.save(note id, changed fields)

Content changes also run the :class:`~prdpad.services.canvas.CanvasReconciler`
synchronously; its merged collection is fed back through
:meth:`EditableDocument.set_canvases` into the same pipeline.  Closing the
session flushes whatever is still unsaved, bypassing the quiet periods.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from PySide6.QtCore import QObject, Signal

from prdpad.exc import DoesNotExist
from prdpad.services.canvas import CanvasReconciler, serialize_canvases
from prdpad.services.change_detector import ChangeDetector
from prdpad.services.content import (
    assign_missing_canvas_ids,
    build_ai_context,
    find_inline_canvases,
    remove_inline_canvas,
    serialize_content,
)
from prdpad.services.debounce import DebounceScheduler, load_debounce_delays
from prdpad.services.document import EditableDocument, NoteValues
from prdpad.services.generated import (
    append_generated,
    mark_added,
    selected_items,
    set_all_selected,
    toggle_selected,
)
from prdpad.services.logs import bind_note_context, clear_note_context, get_logger
from prdpad.state import CURRENT_NOTE_ID, ApplicationState

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from prdpad.models.note import Note
    from prdpad.services.canvas import Canvas, CanvasData
    from prdpad.services.gateway import NoteGateway
    from prdpad.services.generated import ItemKind

log = get_logger(__name__)


def build_payload(
    note_id: str, values: NoteValues, fields: Iterable[str]
) -> dict[str, Any]:
    """
    Build the partial update for a save.

    Args:
        note_id: The note ID (always included)
        values: The values to save
        fields: The changed fields

    Returns:
        Column name to value; the canvas collection is stored serialized as
        ``canvas_data``

    """
    payload: dict[str, Any] = {"id": note_id}
    for name in fields:
        if name == "canvases":
            payload["canvas_data"] = serialize_canvases(values.canvases)
        else:
            payload[name] = copy.deepcopy(getattr(values, name))
    return payload


class NoteEditorSession(QObject):
    """
    The editing session of one open note.

    Args:
        gateway: Where the note is loaded from and saved to

    Keyword Args:
        delays: Debounce delay per field in milliseconds (default: read from
            the settings of ``state``, see
            :func:`~prdpad.services.debounce.load_debounce_delays`)
        state: Application state used for settings and notifications
            (default: the :class:`~prdpad.state.ApplicationState` singleton)
        clock: Timestamp source for canvas changes
        parent: Parent QObject

    """

    #: Signal emitted with ``(note ID, saved field names)`` after a save.
    saved = Signal(str, object)
    #: Signal emitted with ``(note ID, field names)`` when a save fails.
    save_failed = Signal(str, object)
    #: Signal emitted with the note ID when the session is closed.
    closed = Signal(str)

    def __init__(  # noqa: PLR0913
        self,
        gateway: NoteGateway,
        delays: Mapping[str, int] | None = None,
        state: ApplicationState | None = None,
        clock: Callable[[], str] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        #: Application state used for settings and notifications.
        self._state = state
        if delays is None:
            delays = load_debounce_delays(self.state.settings)
        #: Where the note is loaded from and saved to.
        self.gateway = gateway
        #: The editable note state.
        self.document = EditableDocument(self)
        #: Per-field debouncing of edits.
        self.scheduler = DebounceScheduler(delays, parent=self)
        #: Decides whether values need saving.
        self.detector = ChangeDetector()
        #: The canvas collection.
        self.reconciler = CanvasReconciler(clock=clock, parent=self)
        #: The latest settled value of every field.
        self._debounced = NoteValues()
        #: Whether the session has been closed (or the note deleted).
        self._closed = True

        self.document.field_changed.connect(self._on_field_changed)
        self.scheduler.settled.connect(self._on_settled)
        self.reconciler.canvases_changed.connect(self.document.set_canvases)

    @property
    def state(self) -> ApplicationState:
        """The application state used for settings and notifications."""
        if self._state is None:
            self._state = ApplicationState()
        return self._state

    @property
    def note_id(self) -> str | None:
        """ID of the open note."""
        return self.document.note_id

    @property
    def is_open(self) -> bool:
        """Whether a note is open for editing."""
        return self.document.is_loaded and not self._closed

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self, note_id: str) -> Note:
        """
        Open a note for editing.

        A note that is already open is left as is.  If another note is open it
        is closed first (flushing unsaved changes).

        Args:
            note_id: The note ID

        Raises:
            DoesNotExist: If the note does not exist or has been deleted

        Returns:
            The stored note

        """
        note = self.gateway.get(note_id)
        if note is None:
            log.warning("editor.note_not_found", note_id=note_id)
            raise DoesNotExist("Note", note_id)  # noqa: EM101
        if self.is_open and self.note_id == note_id:
            return note
        if self.is_open:
            self.close()

        self.scheduler.cancel_all()
        self.document.reset()
        self.document.load(note)
        values = self.document.current
        self.detector.reset(values)
        self._debounced = values
        self.reconciler.load(values.canvases)
        self._closed = False
        self.state[CURRENT_NOTE_ID] = note_id
        bind_note_context(note_id)
        log.info("editor.opened", canvases=len(values.canvases))
        self.sync_inline_canvases()
        return note

    def close(self) -> bool:
        """
        Close the session, saving any unsaved change immediately.

        Pending debounced values are dropped; the comparison uses the latest
        values of the document instead.  Closing twice does nothing.

        Returns:
            Whether a save was made

        """
        if not self.is_open:
            return False
        note_id = self.document.note_id
        self.scheduler.cancel_all()
        saved = self._save(self.document.current, reason="close")
        self._closed = True
        self.state.pop(CURRENT_NOTE_ID, None)
        log.info("editor.closed", saved=saved)
        clear_note_context()
        self.closed.emit(note_id)
        return saved

    def save_now(self) -> None:
        """
        Save every pending edit now, bypassing the quiet periods.
        """
        if self.is_open:
            self.scheduler.flush_all()

    def delete_note(self, confirmed: bool = False) -> bool:  # noqa: FBT001, FBT002
        """
        Delete the open note.

        Nothing happens unless the deletion has been ``confirmed`` by the user.
        After a successful delete the session is closed without saving.

        Keyword Args:
            confirmed: Whether the user confirmed the deletion

        Returns:
            Whether the note was deleted

        """
        if not self.is_open:
            return False
        note_id = self.document.note_id
        if not confirmed:
            log.info("editor.delete_unconfirmed")
            return False
        try:
            deleted = self.gateway.delete(note_id)
        except Exception:  # noqa: BLE001
            log.exception("editor.delete_failed")
            deleted = False
        if not deleted:
            self.state.show_error("Failed to delete note")
            return False
        self.scheduler.cancel_all()
        self._closed = True
        self.state.pop(CURRENT_NOTE_ID, None)
        log.info("editor.deleted")
        clear_note_context()
        self.state.show_message("Note deleted")
        self.closed.emit(note_id)
        return True

    # -------------------------------------------------------------------------
    # Canvases
    # -------------------------------------------------------------------------

    def sync_inline_canvases(self) -> bool:
        """
        Merge the inline canvases of the current content into the collection.

        Inline canvases without an id get one first (which rewrites the
        content).  A deletion callback is registered for every inline canvas so
        that removing it from the sidebar also removes its node.

        Returns:
            Whether the collection changed

        """
        tree = self.document.parsed_content()
        if tree is None:
            return False
        if assign_missing_canvas_ids(tree):
            # The content change runs this method again with the ids in place
            self.document.set_content(serialize_content(tree))
            return True
        inline = find_inline_canvases(tree)
        for canvas in inline:
            self.reconciler.register_deletion_callback(
                canvas.id, self._remove_inline_node
            )
        return self.reconciler.reconcile(inline)

    def add_canvas(self, name: str | None = None) -> Canvas:
        """Add an empty canvas to the sidebar."""
        return self.reconciler.add_canvas(name)

    def rename_canvas(self, canvas_id: str, name: str) -> bool:
        return self.reconciler.rename_canvas(canvas_id, name)

    def update_canvas_data(self, canvas_id: str, data: CanvasData) -> bool:
        return self.reconciler.update_canvas_data(canvas_id, data)

    def remove_canvas(self, canvas_id: str) -> bool:
        """Remove a canvas from the sidebar and its inline node, if any."""
        return self.reconciler.remove_canvas(canvas_id)

    def delete_inline_canvas(self, canvas_id: str) -> bool:
        """
        Delete an inline canvas node and its sidebar entry.

        Returns:
            Whether anything was removed

        """
        known = self.reconciler.notify_inline_deleted(canvas_id)
        removed = self._remove_inline_node(canvas_id)
        return known or removed

    def _remove_inline_node(self, canvas_id: str) -> bool:
        tree = self.document.parsed_content()
        if not remove_inline_canvas(tree, canvas_id):
            return False
        self.document.set_content(serialize_content(tree))
        return True

    # -------------------------------------------------------------------------
    # Generated items
    # -------------------------------------------------------------------------

    def add_generated(self, kind: ItemKind, items: Iterable[dict[str, Any]]) -> int:
        """
        Append AI-generated features or tasks, deselected.

        Returns:
            The number of items added

        """
        new = list(items)
        self._set_generated(kind, append_generated(self._generated(kind), new))
        self.state.show_message(f"{len(new)} {kind} generated")
        return len(new)

    def add_generated_features(self, features: Iterable[dict[str, Any]]) -> int:
        return self.add_generated("features", features)

    def add_generated_tasks(self, tasks: Iterable[dict[str, Any]]) -> int:
        return self.add_generated("tasks", tasks)

    def mark_features_added(
        self, item_ids: Iterable[str], roadmap_name: str | None = None
    ) -> None:
        """Flag features as added to a roadmap pipeline."""
        self.mark_generated_added("features", item_ids, roadmap_name)

    def mark_tasks_added(
        self, item_ids: Iterable[str], project_name: str | None = None
    ) -> None:
        """Flag tasks as added to a task project."""
        self.mark_generated_added("tasks", item_ids, project_name)

    def toggle_generated_selected(self, kind: ItemKind, item_id: str) -> None:
        self._set_generated(kind, toggle_selected(self._generated(kind), item_id))

    def set_all_generated_selected(self, kind: ItemKind, selected: bool) -> None:  # noqa: FBT001
        self._set_generated(kind, set_all_selected(self._generated(kind), selected))

    def selected_generated(self, kind: ItemKind) -> list[dict[str, Any]]:
        """The generated features or tasks the user has selected."""
        return selected_items(self._generated(kind))

    def mark_generated_added(
        self, kind: ItemKind, item_ids: Iterable[str], destination: str | None
    ) -> None:
        """Flag generated items as added to a pipeline or task project."""
        self._set_generated(
            kind, mark_added(self._generated(kind), item_ids, destination, kind)
        )

    def _generated(self, kind: ItemKind) -> list[dict[str, Any]]:
        if kind == "features":
            return self.document.current.generated_features
        return self.document.current.generated_tasks

    def _set_generated(self, kind: ItemKind, items: list[dict[str, Any]]) -> None:
        if kind == "features":
            self.document.set_generated_features(items)
        else:
            self.document.set_generated_tasks(items)

    # -------------------------------------------------------------------------
    # AI context
    # -------------------------------------------------------------------------

    def ai_context(self) -> str:
        """Plain-text context of the note for AI generation."""
        values = self.document.current
        return build_ai_context(values.content, values.canvases)

    # -------------------------------------------------------------------------
    # Autosave
    # -------------------------------------------------------------------------

    def _on_field_changed(self, name: str, value: Any) -> None:
        if self._closed:
            return
        self.scheduler.push(name, value)
        if name == "content":
            self.sync_inline_canvases()

    def _on_settled(self, name: str, value: Any) -> None:
        if self._closed:
            return
        self._debounced = replace(self._debounced, **{name: value})
        self._save(self._debounced, reason="debounce")

    def _save(self, values: NoteValues, reason: str) -> bool:
        """
        Save the fields of ``values`` that differ from the snapshot.

        If the save fails the snapshot is rolled back so the change is retried
        by the next check, and the user is notified.

        Returns:
            Whether a save was made and succeeded

        """
        note_id = self.document.note_id
        if note_id is None:
            return False
        pending = self.detector.begin_save(values)
        if pending is None:
            return False
        payload = build_payload(note_id, values, pending.fields)
        try:
            ok = self.gateway.save(note_id, payload)
        except Exception:  # noqa: BLE001
            log.exception("editor.save_error", reason=reason)
            ok = False
        if ok:
            log.info("editor.saved", fields=pending.fields, reason=reason)
            self.saved.emit(note_id, pending.fields)
            return True
        restored = self.detector.rollback(pending)
        log.warning(
            "editor.save_failed",
            fields=pending.fields,
            restored=restored,
            reason=reason,
        )
        self.state.show_error("Failed to save note")
        self.save_failed.emit(note_id, pending.fields)
        return False
