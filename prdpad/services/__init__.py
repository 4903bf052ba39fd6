"""Services package initialization."""

from prdpad.services.canvas import Canvas, CanvasData, CanvasReconciler
from prdpad.services.change_detector import ChangeDetector, PendingSave
from prdpad.services.debounce import DebouncedValue, DebounceScheduler
from prdpad.services.document import EditableDocument, NoteValues
from prdpad.services.editor import NoteEditorSession
from prdpad.services.gateway import NoteGateway, SQLNoteGateway

__all__ = [
    "Canvas",
    "CanvasData",
    "CanvasReconciler",
    "ChangeDetector",
    "DebounceScheduler",
    "DebouncedValue",
    "EditableDocument",
    "NoteEditorSession",
    "NoteGateway",
    "NoteValues",
    "PendingSave",
    "SQLNoteGateway",
]
